"""
aioseekdb - asyncio vector database client for seekdb and OceanBase

Based on aiomysql, providing collections with vector, full-text and metadata search.

Examples:
    >>> import aioseekdb

    >>> client = aioseekdb.Client(
    ...     host='localhost',
    ...     port=2881,
    ...     tenant="sys",
    ...     database="test",
    ...     user="root",
    ...     password="pass"
    ... )
    >>> async with client:
    ...     collection = await client.get_or_create_collection("docs")
    ...     await collection.add(ids=["1"], documents=["hello world"])
    ...     result = await collection.query(query_texts="hello", where=aioseekdb.K("lang") == "en")

    >>> # Admin client - Database management
    >>> admin = aioseekdb.AdminClient(host='localhost')
    >>> await admin.create_database("new_db")
    >>> databases = await admin.list_databases()
"""
import importlib.metadata

from .client import (
    BaseConnection,
    BaseClient,
    ClientAPI,
    Collection,
    HNSWConfiguration,
    DistanceMetric,
    ServerConfig,
    DEFAULT_VECTOR_DIMENSION,
    DEFAULT_DISTANCE_METRIC,
    EmbeddingFunction,
    DefaultEmbeddingFunction,
    get_default_embedding_function,
    RemoteServerClient,
    Client,
    client_from_env,
    AdminAPI,
    AdminClient,
    Database,
    HybridSearch,
    HybridQuery,
    HybridKnn,
    Rrf,
    RawRank,
    DOCUMENT,
    TEXT,
    EMBEDDINGS,
    K,
    IDS,
    DOCUMENTS,
    METADATAS,
    EMBEDDINGS_FIELD,
    SCORES,
)
from .client.errors import (
    SeekDBError,
    SeekDBConnectionError,
    SqlError,
    NotFoundError,
    ConfigError,
    EmbeddingError,
    InvalidInputError,
    SerializationError,
)
from .client.filters import (
    Filter,
    Eq,
    Ne,
    Lt,
    Lte,
    Gt,
    Gte,
    In,
    Nin,
    And,
    Or,
    Not,
    DocFilter,
    Contains,
    Regex,
    DocAnd,
    DocOr,
)
from .client.results import GetResult, QueryResult

try:
    __version__ = importlib.metadata.version("aioseekdb")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.1.dev1"

__all__ = [
    'BaseConnection',
    'BaseClient',
    'ClientAPI',
    'Collection',
    'HNSWConfiguration',
    'DistanceMetric',
    'ServerConfig',
    'DEFAULT_VECTOR_DIMENSION',
    'DEFAULT_DISTANCE_METRIC',
    'EmbeddingFunction',
    'DefaultEmbeddingFunction',
    'get_default_embedding_function',
    'RemoteServerClient',
    'Client',
    'client_from_env',
    'AdminAPI',
    'AdminClient',
    'Database',
    'HybridSearch',
    'HybridQuery',
    'HybridKnn',
    'Rrf',
    'RawRank',
    'DOCUMENT',
    'TEXT',
    'EMBEDDINGS',
    'K',
    'IDS',
    'DOCUMENTS',
    'METADATAS',
    'EMBEDDINGS_FIELD',
    'SCORES',
    'SeekDBError',
    'SeekDBConnectionError',
    'SqlError',
    'NotFoundError',
    'ConfigError',
    'EmbeddingError',
    'InvalidInputError',
    'SerializationError',
    'Filter',
    'Eq',
    'Ne',
    'Lt',
    'Lte',
    'Gt',
    'Gte',
    'In',
    'Nin',
    'And',
    'Or',
    'Not',
    'DocFilter',
    'Contains',
    'Regex',
    'DocAnd',
    'DocOr',
    'GetResult',
    'QueryResult',
]
