"""
aioseekdb client module

Provides client and admin factory functions with strict separation:

Collection Management (ClientAPI):
- Client() - factory for the remote server client
- Returns: _ClientProxy (collection operations only)

Database Management (AdminAPI):
- AdminClient() - factory for the remote server client
- Returns: _AdminClientProxy (database operations only)

Both factories wrap RemoteServerClient, which talks to seekdb Server or
OceanBase Server through an aiomysql connection pool. Nothing connects until
the first statement (or ``async with``).
"""

import logging
import os
from typing import Mapping, Optional

from .admin_client import DEFAULT_TENANT, AdminAPI, _AdminClientProxy, _ClientProxy
from .base_connection import BaseConnection
from .client_base import BaseClient, ClientAPI
from .client_seekdb_server import RemoteServerClient
from .collection import Collection
from .configuration import (
    DEFAULT_DISTANCE_METRIC,
    DEFAULT_PORT,
    DEFAULT_VECTOR_DIMENSION,
    DistanceMetric,
    HNSWConfiguration,
    ServerConfig,
)
from .database import Database
from .embedding_function import (
    DefaultEmbeddingFunction,
    EmbeddingFunction,
    get_default_embedding_function,
)
from .hybrid_search import (
    DOCUMENT,
    DOCUMENTS,
    EMBEDDINGS,
    EMBEDDINGS_FIELD,
    IDS,
    METADATAS,
    SCORES,
    TEXT,
    HybridKnn,
    HybridQuery,
    HybridSearch,
    K,
    RawRank,
    Rrf,
)

logger = logging.getLogger(__name__)

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
]


def _resolve_password(password: str) -> str:
    # Fall back to SEEKDB_PASSWORD when no password is given
    if not password:
        password = os.environ.get("SEEKDB_PASSWORD", "")
    return password


def Client(
    host: str = "localhost",
    port: Optional[int] = None,
    tenant: str = DEFAULT_TENANT,
    database: str = "test",
    user: Optional[str] = None,
    password: str = "",  # Can be retrieved from SEEKDB_PASSWORD environment variable
    **kwargs
) -> _ClientProxy:
    """
    Client factory function (returns ClientProxy for collection operations only)

    For database management, use AdminClient().

    Args:
        host: server address
        port: server port (default 2881)
        tenant: tenant name (default "sys" for seekdb Server, "test" for OceanBase)
        database: database name
        user: username (without tenant suffix, default "root")
        password: password. If not provided, will be retrieved from SEEKDB_PASSWORD environment variable
        **kwargs: max_connections, charset and other aiomysql connection parameters

    Examples:
        >>> client = Client(host='localhost', port=2881, tenant="sys", database="db1", user="root")
        >>> async with client:
        ...     collection = await client.create_collection("my_collection")
    """
    if port is None:
        port = DEFAULT_PORT
    if user is None:
        user = "root"

    logger.info(f"Creating remote server client: {user}@{tenant}@{host}:{port}/{database}")
    server = RemoteServerClient(
        host=host,
        port=port,
        tenant=tenant,
        database=database,
        user=user,
        password=_resolve_password(password),
        **kwargs
    )
    return _ClientProxy(server=server)


def client_from_env(prefix: str = "SERVER_", environ: Optional[Mapping[str, str]] = None) -> _ClientProxy:
    """
    Client built from <prefix>HOST, PORT, TENANT, DATABASE, USER, PASSWORD
    and MAX_CONNECTIONS

    Raises:
        ConfigError: HOST is missing or a numeric variable is malformed
    """
    config = ServerConfig.from_env(prefix=prefix, environ=environ)
    if not config.password:
        config.password = _resolve_password("")
    return _ClientProxy(server=RemoteServerClient.from_config(config))


Client.from_env = client_from_env


def AdminClient(
    host: str = "localhost",
    port: Optional[int] = None,
    tenant: str = DEFAULT_TENANT,
    user: Optional[str] = None,
    password: str = "",  # Can be retrieved from SEEKDB_PASSWORD environment variable
    **kwargs
) -> _AdminClientProxy:
    """
    Admin client factory function (proxy pattern)

    Returns a lightweight AdminClient proxy that only exposes database operations.
    For collection management, use Client().

    Examples:
        >>> admin = AdminClient(host='localhost', port=2881, tenant="sys", user="root")
        >>> await admin.create_database("new_db")
    """
    if port is None:
        port = DEFAULT_PORT
    if user is None:
        user = "root"

    logger.info(f"Creating remote server admin client: {user}@{tenant}@{host}:{port}")
    server = RemoteServerClient(
        host=host,
        port=port,
        tenant=tenant,
        database="information_schema",  # Use system database
        user=user,
        password=_resolve_password(password),
        **kwargs
    )
    return _AdminClientProxy(server=server)
