"""
Base client interface definition and the SQL implementation of collection operations
"""
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .admin_client import AdminAPI
from .base_connection import BaseConnection
from .collection import Collection
from .configuration import (
    DEFAULT_DISTANCE_METRIC,
    DEFAULT_VECTOR_DIMENSION,
    _NOT_PROVIDED,
    HNSWConfiguration,
)
from .embedding_function import embedding_dimension, get_default_embedding_function
from .embedding_gateway import (
    EmbeddingPurpose,
    embed_documents,
    normalize_embeddings,
    resolve_embeddings,
    validate_embeddings,
)
from .errors import ConfigError, InvalidInputError, NotFoundError, SerializationError, SqlError
from .filters import (
    WhereDocumentParam,
    WhereParam,
    build_where_clause,
    merge_filters,
    parse_where,
    parse_where_document,
)
from .hybrid_search import (
    HybridKnn,
    HybridQuery,
    HybridRank,
    as_rank,
    build_search_parm,
    is_hybrid_invalid_argument,
)
from .meta_info import CollectionFieldNames, CollectionNames
from .results import GetResult, QueryResult
from .schema import build_create_table_sql, resolve_collection_schema
from .sql_utils import decode_id, dump_json_value, parse_json_value, parse_vector, quote_identifier, vector_to_string

logger = logging.getLogger(__name__)

# Largest LIMIT accepted by the server; used when only an offset is given
MAX_LIMIT = 18446744073709551615

DEFAULT_INCLUDE = ("documents", "metadatas")

_INCLUDE_ALIASES = {
    "documents": "documents",
    "document": "documents",
    "metadatas": "metadatas",
    "metadata": "metadatas",
    "embeddings": "embeddings",
    "embedding": "embeddings",
    # always returned by queries
    "distances": None,
    "distance": None,
}

_DISTANCE_COLUMNS = ("distance", "_distance", "_score", "score")

ConfigurationParam = Optional[HNSWConfiguration]
EmbeddingFunctionParam = Any


class ClientAPI(ABC):
    """
    Client API interface for collection operations only.
    This is what end users interact with through the Client proxy.
    """

    @abstractmethod
    async def create_collection(
        self,
        name: str,
        configuration: ConfigurationParam = _NOT_PROVIDED,
        embedding_function: EmbeddingFunctionParam = _NOT_PROVIDED,
        **kwargs
    ) -> Collection:
        """
        Create collection

        Args:
            name: Collection name
            configuration: HNSWConfiguration. Not provided: dimension of the
                           embedding function (or 384) with cosine distance.
                           None: dimension taken from the embedding function.
            embedding_function: Defaults to DefaultEmbeddingFunction. None
                                creates a collection without one.
        """

    @abstractmethod
    async def get_collection(self, name: str, embedding_function: EmbeddingFunctionParam = _NOT_PROVIDED) -> Collection:
        """Get collection object; dimension and distance are read from the table definition"""

    @abstractmethod
    async def delete_collection(self, name: str) -> None:
        """Delete collection"""

    @abstractmethod
    async def list_collections(self) -> List[Collection]:
        """List all collections"""

    @abstractmethod
    async def has_collection(self, name: str) -> bool:
        """Check if collection exists"""


def _as_list(value: Any, single_types: Tuple[type, ...]) -> Optional[List[Any]]:
    if value is None:
        return None
    if isinstance(value, single_types):
        return [value]
    return list(value)


def _normalize_ids(ids: Any, required: bool = True) -> Optional[List[str]]:
    ids = _as_list(ids, (str, int))
    if not ids:
        if required:
            raise InvalidInputError("ids must not be empty")
        return None
    for i in ids:
        if i is None or (isinstance(i, str) and not i):
            raise InvalidInputError("ids must not contain empty values")
    return [str(i) for i in ids]


def _normalize_documents(documents: Any) -> Optional[List[Optional[str]]]:
    documents = _as_list(documents, (str,))
    if documents is not None:
        for doc in documents:
            if doc is not None and not isinstance(doc, str):
                raise InvalidInputError(f"documents must be strings, got {type(doc).__name__}")
    return documents


def _normalize_metadatas(metadatas: Any) -> Optional[List[Optional[str]]]:
    """Validate metadata dicts and serialize them to JSON text"""
    metadatas = _as_list(metadatas, (dict,))
    if metadatas is None:
        return None
    serialized = []
    for meta in metadatas:
        if meta is None:
            serialized.append(None)
        elif isinstance(meta, dict):
            serialized.append(dump_json_value(meta))
        else:
            raise InvalidInputError(f"metadatas must be dicts, got {type(meta).__name__}")
    return serialized


def _check_lengths(num_items: int, **arrays: Optional[Sequence[Any]]) -> None:
    for name, values in arrays.items():
        if values is not None and len(values) != num_items:
            raise InvalidInputError(
                f"Number of {name} ({len(values)}) does not match number of ids ({num_items})"
            )


def _check_unique(ids: List[str]) -> None:
    seen = set()
    duplicates = set()
    for record_id in ids:
        if record_id in seen:
            duplicates.add(record_id)
        seen.add(record_id)
    if duplicates:
        raise InvalidInputError(f"Duplicate ids in request: {sorted(duplicates)}")


def _check_positive(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidInputError(f"{name} must be a positive integer, got {value!r}")


def _check_non_negative(name: str, value: Any) -> None:
    if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 0):
        raise InvalidInputError(f"{name} must be a non-negative integer, got {value!r}")


class BaseClient(BaseConnection, AdminAPI, ClientAPI):
    """
    Abstract base class for all clients.

    Design Pattern:
    1. Provides public collection management methods (create_collection, get_collection, etc.)
    2. Implements the internal operations (_collection_* methods) called by Collection objects
       on top of execute()/fetch_all()
    3. Subclasses provide the connection and database management

    Inherits connection management from BaseConnection and database operations from AdminAPI.
    """

    # ==================== Collection Management (User-facing) ====================

    async def create_collection(
        self,
        name: str,
        configuration: ConfigurationParam = _NOT_PROVIDED,
        embedding_function: EmbeddingFunctionParam = _NOT_PROVIDED,
        **kwargs
    ) -> Collection:
        """
        Create a collection (user-facing API)

        Raises:
            ConfigError: configuration and embedding function disagree on the
                         dimension, or neither can provide one

        Examples:
            >>> collection = await client.create_collection('my_collection')

            >>> config = HNSWConfiguration(dimension=128, distance='l2')
            >>> collection = await client.create_collection('vectors', configuration=config, embedding_function=None)
        """
        if not isinstance(name, str) or not name:
            raise InvalidInputError("Collection name must be a non-empty string")

        if embedding_function is _NOT_PROVIDED:
            embedding_function = get_default_embedding_function()

        actual_dimension = None
        if embedding_function is not None:
            actual_dimension = await self._probe_dimension(embedding_function)

        if configuration is _NOT_PROVIDED:
            configuration = HNSWConfiguration(
                dimension=actual_dimension or DEFAULT_VECTOR_DIMENSION,
                distance=DEFAULT_DISTANCE_METRIC,
            )
        elif configuration is None:
            if actual_dimension is None:
                raise ConfigError(
                    "Cannot create collection: configuration is explicitly set to None and "
                    "embedding_function is also None. Provide a configuration with a dimension "
                    "or an embedding function."
                )
            configuration = HNSWConfiguration(dimension=actual_dimension, distance=DEFAULT_DISTANCE_METRIC)
        elif not isinstance(configuration, HNSWConfiguration):
            raise ConfigError(f"configuration must be HNSWConfiguration, got {type(configuration).__name__}")

        if actual_dimension is not None and configuration.dimension != actual_dimension:
            raise ConfigError(
                f"Configuration dimension ({configuration.dimension}) doesn't match "
                f"embedding function dimension ({actual_dimension})"
            )

        table_name = CollectionNames.table_name(name)
        sql = build_create_table_sql(table_name, configuration.dimension, configuration.distance)
        logger.info(
            f"Creating collection '{name}' (dimension={configuration.dimension}, "
            f"distance={configuration.distance.value})"
        )
        logger.debug(f"Executing SQL: {sql}")
        await self.execute(sql)

        return Collection(
            client=self,
            name=name,
            dimension=configuration.dimension,
            distance=configuration.distance,
            embedding_function=embedding_function,
            **kwargs
        )

    async def _probe_dimension(self, embedding_function: Any) -> int:
        """Dimension of an embedding function; calls it once if it doesn't advertise one"""
        dimension = embedding_dimension(embedding_function)
        if dimension is not None:
            logger.info(f"Using embedding function dimension: {dimension}")
            return dimension

        vectors = await embed_documents(embedding_function, ["seekdb"])
        if not vectors or not vectors[0]:
            raise ConfigError("Embedding function returned empty result when called with 'seekdb'")
        logger.info(f"Calculated embedding function dimension: {len(vectors[0])}")
        return len(vectors[0])

    async def get_collection(self, name: str, embedding_function: EmbeddingFunctionParam = _NOT_PROVIDED) -> Collection:
        """
        Get a collection object (user-facing API)

        Dimension and distance are read from the table definition, so tables
        not created by this client work as well.

        Raises:
            NotFoundError: collection does not exist
            ConfigError: dimension/distance can't be determined, or an explicitly
                         given embedding function has a different dimension
        """
        schema = await resolve_collection_schema(self, name)

        if embedding_function is _NOT_PROVIDED:
            embedding_function = get_default_embedding_function()
            if embedding_dimension(embedding_function) != schema.dimension:
                logger.warning(
                    f"Default embedding function dimension doesn't match collection '{name}' "
                    f"dimension ({schema.dimension}); the collection has no embedding function"
                )
                embedding_function = None
        elif embedding_function is not None:
            ef_dimension = embedding_dimension(embedding_function)
            if ef_dimension is not None and ef_dimension != schema.dimension:
                raise ConfigError(
                    f"Embedding function dimension ({ef_dimension}) doesn't match "
                    f"collection '{name}' dimension ({schema.dimension})"
                )

        return Collection(
            client=self,
            name=name,
            dimension=schema.dimension,
            distance=schema.distance,
            embedding_function=embedding_function,
        )

    async def delete_collection(self, name: str) -> None:
        """
        Delete a collection (user-facing API)

        Raises:
            NotFoundError: collection does not exist
        """
        if not await self.has_collection(name):
            raise NotFoundError(f"Collection '{name}' does not exist")

        logger.info(f"Deleting collection '{name}'")
        await self.execute(f"DROP TABLE IF EXISTS {quote_identifier(CollectionNames.table_name(name))}")

    async def _list_collection_tables(self) -> List[str]:
        try:
            rows = await self.fetch_all(f"SHOW TABLES LIKE '{CollectionNames.PREFIX}%'")
        except SqlError as e:
            logger.warning(f"SHOW TABLES failed ({e}), falling back to information_schema")
            rows = await self.fetch_all(
                "SELECT TABLE_NAME FROM information_schema.TABLES "
                "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME LIKE %s",
                [f"{CollectionNames.PREFIX}%"],
            )
        return [decode_id(next(iter(row.values()))) for row in rows if row]

    async def list_collections(self) -> List[Collection]:
        """
        List all collections (user-facing API)

        Tables whose vector configuration can't be resolved are skipped.
        """
        collections = []
        for table_name in await self._list_collection_tables():
            name = CollectionNames.collection_name(table_name)
            if name is None:
                continue
            try:
                collections.append(await self.get_collection(name))
            except (NotFoundError, ConfigError) as e:
                logger.warning(f"Skipping table '{table_name}': {e}")
        return collections

    async def count_collection(self) -> int:
        """Number of collections in the current database"""
        return len(await self.list_collections())

    async def has_collection(self, name: str) -> bool:
        """Check if a collection exists (user-facing API)"""
        table = quote_identifier(CollectionNames.table_name(name))
        try:
            rows = await self.fetch_all(f"DESCRIBE {table}")
        except NotFoundError:
            return False
        return bool(rows)

    async def get_or_create_collection(
        self,
        name: str,
        configuration: ConfigurationParam = _NOT_PROVIDED,
        embedding_function: EmbeddingFunctionParam = _NOT_PROVIDED,
        **kwargs
    ) -> Collection:
        """Get an existing collection or create it if it doesn't exist (user-facing API)"""
        if await self.has_collection(name):
            return await self.get_collection(name, embedding_function=embedding_function)
        return await self.create_collection(
            name=name,
            configuration=configuration,
            embedding_function=embedding_function,
            **kwargs
        )

    # ==================== Collection Internal Operations ====================
    # These methods are called by Collection objects

    # -------------------- DML Operations --------------------

    async def _collection_add(
        self,
        collection: Collection,
        ids: Any,
        embeddings: Optional[Any] = None,
        metadatas: Optional[Any] = None,
        documents: Optional[Any] = None,
    ) -> None:
        """
        [Internal] Insert one row per id

        All validation (lengths, dimension, embedding derivation, metadata
        serialization) completes before the first INSERT is sent.
        """
        logger.info(f"Adding data to collection '{collection.name}'")

        ids = _normalize_ids(ids)
        _check_unique(ids)
        documents = _normalize_documents(documents)
        metadatas = _normalize_metadatas(metadatas)
        _check_lengths(len(ids), documents=documents, metadatas=metadatas)

        vectors = await resolve_embeddings(
            EmbeddingPurpose.ADD,
            count=len(ids),
            dimension=collection.dimension,
            embeddings=embeddings,
            documents=documents,
            embedding_function=collection.embedding_function,
        )

        table = quote_identifier(collection.table_name)
        sql = (
            f"INSERT INTO {table} ({CollectionFieldNames.ID}, {CollectionFieldNames.DOCUMENT}, "
            f"{CollectionFieldNames.METADATA}, {CollectionFieldNames.EMBEDDING}) VALUES (%s, %s, %s, %s)"
        )
        logger.debug(f"Executing SQL: {sql}")
        for i, record_id in enumerate(ids):
            await self.execute(sql, [
                record_id,
                documents[i] if documents is not None else None,
                metadatas[i] if metadatas is not None else None,
                vector_to_string(vectors[i]),
            ])

        logger.info(f"Successfully added {len(ids)} item(s) to collection '{collection.name}'")

    def _build_set_clause(
        self,
        index: int,
        documents: Optional[List[Optional[str]]],
        metadatas: Optional[List[Optional[str]]],
        vectors: Optional[List[List[float]]],
    ) -> Tuple[List[str], List[Any]]:
        """Column assignments for the fields that were supplied"""
        columns: List[str] = []
        params: List[Any] = []
        if documents is not None:
            columns.append(CollectionFieldNames.DOCUMENT)
            params.append(documents[index])
        if metadatas is not None:
            columns.append(CollectionFieldNames.METADATA)
            params.append(metadatas[index])
        if vectors is not None:
            columns.append(CollectionFieldNames.EMBEDDING)
            params.append(vector_to_string(vectors[index]))
        return columns, params

    async def _update_row(self, table: str, record_id: str, columns: List[str], params: List[Any]) -> int:
        assignments = ", ".join(f"{column} = %s" for column in columns)
        sql = f"UPDATE {table} SET {assignments} WHERE {CollectionFieldNames.ID} = %s"
        logger.debug(f"Executing SQL: {sql}")
        return await self.execute(sql, params + [record_id])

    async def _insert_row(self, table: str, record_id: str, columns: List[str], params: List[Any]) -> int:
        all_columns = [CollectionFieldNames.ID] + columns
        placeholders = ", ".join(["%s"] * len(all_columns))
        sql = f"INSERT INTO {table} ({', '.join(all_columns)}) VALUES ({placeholders})"
        logger.debug(f"Executing SQL: {sql}")
        return await self.execute(sql, [record_id] + params)

    async def _collection_update(
        self,
        collection: Collection,
        ids: Any,
        embeddings: Optional[Any] = None,
        metadatas: Optional[Any] = None,
        documents: Optional[Any] = None,
    ) -> None:
        """
        [Internal] Partial update of existing rows

        Only supplied fields are written; missing ids affect no rows.
        """
        logger.info(f"Updating data in collection '{collection.name}'")

        ids = _normalize_ids(ids)
        documents = _normalize_documents(documents)
        metadatas = _normalize_metadatas(metadatas)
        if embeddings is None and documents is None and metadatas is None:
            raise InvalidInputError("update requires at least one of embeddings, metadatas or documents")
        _check_lengths(len(ids), documents=documents, metadatas=metadatas)

        vectors = await resolve_embeddings(
            EmbeddingPurpose.UPDATE,
            count=len(ids),
            dimension=collection.dimension,
            embeddings=embeddings,
            documents=documents,
            embedding_function=collection.embedding_function,
        )

        table = quote_identifier(collection.table_name)
        affected = 0
        for i, record_id in enumerate(ids):
            columns, params = self._build_set_clause(i, documents, metadatas, vectors)
            affected += await self._update_row(table, record_id, columns, params)

        logger.info(f"Successfully updated {affected} of {len(ids)} item(s) in collection '{collection.name}'")

    async def _collection_upsert(
        self,
        collection: Collection,
        ids: Any,
        embeddings: Optional[Any] = None,
        metadatas: Optional[Any] = None,
        documents: Optional[Any] = None,
    ) -> None:
        """
        [Internal] Update existing rows, insert missing ones

        Existing rows keep the fields not supplied. Documents without an
        embedding function are stored with the embedding left unset.
        """
        logger.info(f"Upserting data in collection '{collection.name}'")

        ids = _normalize_ids(ids)
        _check_unique(ids)
        documents = _normalize_documents(documents)
        metadatas = _normalize_metadatas(metadatas)
        if embeddings is None and documents is None and metadatas is None:
            raise InvalidInputError("upsert requires at least one of embeddings, metadatas or documents")
        _check_lengths(len(ids), documents=documents, metadatas=metadatas)

        vectors = await resolve_embeddings(
            EmbeddingPurpose.UPSERT,
            count=len(ids),
            dimension=collection.dimension,
            embeddings=embeddings,
            documents=documents,
            embedding_function=collection.embedding_function,
        )

        table = quote_identifier(collection.table_name)
        exists_sql = f"SELECT {CollectionFieldNames.ID} FROM {table} WHERE {CollectionFieldNames.ID} = %s"
        for i, record_id in enumerate(ids):
            columns, params = self._build_set_clause(i, documents, metadatas, vectors)
            if await self.fetch_all(exists_sql, [record_id]):
                await self._update_row(table, record_id, columns, params)
            else:
                await self._insert_row(table, record_id, columns, params)

        logger.info(f"Successfully upserted {len(ids)} item(s) in collection '{collection.name}'")

    async def _collection_delete(
        self,
        collection: Collection,
        ids: Optional[Any] = None,
        where: WhereParam = None,
        where_document: WhereDocumentParam = None,
    ) -> int:
        """
        [Internal] Delete rows matching ids and/or filters

        Refuses to run without any condition.
        """
        logger.info(f"Deleting data from collection '{collection.name}'")

        sql_where = build_where_clause(_normalize_ids(ids, required=False), where, where_document)
        if not sql_where:
            raise InvalidInputError(
                "delete requires at least one of ids, where or where_document"
            )

        sql = f"DELETE FROM {quote_identifier(collection.table_name)} {sql_where.to_sql()}"
        logger.debug(f"Executing SQL: {sql}")
        logger.debug(f"Parameters: {sql_where.params}")
        affected = await self.execute(sql, list(sql_where.params))

        logger.info(f"Successfully deleted {affected} item(s) from collection '{collection.name}'")
        return affected

    # -------------------- DQL Operations --------------------

    def _normalize_include_fields(self, include: Optional[Sequence[str]]) -> List[str]:
        """
        Normalize include to a list among documents/metadatas/embeddings

        Default: documents and metadatas. "distances" is accepted and ignored.
        """
        if include is None:
            return list(DEFAULT_INCLUDE)
        if isinstance(include, str):
            include = [include]

        fields: List[str] = []
        for name in include:
            if name not in _INCLUDE_ALIASES:
                raise InvalidInputError(
                    f"Unknown include field {name!r}; expected documents, metadatas, embeddings or distances"
                )
            canonical = _INCLUDE_ALIASES[name]
            if canonical is not None and canonical not in fields:
                fields.append(canonical)
        return fields

    def _build_select_clause(self, include_fields: Sequence[str]) -> str:
        select_fields = [CollectionFieldNames.ID]
        if "documents" in include_fields:
            select_fields.append(CollectionFieldNames.DOCUMENT)
        if "metadatas" in include_fields:
            select_fields.append(CollectionFieldNames.METADATA)
        if "embeddings" in include_fields:
            select_fields.append(CollectionFieldNames.EMBEDDING)
        return ", ".join(select_fields)

    def _collect_row(self, row: Dict[str, Any], include_fields: Sequence[str], out: Dict[str, List[Any]]) -> None:
        """Append one row's values to the per-field output lists"""
        record_id = row.get(CollectionFieldNames.ID)
        if record_id is None:
            record_id = row.get("id")
        out["ids"].append(decode_id(record_id))
        if "documents" in include_fields:
            out["documents"].append(row.get(CollectionFieldNames.DOCUMENT))
        if "metadatas" in include_fields:
            out["metadatas"].append(parse_json_value(row.get(CollectionFieldNames.METADATA)))
        if "embeddings" in include_fields:
            out["embeddings"].append(parse_vector(row.get(CollectionFieldNames.EMBEDDING)))

    @staticmethod
    def _row_distance(row: Dict[str, Any]) -> float:
        for column in _DISTANCE_COLUMNS:
            if row.get(column) is not None:
                return float(row[column])
        return 0.0

    async def _collection_query(
        self,
        collection: Collection,
        query_embeddings: Optional[Any] = None,
        query_texts: Optional[Union[str, List[str]]] = None,
        n_results: int = 10,
        where: WhereParam = None,
        where_document: WhereDocumentParam = None,
        include: Optional[Sequence[str]] = None,
    ) -> QueryResult:
        """
        [Internal] Approximate nearest-neighbour query, one statement per query vector

        Vectors are ordered by the collection's distance function.
        """
        logger.info(f"Querying collection '{collection.name}' with n_results={n_results}")

        _check_positive("n_results", n_results)
        include_fields = self._normalize_include_fields(include)
        sql_where = build_where_clause(None, where, where_document)

        if query_embeddings is not None:
            vectors = normalize_embeddings(query_embeddings)
            if not vectors:
                raise InvalidInputError("query_embeddings must not be empty")
            validate_embeddings(vectors, len(vectors), collection.dimension)
        else:
            texts = _as_list(query_texts, (str,))
            if not texts:
                raise InvalidInputError("query requires query_embeddings or query_texts")
            logger.info("Embedding query texts...")
            vectors = await resolve_embeddings(
                EmbeddingPurpose.QUERY,
                count=len(texts),
                dimension=collection.dimension,
                documents=texts,
                embedding_function=collection.embedding_function,
            )

        distance_fn = collection.distance.sql_function
        embedding = CollectionFieldNames.EMBEDDING
        sql = " ".join(part for part in (
            f"SELECT {self._build_select_clause(include_fields)}, {distance_fn}({embedding}, %s) AS distance",
            f"FROM {quote_identifier(collection.table_name)}",
            sql_where.to_sql(),
            f"ORDER BY {distance_fn}({embedding}, %s) APPROXIMATE LIMIT %s",
        ) if part)
        logger.debug(f"Executing SQL: {sql}")

        result: Dict[str, List[Any]] = {key: [] for key in ("ids", "distances", "documents", "metadatas", "embeddings")}
        for vector in vectors:
            vector_literal = vector_to_string(vector)
            params = [vector_literal, *sql_where.params, vector_literal, n_results]
            rows = await self.fetch_all(sql, params)

            hits: Dict[str, List[Any]] = {key: [] for key in result}
            for row in rows:
                self._collect_row(row, include_fields, hits)
                hits["distances"].append(self._row_distance(row))
            for key in result:
                result[key].append(hits[key])

        logger.info(
            f"Query completed for '{collection.name}' with {len(vectors)} vectors, "
            f"returning {len(result['ids'])} result lists"
        )
        return QueryResult(
            ids=result["ids"],
            distances=result["distances"],
            documents=result["documents"] if "documents" in include_fields else None,
            metadatas=result["metadatas"] if "metadatas" in include_fields else None,
            embeddings=result["embeddings"] if "embeddings" in include_fields else None,
        )

    async def _collection_get(
        self,
        collection: Collection,
        ids: Optional[Any] = None,
        where: WhereParam = None,
        where_document: WhereDocumentParam = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        include: Optional[Sequence[str]] = None,
    ) -> GetResult:
        """
        [Internal] Unranked filtered read

        An offset without a limit uses MAX_LIMIT.
        """
        logger.info(f"Getting data from collection '{collection.name}'")

        _check_non_negative("limit", limit)
        _check_non_negative("offset", offset)
        include_fields = self._normalize_include_fields(include)
        sql_where = build_where_clause(_normalize_ids(ids, required=False), where, where_document)

        parts = [
            f"SELECT {self._build_select_clause(include_fields)}",
            f"FROM {quote_identifier(collection.table_name)}",
            sql_where.to_sql(),
        ]
        params = list(sql_where.params)
        if limit is not None or offset is not None:
            parts.append("LIMIT %s")
            params.append(limit if limit is not None else MAX_LIMIT)
            if offset is not None:
                parts.append("OFFSET %s")
                params.append(offset)
        sql = " ".join(part for part in parts if part)

        logger.debug(f"Executing SQL: {sql}")
        logger.debug(f"Parameters: {params}")
        rows = await self.fetch_all(sql, params)

        out: Dict[str, List[Any]] = {key: [] for key in ("ids", "documents", "metadatas", "embeddings")}
        for row in rows:
            self._collect_row(row, include_fields, out)

        logger.info(f"Get completed for '{collection.name}', found {len(out['ids'])} results")
        return GetResult(
            ids=out["ids"],
            documents=out["documents"] if "documents" in include_fields else None,
            metadatas=out["metadatas"] if "metadatas" in include_fields else None,
            embeddings=out["embeddings"] if "embeddings" in include_fields else None,
        )

    # -------------------- Hybrid Search --------------------

    async def _collection_hybrid_search(
        self,
        collection: Collection,
        query_texts: Optional[Union[str, List[str]]] = None,
        search_params: Optional[Dict[str, Any]] = None,
        where: WhereParam = None,
        where_document: WhereDocumentParam = None,
        n_results: int = 10,
        include: Optional[Sequence[str]] = None,
    ) -> QueryResult:
        """
        [Internal] Hybrid search driven by query texts and/or filters

        - no search_params and no filters: plain vector query
        - search_params given: submitted verbatim
        - otherwise: search_parm built from the filters, plus a knn part on the
          first text's embedding when texts are given
        """
        texts = _as_list(query_texts, (str,)) or []
        _check_positive("n_results", n_results)

        meta_filter = parse_where(where)
        doc_filter = parse_where_document(where_document)

        if search_params is None and meta_filter is None and doc_filter is None:
            if not texts:
                raise InvalidInputError(
                    "hybrid_search requires query texts, where, where_document or search_params"
                )
            logger.debug("No filters or search params; running plain vector query")
            return await self._collection_query(
                collection, query_texts=texts, n_results=n_results, include=include
            )

        if search_params is not None:
            search_parm = search_params
        else:
            vector = None
            knn = None
            if texts:
                vectors = await resolve_embeddings(
                    EmbeddingPurpose.QUERY,
                    count=1,
                    dimension=collection.dimension,
                    documents=texts[:1],
                    embedding_function=collection.embedding_function,
                )
                vector = vectors[0]
                knn = HybridKnn(query_embeddings=[vector], where=meta_filter, n_results=n_results)
            search_parm = build_search_parm(
                HybridQuery(where=meta_filter, where_document=doc_filter), vector, knn, None, n_results
            )

        return await self._execute_hybrid_search(collection, search_parm, include)

    async def _collection_hybrid_search_advanced(
        self,
        collection: Collection,
        query: Optional[Union[HybridQuery, Dict[str, Any]]] = None,
        knn: Optional[Union[HybridKnn, Dict[str, Any]]] = None,
        rank: Optional[Union[HybridRank, Dict[str, Any]]] = None,
        n_results: int = 10,
        include: Optional[Sequence[str]] = None,
    ) -> QueryResult:
        """
        [Internal] Hybrid search from query / knn / rank parts

        knn alone runs as a vector query without touching the hybrid search
        facility. If the facility rejects the request as an invalid argument,
        query and knn are re-run as a filtered vector query (rank is dropped).
        """
        if isinstance(query, dict):
            query = HybridQuery(where=query.get("where"), where_document=query.get("where_document"))
        if isinstance(knn, dict):
            knn = HybridKnn(
                query_texts=knn.get("query_texts"),
                query_embeddings=knn.get("query_embeddings"),
                where=knn.get("where"),
                n_results=knn.get("n_results"),
            )
        rank = as_rank(rank)

        if query is None and knn is None and rank is None:
            raise InvalidInputError("hybrid_search_advanced requires at least one of query, knn or rank")
        if knn is not None and not knn.has_input:
            raise InvalidInputError("knn requires either query_embeddings or query_texts")
        _check_positive("n_results", n_results)

        logger.info(f"Hybrid search in collection '{collection.name}' with n_results={n_results}")

        if knn is not None and query is None and rank is None:
            return await self._run_knn(collection, knn, knn.where, None, knn.n_results or n_results, include)

        knn_vector = None
        if knn is not None:
            knn_vector = (await self._knn_vectors(collection, knn))[0]
        search_parm = build_search_parm(query, knn_vector, knn, rank, n_results)

        try:
            return await self._execute_hybrid_search(collection, search_parm, include)
        except SqlError as e:
            if not is_hybrid_invalid_argument(e):
                raise
            logger.warning(
                f"Hybrid search rejected by server ({e}); falling back to client-side query without rank"
            )

        merged = merge_filters(
            query.where if query is not None else None,
            knn.where if knn is not None else None,
        )
        doc_filter = query.where_document if query is not None else None
        if knn is not None:
            return await self._run_knn(collection, knn, merged, doc_filter, n_results, include)

        result = await self._collection_get(
            collection, where=merged, where_document=doc_filter, limit=n_results, include=include
        )
        return result.as_query_result()

    async def _knn_vectors(self, collection: Collection, knn: HybridKnn) -> List[List[float]]:
        if knn.query_embeddings is not None and len(knn.query_embeddings) > 0:
            vectors = normalize_embeddings(knn.query_embeddings)
            validate_embeddings(vectors, len(vectors), collection.dimension)
            return vectors
        return await resolve_embeddings(
            EmbeddingPurpose.QUERY,
            count=len(knn.query_texts),
            dimension=collection.dimension,
            documents=knn.query_texts,
            embedding_function=collection.embedding_function,
        )

    async def _run_knn(
        self,
        collection: Collection,
        knn: HybridKnn,
        where: WhereParam,
        where_document: WhereDocumentParam,
        n_results: int,
        include: Optional[Sequence[str]],
    ) -> QueryResult:
        if knn.query_embeddings is not None and len(knn.query_embeddings) > 0:
            return await self._collection_query(
                collection,
                query_embeddings=knn.query_embeddings,
                n_results=n_results,
                where=where,
                where_document=where_document,
                include=include,
            )
        return await self._collection_query(
            collection,
            query_texts=knn.query_texts,
            n_results=n_results,
            where=where,
            where_document=where_document,
            include=include,
        )

    async def _execute_hybrid_search(
        self,
        collection: Collection,
        search_parm: Dict[str, Any],
        include: Optional[Sequence[str]],
    ) -> QueryResult:
        """
        Submit search_parm to DBMS_HYBRID_SEARCH.GET_SQL and run the SQL it returns

        The three statements share one session because @search_parm is a
        session variable.
        """
        include_fields = self._normalize_include_fields(include)
        try:
            search_parm_json = json.dumps(search_parm, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"search_parm is not JSON serializable: {e}") from e
        logger.debug(f"Search parm JSON: {search_parm_json}")

        async with self.session() as session:
            await session.execute("SET @search_parm = %s", [search_parm_json])
            rows = await session.fetch_all(
                "SELECT DBMS_HYBRID_SEARCH.GET_SQL(%s, @search_parm) AS query_sql FROM dual",
                [collection.table_name],
            )

            query_sql = None
            if rows:
                query_sql = rows[0].get("query_sql")
                if query_sql is None:
                    query_sql = next(iter(rows[0].values()), None)
            if isinstance(query_sql, (bytes, bytearray)):
                query_sql = bytes(query_sql).decode("utf-8")
            if query_sql:
                query_sql = query_sql.strip().strip("'\"")
            if not query_sql:
                logger.warning("No SQL query returned from GET_SQL")
                return QueryResult.empty(1, include_fields)

            logger.debug(f"Executing query SQL: {query_sql}")
            result_rows = await session.fetch_all(query_sql)

        hits: Dict[str, List[Any]] = {key: [] for key in ("ids", "distances", "documents", "metadatas", "embeddings")}
        for row in result_rows:
            self._collect_row(row, include_fields, hits)
            hits["distances"].append(self._row_distance(row))

        return QueryResult(
            ids=[hits["ids"]],
            distances=[hits["distances"]],
            documents=[hits["documents"]] if "documents" in include_fields else None,
            metadatas=[hits["metadatas"]] if "metadatas" in include_fields else None,
            embeddings=[hits["embeddings"]] if "embeddings" in include_fields else None,
        )

    # -------------------- Collection Info --------------------

    async def _collection_count(self, collection: Collection) -> int:
        """[Internal] Row count of the collection table"""
        sql = f"SELECT COUNT(*) AS cnt FROM {quote_identifier(collection.table_name)}"
        logger.debug(f"Executing SQL: {sql}")
        rows = await self.fetch_all(sql)
        count = int(rows[0]["cnt"]) if rows else 0
        logger.info(f"Collection '{collection.name}' has {count} items")
        return count
