"""
Collection class - represents a collection and provides the data operation interface

Design Pattern:
1. Collection itself contains no business logic
2. All operations are delegated to the client that created it
3. Dimension and distance are fixed when the collection object is built
"""
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from .configuration import DistanceMetric
from .meta_info import CollectionNames

if TYPE_CHECKING:
    from .client_base import BaseClient
    from .filters import WhereDocumentParam, WhereParam
    from .hybrid_search import HybridKnn, HybridQuery, HybridRank, HybridSearch
    from .results import GetResult, QueryResult

Ids = Union[str, List[str]]
OneOrMany = Union[Any, List[Any]]


class Collection:
    """
    Collection handle

    A lightweight object holding the collection's configuration; every
    operation is a coroutine delegating to ``client._collection_*()``.
    """

    def __init__(
        self,
        client: "BaseClient",
        name: str,
        dimension: int,
        distance: Union[str, DistanceMetric],
        embedding_function: Optional[Any] = None,
        collection_id: Optional[str] = None,
        **metadata
    ):
        self._client = client
        self._name = name
        self._id = collection_id
        self._dimension = dimension
        self._distance = DistanceMetric.parse(distance)
        self._embedding_function = embedding_function
        self._metadata = metadata

    # ==================== Properties ====================

    @property
    def name(self) -> str:
        return self._name

    @property
    def id(self) -> Optional[str]:
        return self._id

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def distance(self) -> DistanceMetric:
        return self._distance

    @property
    def table_name(self) -> str:
        return CollectionNames.table_name(self._name)

    @property
    def client(self) -> "BaseClient":
        return self._client

    @property
    def metadata(self) -> Dict[str, Any]:
        return self._metadata

    @property
    def embedding_function(self) -> Optional[Any]:
        return self._embedding_function

    def __repr__(self) -> str:
        return (
            f"Collection(name='{self._name}', dimension={self._dimension}, "
            f"distance='{self._distance.value}', client={self._client.mode})"
        )

    # ==================== DML Operations ====================

    async def add(
        self,
        ids: Ids,
        embeddings: Optional[OneOrMany] = None,
        metadatas: Optional[OneOrMany] = None,
        documents: Optional[OneOrMany] = None,
    ) -> None:
        """
        Add records

        Embeddings are generated from documents by the collection's
        embedding function when they are not given.

        Examples:
            await collection.add(ids="1", embeddings=[0.1, 0.2, 0.3], metadatas={"tag": "A"})

            await collection.add(
                ids=["1", "2"],
                documents=["Hello world", "How are you?"],
                metadatas=[{"tag": "A"}, {"tag": "B"}]
            )

        Raises:
            InvalidInputError: empty ids, mismatched lengths, wrong dimension,
                               or documents without embeddings or embedding function
            SqlError: e.g. duplicate id
        """
        return await self._client._collection_add(
            collection=self, ids=ids, embeddings=embeddings, metadatas=metadatas, documents=documents
        )

    async def update(
        self,
        ids: Ids,
        embeddings: Optional[OneOrMany] = None,
        metadatas: Optional[OneOrMany] = None,
        documents: Optional[OneOrMany] = None,
    ) -> None:
        """
        Update existing records; only the supplied fields are changed

        Ids that don't exist are ignored.
        """
        return await self._client._collection_update(
            collection=self, ids=ids, embeddings=embeddings, metadatas=metadatas, documents=documents
        )

    async def upsert(
        self,
        ids: Ids,
        embeddings: Optional[OneOrMany] = None,
        metadatas: Optional[OneOrMany] = None,
        documents: Optional[OneOrMany] = None,
    ) -> None:
        """
        Update records that exist, insert the others

        Existing rows keep the fields that are not supplied. Documents may be
        upserted without an embedding function; the embedding then stays unset.
        """
        return await self._client._collection_upsert(
            collection=self, ids=ids, embeddings=embeddings, metadatas=metadatas, documents=documents
        )

    async def delete(
        self,
        ids: Optional[Ids] = None,
        where: "WhereParam" = None,
        where_document: "WhereDocumentParam" = None,
    ) -> int:
        """
        Delete records matching ids and/or filters

        At least one of ids, where or where_document is required.

        Returns:
            number of deleted rows
        """
        return await self._client._collection_delete(
            collection=self, ids=ids, where=where, where_document=where_document
        )

    # ==================== DQL Operations ====================

    async def query(
        self,
        query_embeddings: Optional[OneOrMany] = None,
        query_texts: Optional[Union[str, List[str]]] = None,
        n_results: int = 10,
        where: "WhereParam" = None,
        where_document: "WhereDocumentParam" = None,
        include: Optional[List[str]] = None,
    ) -> "QueryResult":
        """
        Vector similarity search

        Exactly one of query_embeddings / query_texts is used; embeddings win
        when both are given.

        Args:
            query_embeddings: one vector or a list of vectors
            query_texts: text(s) embedded with the collection's embedding function
            n_results: number of hits per query
            where: metadata filter (Filter or dict, e.g. {"page": {"$gte": 5}})
            where_document: document filter (DocFilter or dict, e.g. {"$contains": "ai"})
            include: any of "documents", "metadatas", "embeddings";
                     defaults to documents and metadatas. Distances are always returned.

        Examples:
            result = await collection.query(query_embeddings=[0.1, 0.2, 0.3], n_results=3)
            result = await collection.query(query_texts=["machine learning"], where=K("year") > 2020)
        """
        if query_embeddings is not None:
            return await self.query_embeddings(query_embeddings, n_results, where, where_document, include)
        return await self.query_texts(query_texts, n_results, where, where_document, include)

    async def query_embeddings(
        self,
        query_embeddings: OneOrMany,
        n_results: int = 10,
        where: "WhereParam" = None,
        where_document: "WhereDocumentParam" = None,
        include: Optional[List[str]] = None,
    ) -> "QueryResult":
        return await self._client._collection_query(
            collection=self,
            query_embeddings=query_embeddings,
            n_results=n_results,
            where=where,
            where_document=where_document,
            include=include,
        )

    async def query_texts(
        self,
        query_texts: Union[str, List[str]],
        n_results: int = 10,
        where: "WhereParam" = None,
        where_document: "WhereDocumentParam" = None,
        include: Optional[List[str]] = None,
    ) -> "QueryResult":
        return await self._client._collection_query(
            collection=self,
            query_texts=query_texts,
            n_results=n_results,
            where=where,
            where_document=where_document,
            include=include,
        )

    async def get(
        self,
        ids: Optional[Ids] = None,
        where: "WhereParam" = None,
        where_document: "WhereDocumentParam" = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        include: Optional[List[str]] = None,
    ) -> "GetResult":
        """
        Filtered read without ranking

        Examples:
            result = await collection.get(ids=["1", "2"])
            result = await collection.get(where={"category": "AI"}, limit=10, offset=20)
        """
        return await self._client._collection_get(
            collection=self,
            ids=ids,
            where=where,
            where_document=where_document,
            limit=limit,
            offset=offset,
            include=include,
        )

    async def hybrid_search(
        self,
        query_texts: Optional[Union[str, List[str]]] = None,
        search_params: Optional[Dict[str, Any]] = None,
        where: "WhereParam" = None,
        where_document: "WhereDocumentParam" = None,
        n_results: int = 10,
        include: Optional[List[str]] = None,
    ) -> "QueryResult":
        """
        Hybrid search from query texts and/or filters

        Without search_params and filters this is a plain vector query. With
        filters only, no knn part is sent.
        search_params, when given, is handed to the engine unchanged.
        """
        return await self._client._collection_hybrid_search(
            collection=self,
            query_texts=query_texts,
            search_params=search_params,
            where=where,
            where_document=where_document,
            n_results=n_results,
            include=include,
        )

    async def hybrid_search_advanced(
        self,
        query: Optional["HybridQuery"] = None,
        knn: Optional["HybridKnn"] = None,
        rank: Optional["HybridRank"] = None,
        n_results: int = 10,
        include: Optional[List[str]] = None,
        search: Optional["HybridSearch"] = None,
    ) -> "QueryResult":
        """
        Hybrid search combining full-text/scalar query, knn and ranking

        A knn-only request runs as a vector query. Otherwise the engine's
        hybrid search is used; if it rejects the request as an invalid
        argument, query and knn are run as a filtered vector query instead
        (rank is not applied in that case).

        Args:
            query: HybridQuery(where=..., where_document=...)
            knn: HybridKnn(query_texts=... or query_embeddings=..., where=..., n_results=...)
            rank: Rrf(...) or RawRank({...})
            n_results: final number of results
            include: fields to include
            search: a HybridSearch builder, used instead of the other arguments
        """
        if search is not None:
            params = search.build()
            params.setdefault("n_results", n_results)
            params.setdefault("include", include)
            return await self._client._collection_hybrid_search_advanced(collection=self, **params)
        return await self._client._collection_hybrid_search_advanced(
            collection=self,
            query=query,
            knn=knn,
            rank=rank,
            n_results=n_results,
            include=include,
        )

    # ==================== Collection Info ====================

    async def count(self) -> int:
        """Number of records in the collection"""
        return await self._client._collection_count(collection=self)

    async def peek(self, limit: int = 10) -> "GetResult":
        """First ``limit`` records with documents, metadatas and embeddings"""
        return await self._client._collection_get(
            collection=self,
            limit=limit,
            include=["documents", "metadatas", "embeddings"],
        )
