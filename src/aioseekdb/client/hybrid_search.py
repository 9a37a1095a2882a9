"""
Hybrid search request types, search_parm encoding and a fluent builder.

The engine turns a JSON search_parm document into SQL through
DBMS_HYBRID_SEARCH.GET_SQL. This module encodes typed filters into that
document format:

    metadata Eq      -> {"term": {"(JSON_EXTRACT(metadata, '$.f'))": v}}
    metadata range   -> {"range": {...: {"gte": v}}}
    metadata In      -> {"terms": {...: [v1, v2]}}
    And / Or / Not   -> {"bool": {"must" / "should" / "must_not": [...]}}
    Contains(text)   -> {"query_string": {"fields": ["document"], "query": text}}

Fluent builder DSL:
- DOCUMENT.contains() for document filters
- K("field") comparison operators for metadata filters
- TEXT(...) / EMBEDDINGS(...) for knn input
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from .errors import InvalidInputError, SqlError, driver_error_code
from .filters import (
    And,
    Contains,
    DocAnd,
    DocFilter,
    DocOr,
    Eq,
    Filter,
    Gt,
    Gte,
    In,
    Lt,
    Lte,
    Ne,
    Nin,
    Not,
    Or,
    Regex,
    WhereDocumentParam,
    WhereParam,
    merge_filters,
    parse_where,
    parse_where_document,
)
from .meta_info import CollectionFieldNames

logger = logging.getLogger(__name__)

__all__ = [
    "HybridQuery",
    "HybridKnn",
    "Rrf",
    "RawRank",
    "HybridRank",
    "HybridSearch",
    "DOCUMENT",
    "TEXT",
    "EMBEDDINGS",
    "K",
    "IDS",
    "DOCUMENTS",
    "METADATAS",
    "EMBEDDINGS_FIELD",
    "SCORES",
    "build_search_filter",
    "build_document_query",
    "build_query_expression",
    "build_search_parm",
    "is_hybrid_invalid_argument",
]

# ER_WRONG_ARGUMENTS, reported by GET_SQL for search_parm shapes it can't handle
HYBRID_INVALID_ARGUMENT_CODE = 1210


# ==================== Request types ====================


@dataclass
class HybridQuery:
    """Full-text / scalar part of a hybrid search"""
    where: WhereParam = None
    where_document: WhereDocumentParam = None

    def __post_init__(self):
        self.where = parse_where(self.where)
        self.where_document = parse_where_document(self.where_document)


@dataclass
class HybridKnn:
    """Vector part of a hybrid search; needs query_embeddings or query_texts"""
    query_texts: Optional[Union[str, List[str]]] = None
    query_embeddings: Optional[Any] = None
    where: WhereParam = None
    n_results: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.query_texts, str):
            self.query_texts = [self.query_texts]
        self.where = parse_where(self.where)
        if self.n_results is not None and self.n_results <= 0:
            raise InvalidInputError(f"knn.n_results must be positive, got {self.n_results}")

    @property
    def has_input(self) -> bool:
        return bool(self.query_embeddings is not None and len(self.query_embeddings) > 0) or bool(self.query_texts)


@dataclass
class Rrf:
    """Reciprocal Rank Fusion"""
    rank_window_size: Optional[int] = 60
    rank_constant: Optional[int] = 60

    def to_dict(self) -> Dict[str, Any]:
        params = {}
        if self.rank_window_size is not None:
            params["rank_window_size"] = self.rank_window_size
        if self.rank_constant is not None:
            params["rank_constant"] = self.rank_constant
        return {"rrf": params}


@dataclass
class RawRank:
    """Rank document passed to the engine untouched"""
    document: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.document)


HybridRank = Union[Rrf, RawRank]


def as_rank(rank: Any) -> Optional[HybridRank]:
    if rank is None or isinstance(rank, (Rrf, RawRank)):
        return rank
    if isinstance(rank, dict):
        if set(rank) == {"rrf"}:
            params = rank["rrf"] or {}
            return Rrf(params.get("rank_window_size"), params.get("rank_constant"))
        return RawRank(rank)
    raise InvalidInputError(f"Unsupported rank type: {type(rank).__name__}")


# ==================== search_parm encoding ====================


def _search_field(field_name: str) -> str:
    return f"(JSON_EXTRACT({CollectionFieldNames.METADATA}, '$.{field_name}'))"


_RANGE_KEYS = {Gt: "gt", Gte: "gte", Lt: "lt", Lte: "lte"}


def build_search_filter(flt: Filter) -> Dict[str, Any]:
    """Encode a metadata filter as a search_parm filter clause"""
    if isinstance(flt, Eq):
        return {"term": {_search_field(flt.field): flt.value}}
    if isinstance(flt, Ne):
        return {"bool": {"must_not": [{"term": {_search_field(flt.field): flt.value}}]}}
    if type(flt) in _RANGE_KEYS:
        return {"range": {_search_field(flt.field): {_RANGE_KEYS[type(flt)]: flt.value}}}
    if isinstance(flt, In):
        return {"terms": {_search_field(flt.field): list(flt.values)}}
    if isinstance(flt, Nin):
        return {"bool": {"must_not": [{"terms": {_search_field(flt.field): list(flt.values)}}]}}
    if isinstance(flt, And):
        return {"bool": {"must": [build_search_filter(c) for c in flt.children]}}
    if isinstance(flt, Or):
        return {"bool": {"should": [build_search_filter(c) for c in flt.children]}}
    if isinstance(flt, Not):
        return {"bool": {"must_not": [build_search_filter(flt.child)]}}
    raise InvalidInputError(f"Unsupported metadata filter: {type(flt).__name__}")


def _search_filter_list(flt: Optional[Filter]) -> List[Dict[str, Any]]:
    return [] if flt is None else [build_search_filter(flt)]


def _query_string(flt: DocFilter, nested: bool = False) -> Optional[str]:
    if isinstance(flt, Contains):
        return flt.text
    if isinstance(flt, (DocAnd, DocOr)) and flt.children:
        parts = [_query_string(c, nested=True) for c in flt.children]
        if any(p is None for p in parts):
            return None
        text = (" " if isinstance(flt, DocAnd) else " OR ").join(parts)
        return f"({text})" if nested and len(parts) > 1 else text
    return None


def build_document_query(flt: Optional[DocFilter]) -> Optional[Dict[str, Any]]:
    """
    Encode a document filter as a query_string clause

    DocAnd joins terms with a space and DocOr with " OR ". Regex can't be
    expressed; None is returned and the caller drops the document query.
    """
    if flt is None:
        return None

    query = _query_string(flt)
    if query is None:
        logger.warning(f"Document filter {flt!r} is not supported by hybrid search query_string; ignoring it")
        return None
    return {"query_string": {"fields": [CollectionFieldNames.DOCUMENT], "query": query}}


def build_query_expression(query: HybridQuery) -> Optional[Dict[str, Any]]:
    """
    Build the "query" part of search_parm

    - metadata only: a single term/range clause, otherwise bool.filter
    - full-text: query_string, wrapped in bool.must with bool.filter when
      metadata filters are also present
    """
    doc_query = build_document_query(query.where_document)
    filters = _search_filter_list(query.where)

    if doc_query is not None:
        if filters:
            return {"bool": {"must": [doc_query], "filter": filters}}
        return doc_query

    if filters:
        if len(filters) == 1 and ("term" in filters[0] or "range" in filters[0]):
            return filters[0]
        return {"bool": {"filter": filters}}
    return None


def build_knn_expression(
    query_vector: Sequence[float],
    k: int,
    where: Optional[Filter] = None,
) -> Dict[str, Any]:
    knn_expr: Dict[str, Any] = {
        "field": CollectionFieldNames.EMBEDDING,
        "k": k,
        "query_vector": list(query_vector),
    }
    filters = _search_filter_list(where)
    if filters:
        knn_expr["filter"] = filters
    return knn_expr


def build_search_parm(
    query: Optional[HybridQuery],
    knn_vector: Optional[Sequence[float]],
    knn: Optional[HybridKnn],
    rank: Optional[HybridRank],
    n_results: int,
) -> Dict[str, Any]:
    """Assemble the search_parm document submitted to DBMS_HYBRID_SEARCH.GET_SQL"""
    search_parm: Dict[str, Any] = {}

    if query is not None:
        query_expr = build_query_expression(query)
        if query_expr:
            search_parm["query"] = query_expr

    if knn is not None and knn_vector is not None:
        search_parm["knn"] = build_knn_expression(knn_vector, knn.n_results or n_results, knn.where)

    if rank is not None:
        search_parm["rank"] = rank.to_dict()

    search_parm["size"] = n_results
    return search_parm


def is_hybrid_invalid_argument(exc: BaseException) -> bool:
    """
    True when the hybrid search facility rejected the search_parm shape

    Only this condition triggers the client-side fallback; any other error,
    SQL or not, propagates unchanged.
    """
    if not isinstance(exc, SqlError):
        return False
    if driver_error_code(exc) == HYBRID_INVALID_ARGUMENT_CODE:
        return True
    return "invalid argument" in str(exc).lower()


# ==================== Fluent builder ====================


class _DocumentBuilder:
    """Entry point for building document filter expressions."""

    def contains(self, text: Union[str, List[str]]) -> DocFilter:
        if isinstance(text, list):
            if len(text) == 1:
                return Contains(text[0])
            return DocAnd([Contains(t) for t in text])
        return Contains(text)

    def regex(self, pattern: str) -> DocFilter:
        return Regex(pattern)


DOCUMENT = _DocumentBuilder()


class MetadataField:
    """Metadata field helper supporting comparison operators."""

    def __init__(self, key: str):
        self._key = key

    def __eq__(self, other: Any) -> Filter:  # type: ignore[override]
        return Eq(self._key, other)

    def __ne__(self, other: Any) -> Filter:  # type: ignore[override]
        return Ne(self._key, other)

    def __lt__(self, other: Any) -> Filter:
        return Lt(self._key, other)

    def __le__(self, other: Any) -> Filter:
        return Lte(self._key, other)

    def __gt__(self, other: Any) -> Filter:
        return Gt(self._key, other)

    def __ge__(self, other: Any) -> Filter:
        return Gte(self._key, other)

    def is_in(self, values: Sequence[Any]) -> Filter:
        return In(self._key, list(values))

    def not_in(self, values: Sequence[Any]) -> Filter:
        return Nin(self._key, list(values))


def K(key: str) -> MetadataField:
    """Metadata field alias."""
    return MetadataField(key)


class TextQuery:
    """Container for knn query_texts."""

    def __init__(self, texts: Union[str, List[str]]):
        self.texts = [texts] if isinstance(texts, str) else list(texts)


class EmbeddingsQuery:
    """Container for knn query_embeddings."""

    def __init__(self, embeddings: Union[List[float], List[List[float]]]):
        if embeddings is None or len(embeddings) == 0:
            raise InvalidInputError("query_embeddings must not be empty")
        if isinstance(embeddings[0], (int, float)):
            embeddings = [embeddings]
        self.vectors = [list(v) for v in embeddings]


class _TextBuilder:
    def __call__(self, texts: Union[str, List[str]]) -> TextQuery:
        return TextQuery(texts)


class _EmbeddingsBuilder:
    def __call__(self, embeddings: Union[List[float], List[List[float]]]) -> EmbeddingsQuery:
        return EmbeddingsQuery(embeddings)


TEXT = _TextBuilder()
EMBEDDINGS = _EmbeddingsBuilder()

# select() field constants
IDS = "ids"
DOCUMENTS = "documents"
METADATAS = "metadatas"
EMBEDDINGS_FIELD = "embeddings"
SCORES = "scores"


class HybridSearch:
    """
    Fluent builder for Collection.hybrid_search_advanced().

    Example:
        search = (
            HybridSearch()
            .query(DOCUMENT.contains("machine learning"), K("category") == "AI")
            .knn(TEXT("AI research"), K("year") > 2020, n_results=10)
            .rank(rank_window_size=60)
            .limit(5)
            .select(DOCUMENTS, METADATAS)
        )
        result = await collection.hybrid_search_advanced(search=search)
    """

    def __init__(self):
        self._query: Optional[HybridQuery] = None
        self._knn: Optional[HybridKnn] = None
        self._rank: Optional[HybridRank] = None
        self._n_results: Optional[int] = None
        self._include: Optional[List[str]] = None

    def query(self, *filters: Any, where: WhereParam = None, where_document: WhereDocumentParam = None) -> "HybridSearch":
        doc_filters: List[DocFilter] = []
        meta_filters: List[Filter] = []
        for item in (where_document, where) + filters:
            if item is None:
                continue
            if isinstance(item, str):
                doc_filters.append(Contains(item))
            elif isinstance(item, DocFilter):
                doc_filters.append(item)
            elif isinstance(item, Filter):
                meta_filters.append(item)
            elif isinstance(item, dict):
                if any(key in item for key in ("$contains", "$regex")):
                    doc_filters.append(parse_where_document(item))
                else:
                    meta_filters.append(parse_where(item))
            else:
                raise InvalidInputError(f"Unsupported query filter type: {type(item).__name__}")

        doc_filter = None
        if len(doc_filters) == 1:
            doc_filter = doc_filters[0]
        elif doc_filters:
            doc_filter = DocAnd(doc_filters)

        self._query = HybridQuery(where=merge_filters(*meta_filters), where_document=doc_filter)
        return self

    def knn(
        self,
        *inputs: Any,
        where: WhereParam = None,
        n_results: Optional[int] = None,
        query_texts: Optional[Union[str, List[str]]] = None,
        query_embeddings: Optional[Any] = None,
    ) -> "HybridSearch":
        meta_filters: List[Filter] = [f for f in (parse_where(where),) if f is not None]
        for item in inputs:
            if isinstance(item, EmbeddingsQuery):
                query_embeddings = item.vectors
            elif isinstance(item, TextQuery):
                query_texts = item.texts
            elif isinstance(item, str):
                query_texts = [item]
            elif isinstance(item, (Filter, dict)):
                meta_filters.append(parse_where(item))
            else:
                raise InvalidInputError(f"Unsupported knn argument type: {type(item).__name__}")

        knn = HybridKnn(
            query_texts=query_texts,
            query_embeddings=query_embeddings,
            where=merge_filters(*meta_filters),
            n_results=n_results,
        )
        if not knn.has_input:
            raise InvalidInputError("knn requires either query_texts or query_embeddings")
        self._knn = knn
        return self

    def rank(self, rank: Optional[Union[str, Dict[str, Any], HybridRank]] = None, **kwargs) -> "HybridSearch":
        """
        Configure the ranking strategy.

            rank()                               -> rrf with engine defaults
            rank("rrf", rank_window_size=60)     -> rrf with parameters
            rank(Rrf(60, 60)) / rank({"rrf": {...}})
        """
        if rank is None or rank == "rrf":
            unsupported = set(kwargs) - {"rank_window_size", "rank_constant"}
            if unsupported:
                raise InvalidInputError(f"Unsupported parameters for rrf rank: {sorted(unsupported)}")
            self._rank = Rrf(kwargs.get("rank_window_size"), kwargs.get("rank_constant"))
        elif isinstance(rank, str):
            raise InvalidInputError("Only 'rrf' rank method is supported")
        else:
            if kwargs:
                raise InvalidInputError("Do not mix rank objects with keyword parameters")
            self._rank = as_rank(rank)
        return self

    def limit(self, n_results: int) -> "HybridSearch":
        if n_results <= 0:
            raise InvalidInputError(f"n_results must be positive, got {n_results}")
        self._n_results = n_results
        return self

    def select(self, *fields: str) -> "HybridSearch":
        include: List[str] = []
        for name in fields:
            name = name.lower()
            if name in (DOCUMENTS, METADATAS, EMBEDDINGS_FIELD) and name not in include:
                include.append(name)
        self._include = include
        return self

    def build(self) -> Dict[str, Any]:
        """Keyword arguments for Collection.hybrid_search_advanced()"""
        params: Dict[str, Any] = {"query": self._query, "knn": self._knn, "rank": self._rank}
        if self._n_results is not None:
            params["n_results"] = self._n_results
        if self._include is not None:
            params["include"] = list(self._include)
        return params
