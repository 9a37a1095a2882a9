"""
Result containers returned by collection reads

QueryResult is indexed by query then by hit (``ids[q][r]``); GetResult is flat
(``ids[i]``). Optional arrays are None when not requested, and when present they
always have the same shape as ``ids``.

Both support dict-style access (``result["ids"]``) for code written against the
dict results of other clients.
"""
import json
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

from .errors import SerializationError

Metadata = Dict[str, Any]


class _ResultMixin:
    def __getitem__(self, key: str) -> Any:
        if key not in self.keys():
            raise KeyError(key)
        return getattr(self, key)

    def get(self, key: str, default: Any = None) -> Any:
        value = getattr(self, key, None) if key in self.keys() else None
        return default if value is None else value

    def keys(self) -> List[str]:
        return [f.name for f in fields(self)]

    def __contains__(self, key: str) -> bool:
        return key in self.keys() and getattr(self, key) is not None

    def to_dict(self) -> Dict[str, Any]:
        """Dictionary of ids plus every optional array that is present"""
        return {k: getattr(self, k) for k in self.keys() if getattr(self, k) is not None}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)


@dataclass
class QueryResult(_ResultMixin):
    """Ranked results of one or more queries"""
    ids: List[List[str]] = field(default_factory=list)
    distances: Optional[List[List[float]]] = None
    documents: Optional[List[List[Optional[str]]]] = None
    metadatas: Optional[List[List[Optional[Metadata]]]] = None
    embeddings: Optional[List[List[Optional[List[float]]]]] = None

    def __post_init__(self):
        shape = [len(hits) for hits in self.ids]
        for name in ("distances", "documents", "metadatas", "embeddings"):
            value = getattr(self, name)
            if value is not None and [len(hits) for hits in value] != shape:
                raise SerializationError(f"QueryResult.{name} does not match the shape of ids")

    @classmethod
    def empty(cls, num_queries: int = 1, include: Optional[List[str]] = None) -> "QueryResult":
        include = include or []
        return cls(
            ids=[[] for _ in range(num_queries)],
            distances=[[] for _ in range(num_queries)],
            documents=[[] for _ in range(num_queries)] if "documents" in include else None,
            metadatas=[[] for _ in range(num_queries)] if "metadatas" in include else None,
            embeddings=[[] for _ in range(num_queries)] if "embeddings" in include else None,
        )

    def __len__(self) -> int:
        return len(self.ids)

    def __repr__(self) -> str:
        return f"QueryResult(queries={len(self.ids)}, hits={[len(h) for h in self.ids]})"


@dataclass
class GetResult(_ResultMixin):
    """Unranked, filtered read"""
    ids: List[str] = field(default_factory=list)
    documents: Optional[List[Optional[str]]] = None
    metadatas: Optional[List[Optional[Metadata]]] = None
    embeddings: Optional[List[Optional[List[float]]]] = None

    def __post_init__(self):
        for name in ("documents", "metadatas", "embeddings"):
            value = getattr(self, name)
            if value is not None and len(value) != len(self.ids):
                raise SerializationError(f"GetResult.{name} does not match the length of ids")

    def as_query_result(self) -> QueryResult:
        """Single-query QueryResult view with zero distances"""
        return QueryResult(
            ids=[list(self.ids)],
            distances=[[0.0] * len(self.ids)],
            documents=[list(self.documents)] if self.documents is not None else None,
            metadatas=[list(self.metadatas)] if self.metadatas is not None else None,
            embeddings=[list(self.embeddings)] if self.embeddings is not None else None,
        )

    def __len__(self) -> int:
        return len(self.ids)

    def __repr__(self) -> str:
        return f"GetResult(items={len(self.ids)})"
