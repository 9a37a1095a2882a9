"""
Shared test doubles

RecordingClient replaces the aiomysql pool with an in-memory script: every
statement is recorded as (sql, params) and answered by the first rule whose
fragment occurs in the SQL text.
"""
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from aioseekdb.client.client_seekdb_server import RemoteServerClient
from aioseekdb.client.collection import Collection


@dataclass
class _Rule:
    fragment: str
    rows: List[Dict[str, Any]] = field(default_factory=list)
    rowcount: int = 1
    error: Optional[BaseException] = None
    once: bool = False


class RecordingClient(RemoteServerClient):
    """RemoteServerClient whose statements never leave the process"""

    def __init__(self, **kwargs):
        super().__init__(host="localhost", **kwargs)
        self.statements: List[Tuple[str, List[Any]]] = []
        self.sessions = 0
        self.closed = False
        self._rules: List[_Rule] = []

    def on(
        self,
        fragment: str,
        rows: Optional[List[Dict[str, Any]]] = None,
        rowcount: int = 1,
        error: Optional[BaseException] = None,
        once: bool = False,
    ) -> "RecordingClient":
        self._rules.append(_Rule(fragment, list(rows or []), rowcount, error, once))
        return self

    @property
    def sqls(self) -> List[str]:
        return [sql for sql, _ in self.statements]

    def statements_matching(self, fragment: str) -> List[Tuple[str, List[Any]]]:
        return [(sql, params) for sql, params in self.statements if fragment in sql]

    def _answer(self, sql: str, params: Optional[Sequence[Any]]) -> Optional[_Rule]:
        self.statements.append((sql, list(params) if params else []))
        for rule in self._rules:
            if rule.fragment in sql:
                if rule.once:
                    self._rules.remove(rule)
                if rule.error is not None:
                    raise rule.error
                return rule
        return None

    async def _ensure_connection(self):
        return None

    def is_connected(self) -> bool:
        return not self.closed

    async def close(self) -> None:
        self.closed = True

    async def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> int:
        rule = self._answer(sql, params)
        return rule.rowcount if rule else 1

    async def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        rule = self._answer(sql, params)
        return [dict(row) for row in rule.rows] if rule else []

    @asynccontextmanager
    async def session(self):
        self.sessions += 1
        yield self


class FixedEmbeddingFunction:
    """Deterministic embedding function: [len(doc), index, 1.0, ...]"""

    def __init__(self, dimension: int = 3):
        self.dimension = dimension
        self.calls: List[List[str]] = []

    def _vector(self, index: int, document: str) -> List[float]:
        head = [float(len(document)), float(index)]
        return (head + [1.0] * self.dimension)[:self.dimension]

    def __call__(self, input):
        documents = [input] if isinstance(input, str) else list(input)
        self.calls.append(documents)
        return [self._vector(i, doc) for i, doc in enumerate(documents)]


class AsyncFixedEmbeddingFunction(FixedEmbeddingFunction):
    """Coroutine variant of FixedEmbeddingFunction"""

    async def __call__(self, input):
        return super().__call__(input)


def describe_rows(dimension: int = 3) -> List[Dict[str, Any]]:
    return [
        {"Field": "_id", "Type": "varbinary(512)", "Null": "NO", "Key": "PRI"},
        {"Field": "document", "Type": "text", "Null": "YES", "Key": ""},
        {"Field": "embedding", "Type": f"VECTOR({dimension})", "Null": "YES", "Key": ""},
        {"Field": "metadata", "Type": "json", "Null": "YES", "Key": ""},
    ]


def create_table_rows(table: str, dimension: int = 3, distance: str = "cosine") -> List[Dict[str, Any]]:
    return [{
        "Table": table,
        "Create Table": (
            f"CREATE TABLE `{table}` (\n"
            f"  `_id` varbinary(512) NOT NULL,\n"
            f"  `embedding` VECTOR({dimension}) DEFAULT NULL,\n"
            f"  VECTOR KEY `idx_vec` (`embedding`) WITH (DISTANCE={distance.upper()}, TYPE=HNSW, LIB=VSAG)\n"
            f") ORGANIZATION HEAP"
        ),
    }]


@pytest.fixture
def client():
    return RecordingClient()


@pytest.fixture
def embedding_function():
    return FixedEmbeddingFunction(dimension=3)


@pytest.fixture
def collection(client, embedding_function):
    return Collection(
        client=client,
        name="docs",
        dimension=3,
        distance="cosine",
        embedding_function=embedding_function,
    )


@pytest.fixture
def bare_collection(client):
    """Collection without an embedding function"""
    return Collection(client=client, name="bare", dimension=3, distance="l2")
