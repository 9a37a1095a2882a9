"""
Base connection interface definition
"""
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence


class BaseConnection(ABC):
    """
    Abstract base class for connection management.

    Statements are executed asynchronously; parameters are bound positionally
    to ``%s`` placeholders in declaration order. Rows are returned as dicts
    keyed by column name (or alias).
    """

    # ==================== Connection Management ====================

    @abstractmethod
    async def _ensure_connection(self) -> Any:
        """Ensure the pool/connection is established (internal method)"""

    @abstractmethod
    def is_connected(self) -> bool:
        """Check connection status"""

    @abstractmethod
    async def close(self) -> None:
        """Close the connection and release resources"""

    # ==================== Statement Execution ====================

    @abstractmethod
    async def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> int:
        """Execute a statement and return the number of affected rows"""

    @abstractmethod
    async def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Execute a query and return all rows"""

    @asynccontextmanager
    async def session(self) -> AsyncIterator[Any]:
        """
        Yield an object with ``execute``/``fetch_all`` bound to a single
        connection, so session variables set by one statement are visible to
        the next. Single-connection implementations can yield themselves.
        """
        yield self

    @property
    @abstractmethod
    def mode(self) -> str:
        """Return client mode (e.g., 'RemoteServerClient')"""

    # ==================== Context Manager ====================

    async def __aenter__(self):
        await self._ensure_connection()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
