"""
Admin API for database management, plus the proxies that keep collection
operations and database operations on separate objects.
"""
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, List, Optional, Sequence

from .configuration import _NOT_PROVIDED
from .database import Database

if TYPE_CHECKING:
    from .client_base import BaseClient
    from .collection import Collection

DEFAULT_TENANT = "sys"


class AdminAPI(ABC):
    """
    Abstract admin API interface for database management.
    """

    @abstractmethod
    async def create_database(self, name: str, tenant: str = DEFAULT_TENANT) -> None:
        """Create database (no-op if it exists)"""

    @abstractmethod
    async def get_database(self, name: str, tenant: str = DEFAULT_TENANT) -> Database:
        """
        Get database object

        Raises:
            NotFoundError: database does not exist
        """

    @abstractmethod
    async def delete_database(self, name: str, tenant: str = DEFAULT_TENANT) -> None:
        """Delete database (no-op if it does not exist)"""

    @abstractmethod
    async def list_databases(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        tenant: str = DEFAULT_TENANT
    ) -> Sequence[Database]:
        """
        List databases

        Args:
            limit: maximum number of results to return
            offset: number of results to skip
            tenant: tenant name
        """


class _AdminClientProxy(AdminAPI):
    """
    Facade exposing only database operations of the underlying client.

    Note: This is an internal class. Users should use the AdminClient() factory function.
    """

    _server: "BaseClient"

    def __init__(self, server: "BaseClient") -> None:
        self._server = server

    async def create_database(self, name: str, tenant: str = DEFAULT_TENANT) -> None:
        return await self._server.create_database(name=name, tenant=tenant)

    async def get_database(self, name: str, tenant: str = DEFAULT_TENANT) -> Database:
        return await self._server.get_database(name=name, tenant=tenant)

    async def delete_database(self, name: str, tenant: str = DEFAULT_TENANT) -> None:
        return await self._server.delete_database(name=name, tenant=tenant)

    async def list_databases(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        tenant: str = DEFAULT_TENANT
    ) -> Sequence[Database]:
        return await self._server.list_databases(limit=limit, offset=offset, tenant=tenant)

    async def close(self) -> None:
        await self._server.close()

    def __repr__(self):
        return f"<AdminClient server={self._server}>"

    async def __aenter__(self):
        await self._server.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return await self._server.__aexit__(exc_type, exc_val, exc_tb)


class _ClientProxy:
    """
    Facade exposing only collection operations of the underlying client.

    Note: This is an internal class. Users should use the Client() factory function.
    """

    _server: "BaseClient"

    def __init__(self, server: "BaseClient") -> None:
        self._server = server

    async def create_collection(
        self,
        name: str,
        configuration: Any = _NOT_PROVIDED,
        embedding_function: Any = _NOT_PROVIDED,
        **kwargs
    ) -> "Collection":
        return await self._server.create_collection(
            name=name,
            configuration=configuration,
            embedding_function=embedding_function,
            **kwargs
        )

    async def get_collection(self, name: str, embedding_function: Any = _NOT_PROVIDED) -> "Collection":
        return await self._server.get_collection(name=name, embedding_function=embedding_function)

    async def delete_collection(self, name: str) -> None:
        return await self._server.delete_collection(name=name)

    async def list_collections(self) -> List["Collection"]:
        return await self._server.list_collections()

    async def has_collection(self, name: str) -> bool:
        return await self._server.has_collection(name=name)

    async def get_or_create_collection(
        self,
        name: str,
        configuration: Any = _NOT_PROVIDED,
        embedding_function: Any = _NOT_PROVIDED,
        **kwargs
    ) -> "Collection":
        return await self._server.get_or_create_collection(
            name=name,
            configuration=configuration,
            embedding_function=embedding_function,
            **kwargs
        )

    async def count_collection(self) -> int:
        return await self._server.count_collection()

    async def close(self) -> None:
        await self._server.close()

    @property
    def server(self) -> "BaseClient":
        return self._server

    def __repr__(self):
        return f"<Client server={self._server}>"

    async def __aenter__(self):
        await self._server.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return await self._server.__aexit__(exc_type, exc_val, exc_tb)
