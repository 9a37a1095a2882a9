"""
Blocking facade over the async client, for code that has no event loop of its own.

    >>> from aioseekdb.client.sync import SyncClient
    >>> client = SyncClient(Client(host="localhost"))
    >>> collection = client.get_or_create_collection("docs")
    >>> collection.add(ids="1", documents="hello")
    >>> client.close()

The facade owns a private event loop and must not be used while another loop
is running in the same thread.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, List

from .admin_client import _ClientProxy
from .collection import Collection

logger = logging.getLogger(__name__)


class _LoopRunner:
    def __init__(self) -> None:
        self._loop = asyncio.new_event_loop()

    def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return self._loop.run_until_complete(func(*args, **kwargs))
        raise RuntimeError(
            "The blocking client can't be used inside a running event loop; use the async client instead"
        )

    @property
    def closed(self) -> bool:
        return self._loop.is_closed()

    def close(self) -> None:
        if not self._loop.is_closed():
            self._loop.run_until_complete(self._loop.shutdown_asyncgens())
            self._loop.close()


class SyncCollection:
    """Blocking wrapper around a Collection"""

    _PROXIED = (
        "add", "update", "upsert", "delete",
        "query", "query_embeddings", "query_texts", "get",
        "hybrid_search", "hybrid_search_advanced", "count", "peek",
    )

    def __init__(self, collection: Collection, runner: _LoopRunner) -> None:
        self._collection = collection
        self._runner = runner

    @property
    def collection(self) -> Collection:
        return self._collection

    @property
    def name(self) -> str:
        return self._collection.name

    @property
    def dimension(self) -> int:
        return self._collection.dimension

    @property
    def distance(self):
        return self._collection.distance

    def __getattr__(self, item: str) -> Any:
        if item in self._PROXIED:
            method = getattr(self._collection, item)
            return lambda *args, **kwargs: self._runner.call(method, *args, **kwargs)
        raise AttributeError(item)

    def __repr__(self) -> str:
        return f"Sync{self._collection!r}"


class SyncClient:
    """Blocking wrapper around the proxy returned by Client()"""

    def __init__(self, client: _ClientProxy) -> None:
        self._client = client
        self._runner = _LoopRunner()

    def _wrap(self, collection: Collection) -> SyncCollection:
        return SyncCollection(collection, self._runner)

    def create_collection(self, name: str, **kwargs) -> SyncCollection:
        return self._wrap(self._runner.call(self._client.create_collection, name, **kwargs))

    def get_collection(self, name: str, **kwargs) -> SyncCollection:
        return self._wrap(self._runner.call(self._client.get_collection, name, **kwargs))

    def get_or_create_collection(self, name: str, **kwargs) -> SyncCollection:
        return self._wrap(self._runner.call(self._client.get_or_create_collection, name, **kwargs))

    def delete_collection(self, name: str) -> None:
        self._runner.call(self._client.delete_collection, name)

    def has_collection(self, name: str) -> bool:
        return self._runner.call(self._client.has_collection, name)

    def list_collections(self) -> List[SyncCollection]:
        return [self._wrap(c) for c in self._runner.call(self._client.list_collections)]

    def count_collection(self) -> int:
        return self._runner.call(self._client.count_collection)

    def close(self) -> None:
        """Close the underlying client, then the private loop"""
        if self._runner.closed:
            return
        try:
            self._runner.call(self._client.close)
        finally:
            self._runner.close()
            logger.debug("Blocking client closed")

    def __enter__(self) -> "SyncClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
