"""
Remote server mode client - based on aiomysql
Supports both seekdb Server and OceanBase Server
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import aiomysql
import pymysql

from .admin_client import DEFAULT_TENANT
from .client_base import MAX_LIMIT, BaseClient
from .configuration import DEFAULT_MAX_CONNECTIONS, DEFAULT_PORT, ServerConfig
from .database import Database
from .errors import NotFoundError, classify_driver_error
from .sql_utils import quote_identifier

logger = logging.getLogger(__name__)

# Errors raised by the driver or the transport underneath it
_DRIVER_ERRORS = (pymysql.err.MySQLError, OSError)

_SCHEMATA_COLUMNS = "SCHEMA_NAME, DEFAULT_CHARACTER_SET_NAME, DEFAULT_COLLATION_NAME"


async def _run(conn: Any, sql: str, params: Optional[Sequence[Any]]) -> Any:
    cursor = await conn.cursor()
    try:
        # no interpolation without parameters, so literal '%' survives
        await cursor.execute(sql, list(params) if params else None)
        return cursor.rowcount, await cursor.fetchall()
    finally:
        await cursor.close()


class _ConnectionSession:
    """execute/fetch_all pinned to one pooled connection"""

    def __init__(self, client: "RemoteServerClient", conn: Any) -> None:
        self._client = client
        self._conn = conn

    async def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> int:
        rowcount, _ = await self._client._run_classified(self._conn, sql, params)
        return rowcount

    async def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        _, rows = await self._client._run_classified(self._conn, sql, params)
        return list(rows or [])


class RemoteServerClient(BaseClient):
    """Remote server mode client (aiomysql connection pool, lazy loading)

    Supports both seekdb Server and OceanBase Server.
    Uses user@tenant format for authentication.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = DEFAULT_PORT,
        tenant: str = DEFAULT_TENANT,
        database: str = "test",
        user: str = "root",
        password: str = "",
        charset: str = "utf8mb4",
        max_connections: int = DEFAULT_MAX_CONNECTIONS,
        **kwargs
    ):
        """
        Initialize remote server mode client (no immediate connection)

        Args:
            host: server address
            port: server port (default 2881)
            tenant: tenant name (default "sys" for seekdb Server, "test" for OceanBase)
            database: database name
            user: username (without tenant suffix)
            password: password
            charset: charset (default "utf8mb4")
            max_connections: upper bound of pooled connections
            **kwargs: other aiomysql connection parameters
        """
        self.config = ServerConfig(
            host=host,
            port=port,
            tenant=tenant,
            database=database,
            user=user,
            password=password,
            charset=charset,
            max_connections=max_connections,
            connect_kwargs=kwargs,
        )
        self._pool: Optional[aiomysql.Pool] = None
        # bound to the running loop on first use
        self._pool_lock: Optional[asyncio.Lock] = None

        logger.info(
            f"Initialize RemoteServerClient: {self.full_user}@{self.host}:{self.port}/{self.database}"
        )

    @classmethod
    def from_config(cls, config: ServerConfig) -> "RemoteServerClient":
        return cls(
            host=config.host,
            port=config.port,
            tenant=config.tenant,
            database=config.database,
            user=config.user,
            password=config.password,
            charset=config.charset,
            max_connections=config.max_connections,
            **config.connect_kwargs
        )

    @property
    def host(self) -> str:
        return self.config.host

    @property
    def port(self) -> int:
        return self.config.port

    @property
    def tenant(self) -> str:
        return self.config.tenant

    @property
    def database(self) -> str:
        return self.config.database

    @property
    def full_user(self) -> str:
        return self.config.full_user

    # ==================== Connection Management ====================

    def _get_pool_lock(self) -> asyncio.Lock:
        if self._pool_lock is None:
            self._pool_lock = asyncio.Lock()
        return self._pool_lock

    async def _ensure_connection(self) -> aiomysql.Pool:
        """Ensure the pool is created (internal method)"""
        async with self._get_pool_lock():
            if self._pool is None or self._pool.closed:
                try:
                    self._pool = await aiomysql.create_pool(
                        host=self.host,
                        port=self.port,
                        user=self.full_user,  # Remote server format: user@tenant
                        password=self.config.password,
                        db=self.database,
                        charset=self.config.charset,
                        cursorclass=aiomysql.DictCursor,
                        autocommit=True,
                        minsize=1,
                        maxsize=self.config.max_connections,
                        **self.config.connect_kwargs
                    )
                except _DRIVER_ERRORS as e:
                    raise classify_driver_error(
                        e, f"Failed to connect to {self.host}:{self.port}/{self.database}"
                    ) from e
                logger.info(f"Connected to remote server: {self.host}:{self.port}/{self.database}")
        return self._pool

    def is_connected(self) -> bool:
        """Check connection status"""
        return self._pool is not None and not self._pool.closed

    async def close(self) -> None:
        """Close the pool; in-flight statements finish first"""
        async with self._get_pool_lock():
            if self._pool is not None:
                self._pool.close()
                await self._pool.wait_closed()
                self._pool = None
                logger.info("Connection pool closed")

    async def _run_classified(self, conn: Any, sql: str, params: Optional[Sequence[Any]]) -> Any:
        try:
            return await _run(conn, sql, params)
        except _DRIVER_ERRORS as e:
            logger.debug(f"Statement failed: {sql}")
            raise classify_driver_error(e) from e

    @asynccontextmanager
    async def _acquire(self) -> AsyncIterator[Any]:
        """Borrow a pooled connection; failures to open one are classified"""
        pool = await self._ensure_connection()
        try:
            conn = await pool.acquire()
        except _DRIVER_ERRORS as e:
            raise classify_driver_error(
                e, f"Failed to acquire a connection to {self.host}:{self.port}/{self.database}"
            ) from e
        try:
            yield conn
        finally:
            await pool.release(conn)

    async def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> int:
        async with self._acquire() as conn:
            rowcount, _ = await self._run_classified(conn, sql, params)
        return rowcount

    async def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        async with self._acquire() as conn:
            _, rows = await self._run_classified(conn, sql, params)
        return list(rows or [])

    @asynccontextmanager
    async def session(self) -> AsyncIterator[_ConnectionSession]:
        async with self._acquire() as conn:
            yield _ConnectionSession(self, conn)

    @property
    def mode(self) -> str:
        return "RemoteServerClient"

    # ==================== Database Management ====================

    def _check_tenant(self, tenant: str) -> None:
        if tenant != self.tenant and tenant != DEFAULT_TENANT:
            logger.warning(
                f"Specified tenant '{tenant}' differs from client tenant '{self.tenant}', using client tenant"
            )

    async def create_database(self, name: str, tenant: str = DEFAULT_TENANT) -> None:
        """
        Create database (no-op if it exists)

        Note:
            Remote server has multi-tenant architecture. Database is scoped to client's tenant.
        """
        self._check_tenant(tenant)
        logger.info(f"Creating database: {name} in tenant: {self.tenant}")
        await self.execute(f"CREATE DATABASE IF NOT EXISTS {quote_identifier(name)}")
        logger.info(f"Database created: {name} in tenant: {self.tenant}")

    async def get_database(self, name: str, tenant: str = DEFAULT_TENANT) -> Database:
        """
        Get database object

        Raises:
            NotFoundError: database does not exist
        """
        self._check_tenant(tenant)
        logger.info(f"Getting database: {name} in tenant: {self.tenant}")
        rows = await self.fetch_all(
            f"SELECT {_SCHEMATA_COLUMNS} FROM information_schema.SCHEMATA WHERE SCHEMA_NAME = %s",
            [name],
        )
        if not rows:
            raise NotFoundError(f"Database not found: {name}")
        return Database.from_row(rows[0], tenant=self.tenant)

    async def delete_database(self, name: str, tenant: str = DEFAULT_TENANT) -> None:
        """Delete database (no-op if it does not exist)"""
        self._check_tenant(tenant)
        logger.info(f"Deleting database: {name} in tenant: {self.tenant}")
        await self.execute(f"DROP DATABASE IF EXISTS {quote_identifier(name)}")
        logger.info(f"Database deleted: {name} in tenant: {self.tenant}")

    async def list_databases(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        tenant: str = DEFAULT_TENANT
    ) -> Sequence[Database]:
        """
        List databases in the client's tenant

        Args:
            limit: maximum number of results to return
            offset: number of results to skip
            tenant: tenant name (if different from client tenant, will use client tenant)
        """
        self._check_tenant(tenant)
        logger.info(f"Listing databases in tenant: {self.tenant}")

        sql = f"SELECT {_SCHEMATA_COLUMNS} FROM information_schema.SCHEMATA"
        params: List[Any] = []
        if limit is not None or offset is not None:
            sql += " LIMIT %s"
            params.append(limit if limit is not None else MAX_LIMIT)
            if offset is not None:
                sql += " OFFSET %s"
                params.append(offset)

        rows = await self.fetch_all(sql, params)
        databases = [Database.from_row(row, tenant=self.tenant) for row in rows]
        logger.info(f"Found {len(databases)} databases in tenant {self.tenant}")
        return databases

    def __repr__(self):
        status = "connected" if self.is_connected() else "disconnected"
        return f"<RemoteServerClient {self.full_user}@{self.host}:{self.port}/{self.database} status={status}>"
