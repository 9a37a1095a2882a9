"""
Database management tests - admin API, client factories and the aiomysql-backed
server client
"""
import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pymysql
import pytest

import aioseekdb
from aioseekdb import Database, NotFoundError, SeekDBConnectionError, SqlError
from aioseekdb.client.admin_client import _AdminClientProxy, _ClientProxy
from aioseekdb.client.client_seekdb_server import RemoteServerClient


SCHEMATA_ROW = {
    "SCHEMA_NAME": "db1",
    "DEFAULT_CHARACTER_SET_NAME": "utf8mb4",
    "DEFAULT_COLLATION_NAME": "utf8mb4_general_ci",
}


class TestAdminAPI:
    """Database operations through the admin proxy"""

    async def test_create_and_delete(self, client):
        admin = _AdminClientProxy(server=client)

        await admin.create_database("db1")
        await admin.delete_database("db1")

        assert client.sqls == ["CREATE DATABASE IF NOT EXISTS `db1`", "DROP DATABASE IF EXISTS `db1`"]

    async def test_get_database(self, client):
        client.on("information_schema.SCHEMATA", [SCHEMATA_ROW])
        admin = _AdminClientProxy(server=client)

        db = await admin.get_database("db1")

        assert client.statements[0][1] == ["db1"]
        assert db == Database(name="db1", tenant="sys")
        assert db.charset == "utf8mb4"
        assert str(db) == "db1"

    async def test_get_missing_database(self, client):
        with pytest.raises(NotFoundError):
            await client.get_database("nope")

    async def test_list_databases_pagination(self, client):
        client.on("SCHEMATA", [SCHEMATA_ROW, dict(SCHEMATA_ROW, SCHEMA_NAME="db2")])

        databases = await client.list_databases(limit=2, offset=1)

        sql, params = client.statements[0]
        assert sql.endswith("FROM information_schema.SCHEMATA LIMIT %s OFFSET %s")
        assert params == [2, 1]
        assert [d.name for d in databases] == ["db1", "db2"]

    async def test_list_databases_offset_only(self, client):
        await client.list_databases(offset=3)
        assert client.statements[0][1] == [18446744073709551615, 3]

    async def test_list_databases_unbounded(self, client):
        await client.list_databases()
        assert client.statements[0] == (
            "SELECT SCHEMA_NAME, DEFAULT_CHARACTER_SET_NAME, DEFAULT_COLLATION_NAME FROM information_schema.SCHEMATA",
            [],
        )

    async def test_tenant_mismatch_warns(self, client, caplog):
        with caplog.at_level(logging.WARNING):
            await client.create_database("db1", tenant="other")
        assert "differs from client tenant" in caplog.text

    async def test_database_names_are_quoted(self, client):
        await client.create_database("we`ird")
        assert client.sqls == ["CREATE DATABASE IF NOT EXISTS `we``ird`"]


class TestFactories:
    """Client() / AdminClient() factories"""

    def test_client_returns_collection_proxy(self, monkeypatch):
        monkeypatch.setenv("SEEKDB_PASSWORD", "from-env")

        proxy = aioseekdb.Client(host="db.example", port=2882, tenant="t1", database="d1", user="u")

        assert isinstance(proxy, _ClientProxy)
        server = proxy.server
        assert isinstance(server, RemoteServerClient)
        assert server.full_user == "u@t1"
        assert server.config.password == "from-env"
        assert server.database == "d1"
        assert not server.is_connected()
        assert not hasattr(proxy, "create_database")

    def test_explicit_password_wins(self, monkeypatch):
        monkeypatch.setenv("SEEKDB_PASSWORD", "from-env")
        proxy = aioseekdb.Client(host="db.example", password="secret")
        assert proxy.server.config.password == "secret"
        assert "secret" not in repr(proxy.server.config)

    def test_admin_client_uses_information_schema(self):
        admin = aioseekdb.AdminClient(host="db.example")
        assert isinstance(admin, _AdminClientProxy)
        assert not hasattr(admin, "create_collection")
        assert "information_schema" in repr(admin)

    def test_client_from_env(self):
        proxy = aioseekdb.Client.from_env(environ={
            "SERVER_HOST": "10.0.0.1",
            "SERVER_PORT": "2999",
            "SERVER_MAX_CONNECTIONS": "2",
            "SERVER_PASSWORD": "pw",
        })
        assert proxy.server.host == "10.0.0.1"
        assert proxy.server.port == 2999
        assert proxy.server.config.max_connections == 2


def fake_pool(cursor):
    conn = MagicMock()
    conn.cursor = AsyncMock(return_value=cursor)

    pool = MagicMock()
    pool.closed = False
    pool.acquire = AsyncMock(return_value=conn)
    pool.release = AsyncMock()
    pool.wait_closed = AsyncMock()
    return pool


def fake_cursor(rows=None, rowcount=0, error=None):
    cursor = MagicMock()
    cursor.execute = AsyncMock(side_effect=error, return_value=rowcount)
    cursor.fetchall = AsyncMock(return_value=rows or [])
    cursor.close = AsyncMock()
    cursor.rowcount = rowcount
    return cursor


class TestRemoteServerClient:
    """RemoteServerClient on top of a mocked aiomysql pool"""

    async def test_pool_is_created_lazily_with_tenant_user(self):
        server = RemoteServerClient(host="h", port=1, tenant="t", user="u", password="p", max_connections=3)
        cursor = fake_cursor(rows=[{"x": 1}])
        pool = fake_pool(cursor)

        with patch("aioseekdb.client.client_seekdb_server.aiomysql.create_pool", AsyncMock(return_value=pool)) as create:
            assert not server.is_connected()
            rows = await server.fetch_all("SELECT %s AS x", [1])
            await server.fetch_all("SELECT 1")

        create.assert_awaited_once()
        kwargs = create.await_args.kwargs
        assert kwargs["user"] == "u@t"
        assert kwargs["maxsize"] == 3
        assert kwargs["autocommit"] is True
        assert rows == [{"x": 1}]
        assert cursor.execute.await_args_list[0].args == ("SELECT %s AS x", [1])
        # no parameters: no interpolation
        assert cursor.execute.await_args_list[1].args == ("SELECT 1", None)
        assert server.is_connected()

    async def test_execute_returns_rowcount(self):
        server = RemoteServerClient(host="h")
        pool = fake_pool(fake_cursor(rowcount=3))

        with patch("aioseekdb.client.client_seekdb_server.aiomysql.create_pool", AsyncMock(return_value=pool)):
            assert await server.execute("DELETE FROM t WHERE _id IN (%s)", ["1"]) == 3

    @pytest.mark.parametrize("error, expected", [
        (pymysql.err.ProgrammingError(1146, "Table 'test.c$v1$x' doesn't exist"), NotFoundError),
        (pymysql.err.IntegrityError(1062, "Duplicate entry '1' for key 'PRIMARY'"), SqlError),
        (pymysql.err.OperationalError(2013, "Lost connection to MySQL server during query"), SeekDBConnectionError),
    ])
    async def test_driver_errors_are_classified(self, error, expected):
        server = RemoteServerClient(host="h")
        pool = fake_pool(fake_cursor(error=error))

        with patch("aioseekdb.client.client_seekdb_server.aiomysql.create_pool", AsyncMock(return_value=pool)):
            with pytest.raises(expected) as excinfo:
                await server.execute("SELECT 1")

        assert excinfo.value.__cause__ is error

    async def test_connect_failure(self):
        server = RemoteServerClient(host="unreachable")
        error = pymysql.err.OperationalError(2003, "Can't connect to MySQL server")

        with patch("aioseekdb.client.client_seekdb_server.aiomysql.create_pool", AsyncMock(side_effect=error)):
            with pytest.raises(SeekDBConnectionError, match="unreachable"):
                await server.fetch_all("SELECT 1")

        assert not server.is_connected()

    async def test_unreachable_server_on_acquire(self):
        server = RemoteServerClient(host="h", port=2881)
        pool = fake_pool(fake_cursor())
        error = pymysql.err.OperationalError(2003, "Can't connect to MySQL server")
        pool.acquire = AsyncMock(side_effect=error)

        with patch("aioseekdb.client.client_seekdb_server.aiomysql.create_pool", AsyncMock(return_value=pool)):
            with pytest.raises(SeekDBConnectionError, match="h:2881") as excinfo:
                await server.fetch_all("SELECT 1")
            with pytest.raises(SeekDBConnectionError):
                async with server.session():
                    pass

        assert excinfo.value.__cause__ is error
        pool.release.assert_not_awaited()

    async def test_connection_released_after_statement_error(self):
        server = RemoteServerClient(host="h")
        pool = fake_pool(fake_cursor(error=pymysql.err.ProgrammingError(1064, "syntax error")))

        with patch("aioseekdb.client.client_seekdb_server.aiomysql.create_pool", AsyncMock(return_value=pool)):
            with pytest.raises(SqlError):
                await server.execute("SELEC 1")

        pool.release.assert_awaited_once()

    async def test_session_pins_one_connection(self):
        server = RemoteServerClient(host="h")
        cursor = fake_cursor(rows=[{"query_sql": "SELECT 1"}])
        pool = fake_pool(cursor)

        with patch("aioseekdb.client.client_seekdb_server.aiomysql.create_pool", AsyncMock(return_value=pool)):
            async with server.session() as session:
                await session.execute("SET @search_parm = %s", ["{}"])
                rows = await session.fetch_all("SELECT @search_parm")

        pool.acquire.assert_called_once()
        pool.release.assert_awaited_once()
        assert rows == [{"query_sql": "SELECT 1"}]

    async def test_close(self):
        server = RemoteServerClient(host="h")
        pool = fake_pool(fake_cursor())

        with patch("aioseekdb.client.client_seekdb_server.aiomysql.create_pool", AsyncMock(return_value=pool)):
            async with server:
                assert server.is_connected()

        pool.close.assert_called_once()
        pool.wait_closed.assert_awaited_once()
        assert not server.is_connected()
        assert "disconnected" in repr(server)

    def test_client_built_outside_the_event_loop(self):
        server = RemoteServerClient(host="h")
        pool = fake_pool(fake_cursor(rows=[{"x": 1}]))

        async def slow_create_pool(**kwargs):
            await asyncio.sleep(0)
            return pool

        async def run_concurrently():
            return await asyncio.gather(server.fetch_all("SELECT 1"), server.fetch_all("SELECT 1"))

        with patch("aioseekdb.client.client_seekdb_server.aiomysql.create_pool", AsyncMock(side_effect=slow_create_pool)) as create:
            assert asyncio.run(run_concurrently()) == [[{"x": 1}], [{"x": 1}]]

        create.assert_awaited_once()
