"""Tests for the PostgreSQL and Oracle backends with fake drivers.

The fakes record what the strategy asked of the driver; no server is
needed.
"""

import json
from decimal import Decimal
from types import SimpleNamespace
from typing import Any

import asyncpg
import oracledb
import pytest


@pytest.fixture
def strategy():
    from noderun.engine.db import DbQueryStrategy

    strategy = DbQueryStrategy(default_max_rows=1000)
    yield strategy
    strategy.close()


def _spec(connection: dict[str, Any], query: str = "SELECT * FROM t", max_rows: int | None = None):
    from noderun.contracts import DbCallSpec

    return DbCallSpec.model_validate({"connection": connection, "query": query, "max_rows": max_rows})


# =============================================================================
# PostgreSQL
# =============================================================================


class FakeTransaction:
    async def __aenter__(self) -> "FakeTransaction":
        return self

    async def __aexit__(self, *exc: object) -> None:
        return None


class FakePgCursor:
    def __init__(self, records: list[dict[str, Any]]) -> None:
        self._records = records

    async def fetch(self, n: int) -> list[dict[str, Any]]:
        return self._records[:n]


class FakePgStatement:
    def __init__(self, columns: list[tuple[str, str]], records: list[dict[str, Any]]) -> None:
        self._columns = columns
        self._records = records

    def get_attributes(self) -> list[SimpleNamespace]:
        return [SimpleNamespace(name=name, type=SimpleNamespace(name=type_name)) for name, type_name in self._columns]

    async def cursor(self) -> FakePgCursor:
        return FakePgCursor(self._records)

    async def fetch(self) -> list[dict[str, Any]]:
        return []


class FakePgConnection:
    def __init__(self, statement: FakePgStatement, fail_on: str | None = None) -> None:
        self.statement = statement
        self.fail_on = fail_on
        self.executed: list[str] = []
        self.closed = False

    async def execute(self, sql: str) -> str:
        if self.fail_on == "execute":
            raise asyncpg.InterfaceError('schema "nope" does not exist')
        self.executed.append(sql)
        return "SET"

    async def prepare(self, sql: str) -> FakePgStatement:
        if self.fail_on == "prepare":
            raise asyncpg.InterfaceError("syntax error at or near SELEC")
        return self.statement

    async def fetchval(self, sql: str) -> int:
        self.executed.append(sql)
        return 1

    def transaction(self) -> FakeTransaction:
        return FakeTransaction()

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def pg(monkeypatch: pytest.MonkeyPatch):
    """Patch asyncpg.connect; yields a namespace with the fake connection and connect kwargs."""
    state = SimpleNamespace(
        connection=FakePgConnection(
            FakePgStatement(
                [("id", "int4"), ("amount", "numeric"), ("active", "bool")],
                [
                    {"id": 1, "amount": Decimal("9.50"), "active": True},
                    {"id": 2, "amount": Decimal("4"), "active": False},
                    {"id": 3, "amount": Decimal("1.25"), "active": True},
                ],
            )
        ),
        kwargs={},
        connect_error=None,
    )

    async def fake_connect(**kwargs: Any) -> FakePgConnection:
        state.kwargs = kwargs
        if state.connect_error is not None:
            raise state.connect_error
        return state.connection

    from noderun.engine.db import postgres

    monkeypatch.setattr(postgres.asyncpg, "connect", fake_connect)
    return state


PG_CONNECTION = {
    "type": "postgresql",
    "host": "db.example.test",
    "database": "shop",
    "username": "app",
    "password": "secret",
}


class TestPostgres:
    async def test_rows_use_column_types(self, strategy, pg) -> None:
        result = await strategy.execute(_spec(PG_CONNECTION))

        envelope = json.loads(result.output)
        assert envelope["data"][0] == {"id": 1, "amount": 9.5, "active": True}
        assert envelope["data"][1] == {"id": 2, "amount": 4, "active": False}
        assert envelope["rowCount"] == 3
        assert pg.connection.closed

    async def test_default_port_and_no_ssl(self, strategy, pg) -> None:
        await strategy.execute(_spec(PG_CONNECTION))

        assert pg.kwargs["port"] == 5432
        assert pg.kwargs["ssl"] is None
        assert pg.kwargs["database"] == "shop"

    async def test_ssl_required(self, strategy, pg) -> None:
        await strategy.execute(_spec({**PG_CONNECTION, "sslMode": True}))
        assert pg.kwargs["ssl"] == "require"

    async def test_truncation(self, strategy, pg) -> None:
        envelope = json.loads((await strategy.execute(_spec(PG_CONNECTION, max_rows=2))).output)
        assert envelope["rowCount"] == 2
        assert envelope["truncated"] is True

    async def test_schema_set_before_query(self, strategy, pg) -> None:
        await strategy.execute(_spec({**PG_CONNECTION, "schema": "sales"}))
        assert pg.connection.executed == ['SET search_path TO "sales"']

    async def test_schema_failure(self, strategy, pg) -> None:
        from noderun.contracts import DatabaseError, ErrorKind

        pg.connection.fail_on = "execute"
        with pytest.raises(DatabaseError) as exc_info:
            await strategy.execute(_spec({**PG_CONNECTION, "schema": "nope"}))
        assert exc_info.value.kind is ErrorKind.SCHEMA_SET_FAILED
        assert str(exc_info.value).startswith("Failed to set schema:")
        assert pg.connection.closed

    async def test_query_failure_closes_connection(self, strategy, pg) -> None:
        from noderun.contracts import DatabaseError, ErrorKind

        pg.connection.fail_on = "prepare"
        with pytest.raises(DatabaseError) as exc_info:
            await strategy.execute(_spec(PG_CONNECTION, query="SELEC 1"))
        assert exc_info.value.kind is ErrorKind.QUERY_FAILED
        assert pg.connection.closed

    async def test_connect_failure(self, strategy, pg) -> None:
        from noderun.contracts import DatabaseError, ErrorKind

        pg.connect_error = OSError("Connection refused")
        with pytest.raises(DatabaseError) as exc_info:
            await strategy.execute(_spec(PG_CONNECTION))
        assert exc_info.value.kind is ErrorKind.CONNECT_FAILED
        assert str(exc_info.value) == "Failed to connect to PostgreSQL: Connection refused"

    @pytest.mark.parametrize(
        ("missing", "message"),
        [
            ("host", "PostgreSQL host is required"),
            ("database", "Database name is required"),
            ("username", "Username is required"),
            ("password", "Password is required"),
        ],
    )
    async def test_missing_fields(self, strategy, pg, missing: str, message: str) -> None:
        from noderun.contracts import ConfigurationError, ErrorKind

        connection = {k: v for k, v in PG_CONNECTION.items() if k != missing}
        with pytest.raises(ConfigurationError) as exc_info:
            await strategy.execute(_spec(connection))
        assert exc_info.value.kind is ErrorKind.MISSING_CONNECTION_FIELD
        assert str(exc_info.value) == message
        assert pg.kwargs == {}

    async def test_probe(self, strategy, pg) -> None:
        from noderun.contracts import PostgresConnection

        message = await strategy.test_connection(PostgresConnection.model_validate(PG_CONNECTION))
        assert message == "PostgreSQL connection successful"
        assert pg.connection.executed == ["SELECT 1"]

    def test_search_path_quoting(self) -> None:
        from noderun.engine.db.postgres import search_path_statement

        assert search_path_statement('app, we"ird') == 'SET search_path TO "app", "we""ird"'


# =============================================================================
# Oracle
# =============================================================================


class FakeOracleCursor:
    def __init__(self, conn: "FakeOracleConnection") -> None:
        self._conn = conn
        self.description = None

    def __enter__(self) -> "FakeOracleCursor":
        return self

    def __exit__(self, *exc: object) -> None:
        return None

    def execute(self, sql: str) -> None:
        if self._conn.query_error is not None:
            raise self._conn.query_error
        self._conn.executed.append(sql)
        self.description = [
            ("ID", SimpleNamespace(name="DB_TYPE_NUMBER")),
            ("NAME", SimpleNamespace(name="DB_TYPE_VARCHAR")),
        ]

    def fetchmany(self, n: int) -> list[tuple[Any, ...]]:
        return self._conn.rows[:n]

    def fetchone(self) -> tuple[Any, ...]:
        return (1,)


class FakeOracleConnection:
    def __init__(self) -> None:
        self.rows = [(1, "alpha"), (2, "beta")]
        self.executed: list[str] = []
        self.query_error: Exception | None = None
        self.closed = False

    def cursor(self) -> FakeOracleCursor:
        return FakeOracleCursor(self)

    def commit(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def ora(monkeypatch: pytest.MonkeyPatch):
    state = SimpleNamespace(connection=FakeOracleConnection(), kwargs={}, connect_error=None)

    def fake_connect(**kwargs: Any) -> FakeOracleConnection:
        state.kwargs = kwargs
        if state.connect_error is not None:
            raise state.connect_error
        return state.connection

    from noderun.engine.db import oracle

    monkeypatch.setattr(oracle.oracledb, "connect", fake_connect)
    return state


ORA_CONNECTION = {
    "type": "oracle",
    "host": "ora.example.test",
    "serviceName": "ORCLPDB1",
    "username": "app",
    "password": "secret",
}


class TestOracle:
    async def test_rows(self, strategy, ora) -> None:
        envelope = json.loads((await strategy.execute(_spec(ORA_CONNECTION))).output)

        assert envelope["data"] == [{"ID": 1, "NAME": "alpha"}, {"ID": 2, "NAME": "beta"}]
        assert envelope["truncated"] is False
        assert ora.connection.closed

    async def test_service_name_dsn(self, strategy, ora) -> None:
        await strategy.execute(_spec(ORA_CONNECTION))
        assert ora.kwargs["dsn"] == "ora.example.test:1521/ORCLPDB1"

    async def test_sid_dsn(self, strategy, ora) -> None:
        connection = {k: v for k, v in ORA_CONNECTION.items() if k != "serviceName"}
        await strategy.execute(_spec({**connection, "sid": "ORCL", "port": 1600}))

        assert "SID=ORCL" in ora.kwargs["dsn"]
        assert "1600" in ora.kwargs["dsn"]

    async def test_truncation(self, strategy, ora) -> None:
        envelope = json.loads((await strategy.execute(_spec(ORA_CONNECTION, max_rows=1))).output)
        assert envelope["rowCount"] == 1
        assert envelope["truncated"] is True

    async def test_requires_service_name_or_sid(self, strategy, ora) -> None:
        from noderun.contracts import ConfigurationError, ErrorKind

        connection = {k: v for k, v in ORA_CONNECTION.items() if k != "serviceName"}
        with pytest.raises(ConfigurationError) as exc_info:
            await strategy.execute(_spec(connection))
        assert exc_info.value.kind is ErrorKind.MISSING_CONNECTION_FIELD
        assert str(exc_info.value) == "Either service_name or sid must be provided for Oracle connection"

    async def test_connect_failure(self, strategy, ora) -> None:
        from noderun.contracts import DatabaseError, ErrorKind

        ora.connect_error = oracledb.DatabaseError("DPY-6005: cannot connect to database")
        with pytest.raises(DatabaseError) as exc_info:
            await strategy.execute(_spec(ORA_CONNECTION))
        assert exc_info.value.kind is ErrorKind.CONNECT_FAILED
        assert str(exc_info.value).startswith("Failed to connect to Oracle:")

    async def test_query_failure_closes_connection(self, strategy, ora) -> None:
        from noderun.contracts import DatabaseError, ErrorKind

        ora.connection.query_error = oracledb.DatabaseError("ORA-00942: table or view does not exist")
        with pytest.raises(DatabaseError) as exc_info:
            await strategy.execute(_spec(ORA_CONNECTION))
        assert exc_info.value.kind is ErrorKind.QUERY_FAILED
        assert ora.connection.closed

    async def test_probe(self, strategy, ora) -> None:
        from noderun.contracts import OracleConnection

        message = await strategy.test_connection(OracleConnection.model_validate(ORA_CONNECTION))
        assert message == "Oracle connection successful"
        assert ora.connection.executed == ["SELECT 1 FROM DUAL"]
