"""Database query strategy.

Per call:

    Validate(descriptor) -> Connect -> [SetSchema] -> Execute -> Collect(<= max_rows) -> Close

Required connection fields are checked before any I/O. The connection is
closed on success and on every failure path. Results are serialized as

    {"success": true, "rowCount": N, "data": [...], "truncated": bool}
"""

import asyncio
import functools
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

import structlog

from noderun.contracts import (
    ConfigurationError,
    ConnectionDescriptor,
    DbBackend,
    DbCallSpec,
    ErrorKind,
    ExecutionError,
    ExecutionResult,
    OracleConnection,
    PostgresConnection,
    QueryResult,
    SqliteConnection,
)
from noderun.engine.db import oracle, postgres, sqlite
from noderun.engine.db.oracle import OracleTarget
from noderun.engine.db.postgres import PostgresTarget

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _require(value: str | None, message: str, *, allow_empty: bool = False) -> str:
    if value is None or (not allow_empty and not value.strip()):
        raise ConfigurationError(ErrorKind.MISSING_CONNECTION_FIELD, message)
    return value


def sqlite_path(connection: SqliteConnection) -> str:
    return _require(connection.file_path, "SQLite file path is required")


def postgres_target(connection: PostgresConnection) -> PostgresTarget:
    """Validate a PostgreSQL descriptor.

    Raises:
        ConfigurationError: MISSING_CONNECTION_FIELD naming the first missing field
    """
    return PostgresTarget(
        host=_require(connection.host, "PostgreSQL host is required"),
        database=_require(connection.database, "Database name is required"),
        username=_require(connection.username, "Username is required"),
        password=_require(connection.password, "Password is required", allow_empty=True),
        port=connection.port or postgres.DEFAULT_PORT,
        schema=connection.schema_name,
        ssl=connection.ssl_mode,
    )


def oracle_target(connection: OracleConnection) -> OracleTarget:
    """Validate an Oracle descriptor.

    Raises:
        ConfigurationError: MISSING_CONNECTION_FIELD naming the first missing field
    """
    host = _require(connection.host, "Oracle host is required")
    username = _require(connection.username, "Username is required")
    password = _require(connection.password, "Password is required", allow_empty=True)
    service_name = connection.service_name or None
    sid = connection.sid or None
    if service_name is None and sid is None:
        raise ConfigurationError(
            ErrorKind.MISSING_CONNECTION_FIELD,
            "Either service_name or sid must be provided for Oracle connection",
        )
    return OracleTarget(
        host=host,
        username=username,
        password=password,
        port=connection.port or oracle.DEFAULT_PORT,
        service_name=service_name,
        sid=sid,
    )


class DbQueryStrategy:
    """Runs queries against SQLite, PostgreSQL and Oracle.

    Owns a small thread pool for the synchronous Oracle driver; call
    close() when done.
    """

    def __init__(self, default_max_rows: int = 1000, oracle_worker_threads: int = 1) -> None:
        self._default_max_rows = default_max_rows
        self._oracle_executor = ThreadPoolExecutor(
            max_workers=oracle_worker_threads,
            thread_name_prefix="noderun-oracle",
        )

    async def execute(self, spec: DbCallSpec) -> ExecutionResult:
        """Run one query and return the serialized row envelope.

        Raises:
            ConfigurationError: A required connection field is missing
            DatabaseError: Connect, schema or query failure
        """
        max_rows = spec.max_rows or self._default_max_rows
        backend = DbBackend(spec.connection.type)
        log = logger.bind(backend=backend.value, run_id=spec.run_id, max_rows=max_rows)

        log.info("Executing query")
        try:
            result = await self._run_query(spec.connection, spec.query, max_rows, spec.timeout)
        except ExecutionError as e:
            log.warning("Query failed", kind=e.kind.value, error=e.message)
            raise

        log.info("Query complete", row_count=result.row_count, truncated=result.truncated)
        return ExecutionResult(output=result.to_json())

    async def test_connection(self, connection: ConnectionDescriptor, timeout: float | None = None) -> str:
        """Connect, apply the schema where relevant, and run a probe query.

        Returns:
            Backend-specific success message

        Raises:
            ConfigurationError: A required connection field is missing
            DatabaseError: Connect, schema or probe failure
        """
        if isinstance(connection, SqliteConnection):
            return await sqlite.probe(sqlite_path(connection), timeout)
        if isinstance(connection, PostgresConnection):
            return await postgres.probe(postgres_target(connection), timeout)
        target = oracle_target(connection)
        return await self._in_oracle_thread(oracle.probe, target, timeout)

    async def _run_query(
        self,
        connection: ConnectionDescriptor,
        query: str,
        max_rows: int,
        timeout: float | None,
    ) -> QueryResult:
        if isinstance(connection, SqliteConnection):
            return await sqlite.run_query(sqlite_path(connection), query, max_rows, timeout)
        if isinstance(connection, PostgresConnection):
            return await postgres.run_query(postgres_target(connection), query, max_rows, timeout)
        target = oracle_target(connection)
        return await self._in_oracle_thread(oracle.run_query, target, query, max_rows, timeout)

    async def _in_oracle_thread(self, func: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._oracle_executor, functools.partial(func, *args))

    def close(self) -> None:
        """Shut down the Oracle worker threads, waiting for in-flight calls.

        Blocks; async callers should run it off the event loop.
        """
        self._oracle_executor.shutdown(wait=True)
