"""PostgreSQL backend using asyncpg.

One connection per call, closed on every path. Row-returning statements
run through a server-side cursor inside a transaction so the row cap is
enforced without fetching the whole result.
"""

from dataclasses import dataclass, field

import asyncpg
import structlog

from noderun.contracts import DatabaseError, ErrorKind, QueryResult
from noderun.engine.db.coercion import coerce_row

logger = structlog.get_logger(__name__)

DEFAULT_PORT = 5432
PROBE_QUERY = "SELECT 1"
PROBE_MESSAGE = "PostgreSQL connection successful"

_CONNECT_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, TimeoutError)
_QUERY_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError)


@dataclass(frozen=True)
class PostgresTarget:
    """Validated connection parameters."""

    host: str
    database: str
    username: str
    password: str = field(repr=False)
    port: int = DEFAULT_PORT
    schema: str | None = None
    ssl: bool | None = None


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def search_path_statement(schema: str) -> str:
    """SET search_path for a comma-separated list of schema names."""
    parts = [part.strip() for part in schema.split(",") if part.strip()]
    return "SET search_path TO " + ", ".join(quote_identifier(p) for p in parts)


def _ssl_argument(ssl: bool | None) -> str | bool | None:
    if ssl is None:
        return None
    return "require" if ssl else False


async def _connect(target: PostgresTarget, timeout: float | None) -> asyncpg.Connection:
    try:
        conn = await asyncpg.connect(
            host=target.host,
            port=target.port,
            user=target.username,
            password=target.password,
            database=target.database,
            ssl=_ssl_argument(target.ssl),
            timeout=timeout or 60.0,
        )
    except _CONNECT_ERRORS as e:
        raise DatabaseError(ErrorKind.CONNECT_FAILED, f"Failed to connect to PostgreSQL: {e}") from e

    if target.schema and target.schema.strip():
        try:
            await conn.execute(search_path_statement(target.schema))
        except _QUERY_ERRORS as e:
            await conn.close()
            raise DatabaseError(ErrorKind.SCHEMA_SET_FAILED, f"Failed to set schema: {e}") from e
    return conn


async def run_query(
    target: PostgresTarget,
    query: str,
    max_rows: int,
    timeout: float | None = None,
) -> QueryResult:
    """Execute one statement and return at most max_rows rows."""
    conn = await _connect(target, timeout)
    try:
        try:
            stmt = await conn.prepare(query)
            attributes = stmt.get_attributes()
            if not attributes:
                await stmt.fetch()
                return QueryResult()
            async with conn.transaction():
                cursor = await stmt.cursor()
                records = await cursor.fetch(max_rows + 1)
        except _QUERY_ERRORS as e:
            raise DatabaseError(ErrorKind.QUERY_FAILED, f"Query execution failed: {e}") from e
    finally:
        await conn.close()

    columns = [attr.name for attr in attributes]
    type_names = [attr.type.name for attr in attributes]
    truncated = len(records) > max_rows
    rows = [coerce_row(tuple(record.values()), columns, type_names) for record in records[:max_rows]]
    logger.debug("PostgreSQL query finished", rows=len(rows), truncated=truncated)
    return QueryResult(rows=rows, truncated=truncated)


async def probe(target: PostgresTarget, timeout: float | None = None) -> str:
    """Connect, apply the schema, and run a trivial query."""
    conn = await _connect(target, timeout)
    try:
        try:
            await conn.fetchval(PROBE_QUERY)
        except _QUERY_ERRORS as e:
            raise DatabaseError(ErrorKind.QUERY_FAILED, f"Query execution failed: {e}") from e
    finally:
        await conn.close()
    return PROBE_MESSAGE
