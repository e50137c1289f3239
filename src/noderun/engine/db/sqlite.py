"""SQLite backend using aiosqlite.

The database file must already exist; it is opened read-write, never
created. SQLite reports no column types on a result set, so values go
through the probe order of the coercion module.
"""

import sqlite3
from pathlib import Path

import aiosqlite
import structlog

from noderun.contracts import DatabaseError, ErrorKind, QueryResult
from noderun.engine.db.coercion import coerce_row

logger = structlog.get_logger(__name__)

PROBE_QUERY = "SELECT 1"
PROBE_MESSAGE = "SQLite connection successful"


def database_uri(file_path: str) -> str:
    """SQLite URI that refuses to create a missing file."""
    return f"{Path(file_path).resolve().as_uri()}?mode=rw"


async def _connect(file_path: str, timeout: float | None) -> aiosqlite.Connection:
    try:
        db = await aiosqlite.connect(database_uri(file_path), uri=True, timeout=timeout or 5.0)
    except (sqlite3.Error, OSError, ValueError) as e:
        raise DatabaseError(ErrorKind.CONNECT_FAILED, f"Failed to connect to SQLite: {e}") from e
    # TEXT is decoded during coercion; invalid UTF-8 becomes null there
    db.text_factory = bytes
    return db


async def run_query(
    file_path: str,
    query: str,
    max_rows: int,
    timeout: float | None = None,
) -> QueryResult:
    """Execute one statement and return at most max_rows rows.

    One extra row is fetched to detect truncation without draining the
    cursor. Statements that return no rows are committed.
    """
    db = await _connect(file_path, timeout)
    try:
        try:
            cursor = await db.execute(query)
            fetched = await cursor.fetchmany(max_rows + 1)
            columns = [d[0] for d in cursor.description or ()]
            await cursor.close()
            await db.commit()
        except sqlite3.Error as e:
            raise DatabaseError(ErrorKind.QUERY_FAILED, f"Query execution failed: {e}") from e
    finally:
        await db.close()

    truncated = len(fetched) > max_rows
    rows = [coerce_row(tuple(row), columns) for row in fetched[:max_rows]]
    logger.debug("SQLite query finished", rows=len(rows), truncated=truncated)
    return QueryResult(rows=rows, truncated=truncated)


async def probe(file_path: str, timeout: float | None = None) -> str:
    """Open the database and run a trivial query."""
    db = await _connect(file_path, timeout)
    try:
        try:
            async with db.execute(PROBE_QUERY) as cursor:
                await cursor.fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(ErrorKind.QUERY_FAILED, f"Query execution failed: {e}") from e
    finally:
        await db.close()
    return PROBE_MESSAGE
