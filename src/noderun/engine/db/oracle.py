"""Oracle backend using python-oracledb in thin mode.

The driver calls here are synchronous. DbQueryStrategy runs them on its
own worker threads so they never block the event loop or the default
executor.
"""

from dataclasses import dataclass, field

import oracledb
import structlog

from noderun.contracts import DatabaseError, ErrorKind, QueryResult
from noderun.engine.db.coercion import coerce_row

logger = structlog.get_logger(__name__)

DEFAULT_PORT = 1521
PROBE_QUERY = "SELECT 1 FROM DUAL"
PROBE_MESSAGE = "Oracle connection successful"


@dataclass(frozen=True)
class OracleTarget:
    """Validated connection parameters. Exactly one of service_name/sid is used."""

    host: str
    username: str
    password: str = field(repr=False)
    port: int = DEFAULT_PORT
    service_name: str | None = None
    sid: str | None = None

    @property
    def dsn(self) -> str:
        """Easy Connect string for a service name, else a SID descriptor."""
        if self.service_name:
            return f"{self.host}:{self.port}/{self.service_name}"
        return oracledb.makedsn(self.host, self.port, sid=self.sid)


def _connect(target: OracleTarget, timeout: float | None) -> oracledb.Connection:
    try:
        return oracledb.connect(
            user=target.username,
            password=target.password,
            dsn=target.dsn,
            tcp_connect_timeout=timeout or 20.0,
        )
    except oracledb.Error as e:
        raise DatabaseError(ErrorKind.CONNECT_FAILED, f"Failed to connect to Oracle: {e}") from e


def run_query(
    target: OracleTarget,
    query: str,
    max_rows: int,
    timeout: float | None = None,
) -> QueryResult:
    """Execute one statement and return at most max_rows rows.

    Blocking; call from a worker thread.
    """
    connection = _connect(target, timeout)
    try:
        try:
            with connection.cursor() as cursor:
                cursor.execute(query)
                if cursor.description is None:
                    connection.commit()
                    return QueryResult()
                columns = [d[0] for d in cursor.description]
                type_names = [getattr(d[1], "name", None) for d in cursor.description]
                fetched = cursor.fetchmany(max_rows + 1)
                rows = [coerce_row(row, columns, type_names) for row in fetched[:max_rows]]
        except oracledb.Error as e:
            raise DatabaseError(ErrorKind.QUERY_FAILED, f"Query execution failed: {e}") from e
    finally:
        connection.close()

    truncated = len(fetched) > max_rows
    logger.debug("Oracle query finished", rows=len(rows), truncated=truncated)
    return QueryResult(rows=rows, truncated=truncated)


def probe(target: OracleTarget, timeout: float | None = None) -> str:
    """Connect and run a trivial query. Blocking."""
    connection = _connect(target, timeout)
    try:
        try:
            with connection.cursor() as cursor:
                cursor.execute(PROBE_QUERY)
                cursor.fetchone()
        except oracledb.Error as e:
            raise DatabaseError(ErrorKind.QUERY_FAILED, f"Query execution failed: {e}") from e
    finally:
        connection.close()
    return PROBE_MESSAGE
