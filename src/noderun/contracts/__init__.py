"""Shared contracts for cross-boundary data types.

All dataclasses, enums and request models that cross subsystem
boundaries are defined here.

Import pattern:
    from noderun.contracts import ExecutionRequest, ExecutionResult, ErrorKind
"""

from noderun.contracts.enums import (
    DbBackend,
    DiagnosticSource,
    ErrorKind,
    ScriptKind,
)
from noderun.contracts.errors import (
    ArtifactError,
    ConfigurationError,
    DatabaseError,
    ExecutionError,
    ProcessError,
    TransportError,
)
from noderun.contracts.requests import (
    ConnectionDescriptor,
    ConnectionProbeSpec,
    DbCallSpec,
    ExecutionRequest,
    HttpCallSpec,
    OracleConnection,
    PostgresConnection,
    SqliteConnection,
)
from noderun.contracts.results import (
    BuildDecision,
    Diagnostic,
    ExecutionResult,
    ProcessOutput,
    QueryResult,
)

__all__ = [
    # enums
    "DbBackend",
    "DiagnosticSource",
    "ErrorKind",
    "ScriptKind",
    # errors
    "ArtifactError",
    "ConfigurationError",
    "DatabaseError",
    "ExecutionError",
    "ProcessError",
    "TransportError",
    # requests
    "ConnectionDescriptor",
    "ConnectionProbeSpec",
    "DbCallSpec",
    "ExecutionRequest",
    "HttpCallSpec",
    "OracleConnection",
    "PostgresConnection",
    "SqliteConnection",
    # results
    "BuildDecision",
    "Diagnostic",
    "ExecutionResult",
    "ProcessOutput",
    "QueryResult",
]
