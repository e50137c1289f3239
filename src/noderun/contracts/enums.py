"""Status codes, kinds and backends used across subsystem boundaries.

Every enum here is (str, Enum) because its value crosses the process
boundary: error kinds are printed by the CLI, backends are the `type`
discriminator of connection descriptors.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Machine-readable classification of a terminal execution failure.

    The human-readable message is preserved separately on the exception;
    this value lets callers branch without parsing text.
    """

    # Configuration (detected before any I/O)
    MISSING_CONNECTION_FIELD = "missing_connection_field"
    UNSUPPORTED_METHOD = "unsupported_method"
    UNSUPPORTED_FILE_TYPE = "unsupported_file_type"
    PROJECT_PATH_MISSING = "project_path_missing"
    DEPENDENCY_MISSING = "dependency_missing"
    INVALID_REQUEST = "invalid_request"

    # Process
    PROCESS_SPAWN_FAILED = "process_spawn_failed"
    NON_ZERO_EXIT = "non_zero_exit"
    OUTPUT_DECODE_FAILED = "output_decode_failed"
    MISSING_RESULT_FILE = "missing_result_file"
    SCRIPT_ERROR = "script_error"
    BUILD_FAILED = "build_failed"

    # Transport / database
    NETWORK_ERROR = "network_error"
    CONNECT_FAILED = "connect_failed"
    SCHEMA_SET_FAILED = "schema_set_failed"
    QUERY_FAILED = "query_failed"

    # Filesystem
    ARTIFACT_WRITE_FAILED = "artifact_write_failed"


class ScriptKind(str, Enum):
    """Execution path selected for a script node.

    Values:
        BROWSER_TEST: Path contains `.spec.` or `.test.`; run by the test runner
        TYPESCRIPT: `.ts` source; interpreted directly or built then run
        JAVASCRIPT: `.js` source; run directly by the interpreter
    """

    BROWSER_TEST = "browser_test"
    TYPESCRIPT = "typescript"
    JAVASCRIPT = "javascript"


class DbBackend(str, Enum):
    """Database backend of a connection descriptor."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    ORACLE = "oracle"


class DiagnosticSource(str, Enum):
    """Which loosely-structured input fragment produced a diagnostic."""

    QUERY = "query"
    HEADERS = "headers"
    AUTH = "auth"
    BODY = "body"
