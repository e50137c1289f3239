"""Exception hierarchy for terminal execution failures.

Every failure crosses the engine boundary as a single ExecutionError.
`str(error)` is the human-readable message (stage label included),
`error.kind` is the machine-readable ErrorKind. Nothing here is retried;
retry policy belongs to the caller.

Hierarchy:
    ExecutionError
    ├── ConfigurationError  - detected before any I/O
    ├── ArtifactError       - input/output artifact filesystem failures
    ├── ProcessError        - subprocess spawn/exit/output failures
    ├── TransportError      - HTTP transport failures
    └── DatabaseError       - connect/schema/query failures
"""

from noderun.contracts.enums import ErrorKind


class ExecutionError(Exception):
    """Terminal failure of one node run.

    Attributes:
        kind: Machine-readable error classification
        message: Original human-readable message
        stdout: Captured standard output, when a process was involved
        stderr: Captured standard error, when a process was involved
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        stdout: str | None = None,
        stderr: str | None = None,
    ) -> None:
        """Initialize with kind and message.

        Args:
            kind: Error classification
            message: Human-readable message, returned verbatim by str()
            stdout: Optional captured stdout
            stderr: Optional captured stderr
        """
        self.kind = kind
        self.message = message
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(message)

    def to_dict(self) -> dict[str, str | None]:
        """Serializable form for CLI and log output."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "stdout": self.stdout,
            "stderr": self.stderr,
        }


class ConfigurationError(ExecutionError):
    """Request is invalid before any I/O was attempted."""


class ArtifactError(ExecutionError):
    """Artifact directory or file could not be written or read."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorKind.ARTIFACT_WRITE_FAILED, message)


class ProcessError(ExecutionError):
    """A spawned process failed, exited non-zero, or left no result."""


class TransportError(ExecutionError):
    """HTTP request could not be completed."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorKind.NETWORK_ERROR, message)


class DatabaseError(ExecutionError):
    """Database connection, schema selection, or query failed."""
