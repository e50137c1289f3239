"""Operation outcomes and results.

These types answer: "What did a node run produce?"

IMPORTANT:
- ExecutionResult.output is the exact string handed back to the caller
  (raw stdout, output-artifact contents, or a serialized envelope)
- Diagnostics record partial failures that did NOT abort the run
- QueryResult.to_envelope() field names are the wire format: camelCase
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from noderun.contracts.enums import DiagnosticSource


@dataclass(frozen=True)
class Diagnostic:
    """A loosely-structured input fragment that was skipped.

    Attributes:
        source: Fragment that produced the diagnostic
        message: Why it was skipped
        key: Offending key for per-entry failures (e.g. one bad header)
    """

    source: DiagnosticSource
    message: str
    key: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {"source": self.source.value, "message": self.message, "key": self.key}


@dataclass(frozen=True)
class ExecutionResult:
    """Successful outcome of one node run.

    Attributes:
        output: Result string returned to the caller (JSON or raw text)
        diagnostics: Non-fatal parse failures, in encounter order
        artifact_path: Input artifact written for this run, if any
        log_path: Execution log (output.txt) written for this run, if any
    """

    output: str
    diagnostics: tuple[Diagnostic, ...] = ()
    artifact_path: Path | None = None
    log_path: Path | None = None

    def __str__(self) -> str:
        return self.output


@dataclass(frozen=True)
class ProcessOutput:
    """Captured result of one finished subprocess.

    stdout/stderr are kept as raw bytes; decoding policy belongs to the
    caller (strict for direct runs, lossy for logs).
    """

    command: tuple[str, ...]
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0

    @property
    def stdout_text(self) -> str:
        """Lossy UTF-8 decoding of stdout."""
        return self.stdout.decode("utf-8", errors="replace")

    @property
    def stderr_text(self) -> str:
        """Lossy UTF-8 decoding of stderr."""
        return self.stderr.decode("utf-8", errors="replace")


@dataclass
class QueryResult:
    """Rows returned by one database query.

    truncated is True iff the row cap was hit while more rows remained.
    Row maps preserve column order from the driver.
    """

    rows: list[dict[str, Any]] = field(default_factory=list)
    truncated: bool = False
    success: bool = True

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def to_envelope(self) -> dict[str, Any]:
        """Wire envelope: {success, rowCount, data, truncated}."""
        return {
            "success": self.success,
            "rowCount": self.row_count,
            "data": self.rows,
            "truncated": self.truncated,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_envelope(), ensure_ascii=False, separators=(",", ":"))


@dataclass(frozen=True)
class BuildDecision:
    """Outcome of a build-cache check for one project."""

    rebuild: bool
    reason: str
