# src/noderun/core/artifacts.py
"""
Artifact store for node run inputs, outputs and execution logs.

Layout under the application's local-data root:

    <data_root>/<app_name>/log/<project>/<page>/<run_id>/<node>.json       input
    <data_root>/<app_name>/log/<project>/<page>/<run_id>/<node>_save.json  output
    <data_root>/<app_name>/log/<project>/<page>/<run_id>/output.txt        log

Input payloads are written verbatim as UTF-8. Nothing here is ever deleted
automatically; see noderun.core.retention for explicit purging.
"""

from pathlib import Path

import structlog

from noderun.contracts import ArtifactError

logger = structlog.get_logger(__name__)

STDOUT_MARKER = "=== STDOUT ==="
STDERR_MARKER = "=== STDERR ==="
EXECUTION_LOG_NAME = "output.txt"


class ArtifactStore:
    """Filesystem store for per-run artifacts.

    Directory creation is idempotent. Any filesystem failure is raised as
    ArtifactError and is fatal for that run; there is no retry.
    """

    def __init__(self, data_root: Path, app_name: str = "TTOL") -> None:
        """Initialize store.

        Args:
            data_root: Application local-data root
            app_name: Application folder name under the root
        """
        self.data_root = Path(data_root)
        self.app_name = app_name

    @property
    def log_root(self) -> Path:
        """Root of the per-project run tree."""
        return self.data_root / self.app_name / "log"

    def page_dir(self, project_name: str, page_name: str) -> Path:
        """Return (creating if absent) the directory for one page's runs.

        Args:
            project_name: Project (book) display name
            page_name: Page display name

        Returns:
            <log_root>/<project_name>/<page_name>

        Raises:
            ArtifactError: If the directory cannot be created
        """
        path = self.log_root / project_name / page_name
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArtifactError(f"Failed to create artifact directory {path}: {e}") from e
        return path

    def write_request(
        self,
        page_dir: Path,
        node_name: str,
        run_id: str,
        payload: str,
    ) -> Path:
        """Write a run's input payload and return its path.

        Args:
            page_dir: Directory returned by page_dir()
            node_name: Node name (file stem)
            run_id: Run identifier (subdirectory)
            payload: Serialized input, written verbatim

        Returns:
            <page_dir>/<run_id>/<node_name>.json

        Raises:
            ArtifactError: If the directory or file cannot be written
        """
        run_dir = page_dir / run_id
        request_path = run_dir / f"{node_name}.json"
        try:
            run_dir.mkdir(parents=True, exist_ok=True)
            request_path.write_bytes(payload.encode("utf-8"))
        except OSError as e:
            raise ArtifactError(f"Failed to write request artifact {request_path}: {e}") from e

        logger.debug(
            "Request artifact written",
            path=str(request_path),
            size_bytes=request_path.stat().st_size,
        )
        return request_path

    def read_request(self, request_path: Path) -> str:
        """Read an input payload back exactly as written."""
        try:
            return request_path.read_bytes().decode("utf-8")
        except OSError as e:
            raise ArtifactError(f"Failed to read request artifact {request_path}: {e}") from e

    @staticmethod
    def output_path(request_path: Path, node_name: str) -> Path:
        """Sibling output artifact the executed script is expected to write."""
        return request_path.parent / f"{node_name}_save.json"

    @staticmethod
    def log_path(request_path: Path) -> Path:
        """Sibling execution log for a run."""
        return request_path.parent / EXECUTION_LOG_NAME

    def write_execution_log(self, request_path: Path, stdout: str, stderr: str) -> Path:
        """Persist captured process output beside the input artifact.

        Format is fixed:
            === STDOUT ===\\n<stdout>\\n\\n=== STDERR ===\\n<stderr>

        Returns:
            Path of the written log

        Raises:
            ArtifactError: If the log cannot be written
        """
        path = self.log_path(request_path)
        content = f"{STDOUT_MARKER}\n{stdout}\n\n{STDERR_MARKER}\n{stderr}"
        try:
            path.write_bytes(content.encode("utf-8"))
        except OSError as e:
            raise ArtifactError(f"Failed to write output log {path}: {e}") from e
        return path

    @staticmethod
    def read_output(path: Path) -> str:
        """Read an output artifact verbatim.

        Raises:
            ArtifactError: If the file cannot be read or is not UTF-8
        """
        try:
            return path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ArtifactError(f"Failed to read result file {path}: {e}") from e
