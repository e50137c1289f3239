# src/noderun/core/retention.py
"""Purge of run artifact directories based on retention policy.

Run directories accumulate indefinitely unless purged explicitly. A run
directory is expired when the newest file inside it is older than the
retention cutoff, so a directory still being written is never removed.
"""

import shutil
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from time import perf_counter

import structlog

from noderun.core.artifacts import ArtifactStore

logger = structlog.get_logger(__name__)


@dataclass
class PurgeResult:
    """Result of a purge operation."""

    deleted_count: int = 0
    bytes_freed: int = 0
    failed_paths: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0


def _newest_mtime(run_dir: Path) -> tuple[float, int]:
    """Newest mtime and total size of the files under a run directory."""
    newest = run_dir.stat().st_mtime
    size = 0
    for path in run_dir.rglob("*"):
        if path.is_file():
            stat = path.stat()
            newest = max(newest, stat.st_mtime)
            size += stat.st_size
    return newest, size


def find_expired_runs(
    store: ArtifactStore,
    retention_days: int,
    as_of: datetime | None = None,
) -> list[Path]:
    """Find run directories eligible for deletion.

    Args:
        store: Artifact store whose log tree is scanned
        retention_days: Days to keep a run after its last write
        as_of: Reference datetime for cutoff calculation (defaults to now)

    Returns:
        Run directories (<log_root>/<project>/<page>/<run_id>) past the cutoff
    """
    if as_of is None:
        as_of = datetime.now(UTC)
    cutoff = (as_of - timedelta(days=retention_days)).timestamp()

    if not store.log_root.is_dir():
        return []

    expired: list[Path] = []
    for run_dir in sorted(store.log_root.glob("*/*/*")):
        if not run_dir.is_dir():
            continue
        newest, _ = _newest_mtime(run_dir)
        if newest < cutoff:
            expired.append(run_dir)
    return expired


def purge_expired_runs(
    store: ArtifactStore,
    retention_days: int,
    as_of: datetime | None = None,
) -> PurgeResult:
    """Delete expired run directories.

    Failures on individual directories are recorded and do not stop the
    purge of the others.

    Args:
        store: Artifact store to purge
        retention_days: Days to keep a run after its last write
        as_of: Reference datetime for cutoff calculation (defaults to now)

    Returns:
        PurgeResult with deletion statistics
    """
    start_time = perf_counter()
    result = PurgeResult()

    for run_dir in find_expired_runs(store, retention_days, as_of):
        try:
            _, size = _newest_mtime(run_dir)
            shutil.rmtree(run_dir)
        except OSError as e:
            logger.warning("Run directory purge failed", path=str(run_dir), error=str(e))
            result.failed_paths.append(str(run_dir))
            continue
        result.deleted_count += 1
        result.bytes_freed += size

    result.duration_seconds = perf_counter() - start_time
    logger.info(
        "Run artifacts purged",
        deleted=result.deleted_count,
        bytes_freed=result.bytes_freed,
        failed=len(result.failed_paths),
    )
    return result
