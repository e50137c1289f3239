"""In-process record of the last TypeScript build per project.

The cache is owned by one ExecutionEngine and injected into the
TypeScript pipeline. Its lock covers read/compare/update only and is
never held while a build subprocess runs.
"""

import threading
import time
from collections.abc import Callable, Iterable
from pathlib import Path

import structlog

from noderun.contracts import BuildDecision

logger = structlog.get_logger(__name__)

BUILD_CONFIG_FILES = ("package.json", "tsconfig.json")


def config_mtimes(project_path: Path, names: Iterable[str] = BUILD_CONFIG_FILES) -> dict[str, float]:
    """Modification times of the build config files that exist.

    Missing files are logged and skipped.

    Args:
        project_path: Project root
        names: Config file names relative to the root

    Returns:
        Mapping of file name to mtime for files that exist
    """
    mtimes: dict[str, float] = {}
    for name in names:
        path = project_path / name
        try:
            mtimes[name] = path.stat().st_mtime
        except FileNotFoundError:
            logger.warning("Build config file missing", project=str(project_path), file=name)
    return mtimes


class BuildCache:
    """Map of project path to last build timestamp.

    Example:
        cache = BuildCache()
        decision = cache.check_and_mark(project, config_mtimes(project))
        if decision.rebuild:
            ok = await build(project)
            if not ok:
                cache.invalidate(project)
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        """Initialize empty cache.

        Args:
            clock: Timestamp source (injectable for tests)
        """
        self._clock = clock
        self._lock = threading.Lock()
        self._last_build: dict[str, float] = {}

    @staticmethod
    def _key(project_path: Path | str) -> str:
        return str(Path(project_path).resolve())

    def check_and_mark(
        self,
        project_path: Path | str,
        mtimes: dict[str, float],
    ) -> BuildDecision:
        """Decide whether a project needs a rebuild, recording the attempt.

        Rules:
        - No config files at all: always rebuild (nothing to compare)
        - No cache entry: rebuild, entry recorded
        - Newest config mtime later than cached build time: rebuild, entry updated
        - Otherwise: no rebuild

        Args:
            project_path: Project root
            mtimes: Output of config_mtimes()

        Returns:
            BuildDecision with the reason
        """
        key = self._key(project_path)
        if not mtimes:
            return BuildDecision(rebuild=True, reason="no build config files")

        newest = max(mtimes.values())
        with self._lock:
            now = self._clock()
            last = self._last_build.get(key)
            if last is None:
                self._last_build[key] = max(now, newest)
                return BuildDecision(rebuild=True, reason="first build")
            if newest > last:
                self._last_build[key] = max(now, newest)
                return BuildDecision(rebuild=True, reason="build config changed")
        return BuildDecision(rebuild=False, reason="no rebuild needed")

    def invalidate(self, project_path: Path | str) -> None:
        """Forget a project so the next check rebuilds it."""
        with self._lock:
            self._last_build.pop(self._key(project_path), None)

    def last_build(self, project_path: Path | str) -> float | None:
        """Recorded build timestamp, if any."""
        with self._lock:
            return self._last_build.get(self._key(project_path))
