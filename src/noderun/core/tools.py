"""Resolution of interpreter, package-manager and compiler executables.

Platform-specific executable names are isolated here so the strategies
never branch on the operating system themselves.
"""

import os
import shutil
import sys
from collections.abc import Mapping
from pathlib import Path

from noderun.contracts import ConfigurationError, ErrorKind

# Tool name -> base executable name
_BASE_NAMES: dict[str, str] = {
    "node": "node",
    "npm": "npm",
    "npx": "npx",
    "tsc": "tsc",
    "ts_node": "ts-node",
}

# npm-installed launchers are batch shims on Windows
_WINDOWS_CMD_SHIMS = frozenset({"npm", "npx", "tsc", "ts_node"})


def executable_name(tool: str, platform: str = sys.platform) -> str:
    """Platform-specific executable name for a tool.

    Args:
        tool: Tool key ("node", "npm", "npx", "tsc", "ts_node")
        platform: sys.platform value

    Returns:
        e.g. "npm.cmd" on win32, "npm" elsewhere

    Raises:
        KeyError: If the tool is unknown
    """
    base = _BASE_NAMES[tool]
    if platform.startswith("win"):
        return f"{base}.cmd" if tool in _WINDOWS_CMD_SHIMS else f"{base}.exe"
    return base


class ToolLocator:
    """Find executables for the script strategies.

    Resolution order:
    1. Explicit override from settings
    2. <project>/node_modules/.bin/<name> when a project dir is given
    3. PATH lookup (shutil.which)
    """

    def __init__(
        self,
        overrides: Mapping[str, str] | None = None,
        *,
        platform: str = sys.platform,
        search_path: str | None = None,
    ) -> None:
        """Initialize locator.

        Args:
            overrides: Tool key -> executable path
            platform: sys.platform value used for name mangling
            search_path: PATH string for lookups (process PATH when None)
        """
        self._overrides = dict(overrides or {})
        self._platform = platform
        self._search_path = search_path

    def executable_name(self, tool: str) -> str:
        return executable_name(tool, self._platform)

    def resolve(self, tool: str, project_dir: Path | None = None) -> str | None:
        """Locate a tool, or None if it is not available."""
        override = self._overrides.get(tool)
        if override:
            return override

        name = self.executable_name(tool)
        if project_dir is not None:
            local = Path(project_dir) / "node_modules" / ".bin" / name
            if local.is_file() and os.access(local, os.X_OK):
                return str(local)

        return shutil.which(name, path=self._search_path)

    def require(self, tool: str, project_dir: Path | None = None) -> str:
        """Locate a tool that must exist.

        Raises:
            ConfigurationError: PROCESS_SPAWN_FAILED if the tool cannot be found
        """
        found = self.resolve(tool, project_dir)
        if found is None:
            raise ConfigurationError(
                ErrorKind.PROCESS_SPAWN_FAILED,
                f"Failed to execute process: {self.executable_name(tool)} not found",
            )
        return found
