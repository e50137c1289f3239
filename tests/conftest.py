# tests/conftest.py
"""Shared test fixtures and helpers.

Subprocess paths are exercised without Node.js: the Python interpreter is
configured as the `node` tool and test scripts named `*.js` contain
Python code. npm/tsc/ts-node/npx are faked with small executable Python
scripts (POSIX only).

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/
"""

import os
import stat
import sys
import textwrap
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
import structlog
from hypothesis import Phase, Verbosity, settings

# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()


@pytest.fixture
def empty_path(tmp_path: Path) -> str:
    """A PATH containing only an empty directory, so no real tool is found."""
    path = tmp_path / "empty-bin"
    path.mkdir()
    return str(path)


@pytest.fixture
def make_executable() -> Callable[[Path, str], Path]:
    """Write a Python script with a shebang and mark it executable.

    Usage:
        make_executable(project / "node_modules" / ".bin" / "npm", "print('hi')")
    """

    def _make(path: Path, body: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"#!{sys.executable}\n" + textwrap.dedent(body), encoding="utf-8")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make


@pytest.fixture
def python_tools(empty_path: str):
    """ToolLocator that runs `.js` scripts with the Python interpreter."""
    from noderun.core.tools import ToolLocator

    return ToolLocator({"node": sys.executable}, search_path=empty_path)


@pytest.fixture
def artifact_store(tmp_path: Path):
    from noderun.core.artifacts import ArtifactStore

    return ArtifactStore(tmp_path / "data")


@pytest.fixture
def titles():
    from noderun.core.titles import StaticTitleResolver

    return StaticTitleResolver(books={7: "Checkout"}, pages={1: "Home", 2: "Cart"})
