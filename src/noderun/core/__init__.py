"""Core infrastructure: configuration, logging, artifacts, build cache, tools."""

from noderun.core.artifacts import ArtifactStore
from noderun.core.build_cache import BuildCache
from noderun.core.config import EngineSettings, load_settings
from noderun.core.titles import StaticTitleResolver, TitleResolver
from noderun.core.tools import ToolLocator

__all__ = [
    "ArtifactStore",
    "BuildCache",
    "EngineSettings",
    "StaticTitleResolver",
    "TitleResolver",
    "ToolLocator",
    "load_settings",
]
