# src/noderun/core/config.py
"""
Configuration schema and loading for the noderun engine.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


class ArtifactSettings(BaseModel):
    """Where run artifacts and execution logs are written.

    Layout: <data_root>/<app_name>/log/<project>/<page>/<run_id>/<node>.json

    Example YAML:
        artifacts:
          data_root: /var/lib/workflows
          app_name: TTOL
          retention_days: 30
    """

    model_config = {"frozen": True}

    data_root: Path | None = Field(
        default=None,
        description="Local-data root (platform default when unset)",
    )
    app_name: str = Field(
        default="TTOL",
        min_length=1,
        description="Application folder under the local-data root",
    )
    retention_days: int | None = Field(
        default=None,
        gt=0,
        description="Age after which `purge` removes run directories (None = keep forever)",
    )

    def resolved_data_root(self) -> Path:
        """Configured root, or the per-user local data directory."""
        if self.data_root is not None:
            return self.data_root
        from platformdirs import user_data_path

        return user_data_path(appname=None, appauthor=False, roaming=False)


class HttpSettings(BaseModel):
    """Defaults for API node calls."""

    model_config = {"frozen": True}

    default_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout applied when a call does not specify one",
    )
    follow_redirects: bool = Field(default=True, description="Follow 3xx responses")


class DatabaseSettings(BaseModel):
    """Defaults for DB node queries."""

    model_config = {"frozen": True}

    default_max_rows: int = Field(default=1000, gt=0, description="Row cap when a query omits max_rows")
    oracle_worker_threads: int = Field(
        default=1,
        gt=0,
        description="Dedicated threads for the synchronous Oracle driver",
    )


class ToolSettings(BaseModel):
    """Executable overrides for the script strategies.

    Unset tools are resolved from the project's node_modules/.bin, then PATH.

    Example YAML:
        tools:
          node: /opt/node/bin/node
          ts_node: /opt/node/bin/ts-node
    """

    model_config = {"frozen": True}

    node: str | None = None
    npm: str | None = None
    npx: str | None = None
    tsc: str | None = None
    ts_node: str | None = None
    browser_test_package: str = Field(
        default="@playwright/test",
        description="Dependency a project must declare to run browser tests",
    )

    def overrides(self) -> dict[str, str]:
        """Configured executable overrides keyed by tool name."""
        return {
            name: value
            for name, value in (
                ("node", self.node),
                ("npm", self.npm),
                ("npx", self.npx),
                ("tsc", self.tsc),
                ("ts_node", self.ts_node),
            )
            if value
        }


class LoggingSettings(BaseModel):
    """structlog output configuration."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    json_output: bool = Field(default=False, description="Render JSON lines instead of console output")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        """Accept lower-case level names from YAML/env."""
        if isinstance(v, str):
            return v.upper()
        return v


class EngineSettings(BaseModel):
    """Top-level engine configuration.

    Every section has defaults, so an empty settings file is valid.
    """

    model_config = {"frozen": True}

    artifacts: ArtifactSettings = Field(
        default_factory=ArtifactSettings,
        description="Artifact and log layout",
    )
    http: HttpSettings = Field(
        default_factory=HttpSettings,
        description="API call defaults",
    )
    database: DatabaseSettings = Field(
        default_factory=DatabaseSettings,
        description="DB query defaults",
    )
    tools: ToolSettings = Field(
        default_factory=ToolSettings,
        description="Script tool executables",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Log output",
    )
    graph_store_url: str | None = Field(
        default=None,
        description="SQLAlchemy URL of the graph store used to resolve book/page titles",
    )


def load_settings(config_path: Path) -> EngineSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (NODERUN_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: NODERUN_HTTP__DEFAULT_TIMEOUT_SECONDS for nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated EngineSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="NODERUN",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys; nested dicts keep their original case
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {
        k.lower(): _lower_keys(v)
        for k, v in dynaconf_settings.as_dict().items()
        if k not in internal_keys
    }
    return EngineSettings(**raw_config)


def _lower_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value


def resolve_config(settings: EngineSettings) -> dict[str, Any]:
    """Convert validated settings to a JSON-safe dict.

    Includes all settings (explicit + defaults), for logging at startup.

    Args:
        settings: Validated EngineSettings instance

    Returns:
        Dict representation suitable for JSON serialization
    """
    return settings.model_dump(mode="json")
