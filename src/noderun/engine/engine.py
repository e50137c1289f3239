# src/noderun/engine/engine.py
"""ExecutionEngine: the single entry point for node runs.

Wires settings into the three strategies and shares the build cache,
artifact store and tool locator between them. Every call is independent;
concurrent calls are safe as long as (node_name, run_id) pairs differ.

Example:
    settings = load_settings(Path("settings.yaml"))
    async with ExecutionEngine(settings, StaticTitleResolver(pages={1: "Home"})) as engine:
        result = await engine.execute_db_query(spec)
        print(result.output)
"""

import asyncio
from types import TracebackType

import httpx
import structlog

from noderun.contracts import (
    ConnectionDescriptor,
    DbCallSpec,
    ExecutionRequest,
    ExecutionResult,
    HttpCallSpec,
)
from noderun.core.artifacts import ArtifactStore
from noderun.core.build_cache import BuildCache
from noderun.core.config import EngineSettings
from noderun.core.titles import TitleResolver
from noderun.core.tools import ToolLocator
from noderun.engine.api_call import ApiCallStrategy
from noderun.engine.db import DbQueryStrategy
from noderun.engine.script import ScriptStrategy

logger = structlog.get_logger(__name__)


class ExecutionEngine:
    """Runs script, API and DB nodes."""

    def __init__(
        self,
        settings: EngineSettings,
        titles: TitleResolver,
        *,
        artifacts: ArtifactStore | None = None,
        build_cache: BuildCache | None = None,
        tools: ToolLocator | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize engine.

        Args:
            settings: Validated engine settings
            titles: Project/page title lookup for artifact directories
            artifacts: Artifact store (built from settings when omitted)
            build_cache: Shared build cache (fresh one when omitted)
            tools: Executable locator (built from settings when omitted)
            http_transport: httpx transport for API calls (tests inject a mock)
        """
        self._settings = settings
        self.artifacts = artifacts or ArtifactStore(
            settings.artifacts.resolved_data_root(),
            settings.artifacts.app_name,
        )
        self.build_cache = build_cache or BuildCache()
        self.tools = tools or ToolLocator(settings.tools.overrides())

        self._scripts = ScriptStrategy(
            self.artifacts,
            titles,
            self.tools,
            self.build_cache,
            browser_test_package=settings.tools.browser_test_package,
        )
        self._api = ApiCallStrategy(
            settings.http.default_timeout_seconds,
            follow_redirects=settings.http.follow_redirects,
            transport=http_transport,
        )
        self._db = DbQueryStrategy(
            default_max_rows=settings.database.default_max_rows,
            oracle_worker_threads=settings.database.oracle_worker_threads,
        )
        self._closed = False
        logger.debug("Engine ready", log_root=str(self.artifacts.log_root))

    async def execute_script(self, request: ExecutionRequest) -> ExecutionResult:
        """Run a script node (browser test, TypeScript or JavaScript)."""
        return await self._scripts.execute(request)

    async def execute_api_call(self, spec: HttpCallSpec) -> ExecutionResult:
        """Send one HTTP request and return the response envelope."""
        return await self._api.execute(spec)

    async def execute_db_query(self, spec: DbCallSpec) -> ExecutionResult:
        """Run one SQL statement and return the row envelope."""
        return await self._db.execute(spec)

    async def test_connection(self, connection: ConnectionDescriptor, timeout: float | None = None) -> str:
        """Probe a database connection; returns the backend's success message."""
        return await self._db.test_connection(connection, timeout)

    async def close(self) -> None:
        """Release worker threads. Idempotent.

        In-flight Oracle calls are awaited without blocking the event loop.
        """
        if self._closed:
            return
        self._closed = True
        await asyncio.to_thread(self._db.close)

    async def __aenter__(self) -> "ExecutionEngine":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
