"""Script execution strategy.

Per invocation:

    Dispatch -> {DirectRun | TypeScriptPipeline | BrowserTestRunner} -> Done(ok | error)

Dispatch is decided from the file path alone, before any I/O:
- path contains ".spec." or ".test."  -> browser test (regardless of extension)
- ".ts"                               -> TypeScript pipeline
- ".js"                               -> direct run
- anything else                       -> UNSUPPORTED_FILE_TYPE
"""

import asyncio
from pathlib import Path

import structlog

from noderun.contracts import (
    ConfigurationError,
    ErrorKind,
    ExecutionRequest,
    ExecutionResult,
    ProcessError,
    ScriptKind,
)
from noderun.core.artifacts import ArtifactStore
from noderun.core.build_cache import BuildCache
from noderun.core.titles import TitleResolver, project_name_for
from noderun.core.tools import ToolLocator
from noderun.engine.browser_test import BrowserTestRunner
from noderun.engine.process import run_process
from noderun.engine.typescript import TypeScriptPipeline

logger = structlog.get_logger(__name__)

BROWSER_TEST_MARKERS = (".spec.", ".test.")


def classify(path: str) -> ScriptKind:
    """Select the execution path for a script file.

    Raises:
        ConfigurationError: UNSUPPORTED_FILE_TYPE for any other extension
    """
    if any(marker in path for marker in BROWSER_TEST_MARKERS):
        return ScriptKind.BROWSER_TEST
    if path.endswith(".ts"):
        return ScriptKind.TYPESCRIPT
    if path.endswith(".js"):
        return ScriptKind.JAVASCRIPT
    raise ConfigurationError(
        ErrorKind.UNSUPPORTED_FILE_TYPE,
        f"Unsupported file type: {path}",
    )


class ScriptStrategy:
    """Executes script nodes.

    Example:
        strategy = ScriptStrategy(artifacts, titles, tools, BuildCache())
        result = await strategy.execute(request)
        print(result.output)
    """

    def __init__(
        self,
        artifacts: ArtifactStore,
        titles: TitleResolver,
        tools: ToolLocator,
        build_cache: BuildCache,
        browser_test_package: str = "@playwright/test",
    ) -> None:
        self._artifacts = artifacts
        self._titles = titles
        self._tools = tools
        self._typescript = TypeScriptPipeline(artifacts, tools, build_cache)
        self._browser_tests = BrowserTestRunner(artifacts, tools, browser_test_package)

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Run one script node.

        Args:
            request: Script path, project, page, node and run identifiers

        Returns:
            ExecutionResult with the script's result string

        Raises:
            ExecutionError: Terminal failure; nothing is retried
        """
        kind = classify(request.target)
        script = Path(request.target)
        project_dir = Path(request.project_path) if request.project_path else None
        log = logger.bind(node=request.node_name, run_id=request.run_id, kind=kind.value)

        if kind is not ScriptKind.JAVASCRIPT:
            if project_dir is None or not project_dir.is_dir():
                raise ConfigurationError(
                    ErrorKind.PROJECT_PATH_MISSING,
                    f"Project path does not exist: {request.project_path}",
                )
            if kind is ScriptKind.BROWSER_TEST:
                self._browser_tests.validate(script, project_dir)

        request_path = await self._write_request(request)
        log.info("Dispatching script", script=str(script), artifact=str(request_path))

        if kind is ScriptKind.BROWSER_TEST:
            assert project_dir is not None
            return await self._browser_tests.run(script, project_dir, request_path, request.node_name)
        if kind is ScriptKind.TYPESCRIPT:
            assert project_dir is not None
            return await self._typescript.run(script, project_dir, request_path, request.node_name)
        return await self._run_direct(script, request_path, project_dir)

    async def _write_request(self, request: ExecutionRequest) -> Path:
        """Resolve titles and materialize the input artifact."""
        try:
            project_name, page_name = await asyncio.to_thread(self._resolve_titles, request)
        except LookupError as e:
            raise ConfigurationError(ErrorKind.INVALID_REQUEST, str(e)) from e

        page_dir = self._artifacts.page_dir(project_name, page_name)
        return self._artifacts.write_request(page_dir, request.node_name, request.run_id, request.param)

    def _resolve_titles(self, request: ExecutionRequest) -> tuple[str, str]:
        return (
            project_name_for(self._titles, request.project_id),
            self._titles.page_title(request.page_id),
        )

    async def _run_direct(
        self,
        script: Path,
        request_path: Path,
        project_dir: Path | None,
    ) -> ExecutionResult:
        """Run a JavaScript file with the input artifact as its only argument.

        stdout is the result and must be valid UTF-8.
        """
        node = self._tools.require("node", project_dir)
        proc = await run_process([node, str(script), str(request_path)])

        if not proc.succeeded:
            stderr = proc.stderr_text
            raise ProcessError(ErrorKind.NON_ZERO_EXIT, stderr, stdout=proc.stdout_text, stderr=stderr)

        try:
            output = proc.stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProcessError(
                ErrorKind.OUTPUT_DECODE_FAILED,
                f"Failed to parse output: {e}",
                stderr=proc.stderr_text,
            ) from e
        return ExecutionResult(output=output, artifact_path=request_path)
