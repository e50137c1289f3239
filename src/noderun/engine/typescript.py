"""TypeScript pipeline: interpret directly, else build and run.

Flow for one run:

    interpret (ts-node) --ok--> evaluate
          |
       missing / non-zero exit
          v
    build check (BuildCache) --no rebuild--> run compiled JS --> evaluate
          |
       rebuild
          v
    npm run build --fail / no manifest--> tsc (project config or defaults)
          |                                   |
          +------------- ok ------------------+--> run compiled JS --> evaluate

stdout/stderr of the final process are always written to output.txt
beside the input artifact. When the fallback fails (build, tool lookup,
spawn) the log holds the interpreter's stderr followed by the failure.
"""

import json
from pathlib import Path, PurePath

import structlog

from noderun.contracts import (
    ArtifactError,
    ErrorKind,
    ExecutionError,
    ExecutionResult,
    ProcessError,
    ProcessOutput,
)
from noderun.core.artifacts import ArtifactStore
from noderun.core.build_cache import BuildCache, config_mtimes
from noderun.core.tools import ToolLocator
from noderun.engine.process import run_process

logger = structlog.get_logger(__name__)

SOURCE_DIR = "src"
OUTPUT_DIR = "dist"

# stdout content that indicates the script failed despite a zero exit
FAILURE_MARKERS = ("SyntaxError", "Failed to")

DEFAULT_COMPILER_FLAGS = (
    "--target",
    "es2020",
    "--module",
    "commonjs",
    "--moduleResolution",
    "node",
    "--esModuleInterop",
    "--skipLibCheck",
)


def compiled_path(source: Path, project_dir: Path, out_dir: str = OUTPUT_DIR) -> Path:
    """Map a TypeScript source file to its compiled JavaScript file.

    A leading "src" segment of the project-relative path is dropped and
    the extension rewritten: <project>/src/a/b.ts -> <project>/dist/a/b.js.
    Projects whose outDir differs from this layout are not supported.

    Args:
        source: TypeScript source path
        project_dir: Project root
        out_dir: Build output directory name

    Returns:
        Expected path of the compiled file

    Raises:
        ExecutionError: INVALID_REQUEST if source is not inside the project
    """
    try:
        relative = source.resolve().relative_to(project_dir.resolve())
    except ValueError as e:
        raise ExecutionError(
            ErrorKind.INVALID_REQUEST,
            f"Failed to strip prefix: {source} is not inside {project_dir}",
        ) from e

    parts = PurePath(relative).parts
    if not parts:
        raise ExecutionError(ErrorKind.INVALID_REQUEST, "Empty relative path")
    if parts[0] == SOURCE_DIR:
        parts = parts[1:]
    if not parts:
        raise ExecutionError(ErrorKind.INVALID_REQUEST, "Empty relative path")

    compiled = project_dir.joinpath(out_dir, *parts)
    if compiled.suffix == ".ts":
        compiled = compiled.with_suffix(".js")
    return compiled


def _has_build_script(package_json: Path) -> bool:
    try:
        manifest = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return False
    scripts = manifest.get("scripts") if isinstance(manifest, dict) else None
    return isinstance(scripts, dict) and "build" in scripts


class TypeScriptPipeline:
    """Runs one TypeScript node, building the project when required."""

    def __init__(
        self,
        artifacts: ArtifactStore,
        tools: ToolLocator,
        build_cache: BuildCache,
    ) -> None:
        """Initialize pipeline.

        Args:
            artifacts: Store used for the output artifact and execution log
            tools: Executable locator
            build_cache: Engine-owned build cache
        """
        self._artifacts = artifacts
        self._tools = tools
        self._cache = build_cache

    async def run(
        self,
        source: Path,
        project_dir: Path,
        request_path: Path,
        node_name: str,
    ) -> ExecutionResult:
        """Execute a TypeScript source file.

        Args:
            source: TypeScript source path
            project_dir: Project root (package.json/tsconfig.json live here)
            request_path: Input artifact path
            node_name: Node name, used for the output artifact name

        Returns:
            ExecutionResult whose output is the output artifact's contents

        Raises:
            ExecutionError: On build failure or any failed success check
        """
        output_path = self._artifacts.output_path(request_path, node_name)
        log = logger.bind(source=str(source), project=str(project_dir))

        proc = await self._interpret(source, project_dir, request_path, output_path)
        if proc is None or not proc.succeeded:
            log.info("Falling back to build-and-run")
            try:
                proc = await self._build_and_run(source, project_dir, request_path, output_path)
            except ExecutionError as e:
                self._write_failure_log(request_path, proc, e)
                raise

        log_path = self._artifacts.write_execution_log(
            request_path, proc.stdout_text, proc.stderr_text
        )
        output = self._evaluate(proc, output_path)
        return ExecutionResult(output=output, artifact_path=request_path, log_path=log_path)

    async def _build_and_run(
        self,
        source: Path,
        project_dir: Path,
        request_path: Path,
        output_path: Path,
    ) -> ProcessOutput:
        await self._ensure_built(source, project_dir)
        compiled = compiled_path(source, project_dir)
        node = self._tools.require("node", project_dir)
        logger.info("Running compiled script", compiled=str(compiled))
        return await run_process(
            [node, str(compiled), str(request_path), str(output_path)],
            cwd=project_dir,
        )

    def _write_failure_log(
        self,
        request_path: Path,
        interpreted: ProcessOutput | None,
        error: ExecutionError,
    ) -> None:
        """Persist whatever output exists when the fallback path fails.

        The interpreter's stderr (if it ran) precedes the failure's own
        stderr, or its message when no process output was captured.
        """
        stdout = error.stdout or (interpreted.stdout_text if interpreted is not None else "")
        stderr_parts = [interpreted.stderr_text] if interpreted is not None and interpreted.stderr_text else []
        stderr_parts.append(error.stderr or error.message)
        try:
            self._artifacts.write_execution_log(request_path, stdout, "\n".join(stderr_parts))
        except ArtifactError as e:
            logger.warning("Could not write execution log", error=e.message)

    async def _interpret(
        self,
        source: Path,
        project_dir: Path,
        request_path: Path,
        output_path: Path,
    ) -> ProcessOutput | None:
        """Try running the source directly; None when the tool is unavailable."""
        ts_node = self._tools.resolve("ts_node", project_dir)
        if ts_node is None:
            logger.info("Direct interpretation unavailable", tool="ts-node")
            return None
        try:
            proc = await run_process(
                [ts_node, str(source), str(request_path), str(output_path)],
                cwd=project_dir,
            )
        except ProcessError as e:
            logger.info("Direct interpretation failed to start", error=str(e))
            return None
        if not proc.succeeded:
            logger.info(
                "Direct interpretation exited non-zero",
                returncode=proc.returncode,
                stderr=proc.stderr_text,
            )
        return proc

    async def _ensure_built(self, source: Path, project_dir: Path) -> None:
        """Build the project unless the cache says it is current."""
        decision = self._cache.check_and_mark(project_dir, config_mtimes(project_dir))
        if not decision.rebuild:
            logger.info("Skipping build", project=str(project_dir), reason=decision.reason)
            return

        logger.info("Building project", project=str(project_dir), reason=decision.reason)
        try:
            await self._build(source, project_dir)
        except ExecutionError:
            self._cache.invalidate(project_dir)
            raise

    async def _build(self, source: Path, project_dir: Path) -> None:
        package_json = project_dir / "package.json"
        npm = self._tools.resolve("npm", project_dir)
        npm_failure = ""

        if npm is not None and package_json.is_file() and _has_build_script(package_json):
            try:
                proc = await run_process([npm, "run", "build"], cwd=project_dir)
            except ProcessError as e:
                npm_failure = str(e)
            else:
                if proc.succeeded:
                    logger.info("npm build succeeded", project=str(project_dir))
                    return
                npm_failure = proc.stderr_text or proc.stdout_text
                logger.warning("npm build failed", project=str(project_dir), stderr=npm_failure)
        else:
            logger.warning("No npm build script; invoking compiler directly", project=str(project_dir))

        tsc = self._tools.resolve("tsc", project_dir)
        if tsc is None:
            detail = npm_failure or "no build script and TypeScript compiler not found"
            raise ProcessError(ErrorKind.BUILD_FAILED, f"TypeScript build failed: {detail}", stderr=detail)

        proc = await run_process(self._compiler_command(tsc, source, project_dir), cwd=project_dir)
        if not proc.succeeded:
            # tsc reports diagnostics on stdout
            detail = proc.stderr_text or proc.stdout_text
            raise ProcessError(
                ErrorKind.BUILD_FAILED,
                f"TypeScript build failed: {detail}",
                stdout=proc.stdout_text,
                stderr=proc.stderr_text,
            )
        logger.info("tsc build succeeded", project=str(project_dir))

    @staticmethod
    def _compiler_command(tsc: str, source: Path, project_dir: Path) -> list[str]:
        """tsc invocation: project config when present, else fixed defaults."""
        tsconfig = project_dir / "tsconfig.json"
        if tsconfig.is_file():
            return [tsc, "-p", str(tsconfig)]

        src_root = project_dir / SOURCE_DIR
        root_dir = src_root if src_root.is_dir() else project_dir
        return [
            tsc,
            *DEFAULT_COMPILER_FLAGS,
            "--outDir",
            str(project_dir / OUTPUT_DIR),
            "--rootDir",
            str(root_dir),
            str(source),
        ]

    def _evaluate(self, proc: ProcessOutput, output_path: Path) -> str:
        """Apply the success checks in order and return the output artifact."""
        stdout = proc.stdout_text
        stderr = proc.stderr_text

        if not proc.succeeded:
            message = (
                f"Node script error: {stderr}"
                if stderr
                else "Node script failed with non-zero exit code"
            )
            raise ProcessError(ErrorKind.NON_ZERO_EXIT, message, stdout=stdout, stderr=stderr)

        if stderr:
            raise ProcessError(
                ErrorKind.SCRIPT_ERROR,
                f"Node script error: {stderr}",
                stdout=stdout,
                stderr=stderr,
            )

        if any(marker in stdout for marker in FAILURE_MARKERS):
            raise ProcessError(
                ErrorKind.SCRIPT_ERROR,
                f"Node script stdout error: {stdout}",
                stdout=stdout,
                stderr=stderr,
            )

        if not output_path.exists():
            raise ProcessError(
                ErrorKind.MISSING_RESULT_FILE,
                f"Result file not created: {output_path}",
                stdout=stdout,
                stderr=stderr,
            )

        return self._artifacts.read_output(output_path)
