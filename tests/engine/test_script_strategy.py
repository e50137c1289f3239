"""Tests for script dispatch and the direct JavaScript path.

`.js` scripts here contain Python; the configured `node` tool is the
Python interpreter.
"""

from pathlib import Path

import pytest

UPPERCASE_SCRIPT = """\
import sys
with open(sys.argv[1], encoding="utf-8") as f:
    sys.stdout.write(f.read().upper())
"""


@pytest.fixture
def strategy(artifact_store, titles, python_tools):
    from noderun.core.build_cache import BuildCache
    from noderun.engine.script import ScriptStrategy

    return ScriptStrategy(artifact_store, titles, python_tools, BuildCache())


def _request(target: Path | str, **overrides):
    from noderun.contracts import ExecutionRequest

    fields = {"target": str(target), "page_id": 1, "node_name": "greet", "run_id": "run-1", "param": ""}
    fields.update(overrides)
    return ExecutionRequest(**fields)


class TestClassify:
    @pytest.mark.parametrize(
        ("path", "kind"),
        [
            ("tests/login.spec.ts", "browser_test"),
            ("tests/login.test.js", "browser_test"),
            ("src/main.ts", "typescript"),
            ("scripts/run.js", "javascript"),
        ],
    )
    def test_dispatch(self, path: str, kind: str) -> None:
        from noderun.engine.script import classify

        assert classify(path).value == kind

    def test_markers_take_precedence_over_extension(self) -> None:
        from noderun.contracts import ScriptKind
        from noderun.engine.script import classify

        assert classify("a.spec.py") is ScriptKind.BROWSER_TEST

    def test_unsupported_extension(self) -> None:
        from noderun.contracts import ConfigurationError, ErrorKind
        from noderun.engine.script import classify

        with pytest.raises(ConfigurationError) as exc_info:
            classify("main.py")
        assert exc_info.value.kind is ErrorKind.UNSUPPORTED_FILE_TYPE


class TestDirectRun:
    async def test_stdout_is_result_and_input_is_written(self, tmp_path: Path, strategy, artifact_store) -> None:
        script = tmp_path / "upper.js"
        script.write_text(UPPERCASE_SCRIPT)

        result = await strategy.execute(_request(script, param='{"name": "ada"}'))

        assert result.output == '{"NAME": "ADA"}'
        expected = artifact_store.log_root / "root" / "Home" / "run-1" / "greet.json"
        assert result.artifact_path == expected
        assert expected.read_text(encoding="utf-8") == '{"name": "ada"}'

    async def test_project_title_names_directory(self, tmp_path: Path, strategy, artifact_store) -> None:
        script = tmp_path / "upper.js"
        script.write_text(UPPERCASE_SCRIPT)

        result = await strategy.execute(_request(script, project_id=7, page_id=2))

        assert result.artifact_path == artifact_store.log_root / "Checkout" / "Cart" / "run-1" / "greet.json"

    async def test_non_zero_exit_carries_stderr(self, tmp_path: Path, strategy) -> None:
        from noderun.contracts import ErrorKind, ProcessError

        script = tmp_path / "fail.js"
        script.write_text("import sys\nsys.stderr.write('boom')\nsys.exit(3)\n")

        with pytest.raises(ProcessError) as exc_info:
            await strategy.execute(_request(script))
        assert exc_info.value.kind is ErrorKind.NON_ZERO_EXIT
        assert str(exc_info.value) == "boom"

    async def test_invalid_utf8_output(self, tmp_path: Path, strategy) -> None:
        from noderun.contracts import ErrorKind, ProcessError

        script = tmp_path / "bytes.js"
        script.write_text("import sys\nsys.stdout.buffer.write(b'\\xff\\xfe')\n")

        with pytest.raises(ProcessError) as exc_info:
            await strategy.execute(_request(script))
        assert exc_info.value.kind is ErrorKind.OUTPUT_DECODE_FAILED
        assert str(exc_info.value).startswith("Failed to parse output:")

    async def test_unknown_page_is_invalid_request(self, tmp_path: Path, strategy) -> None:
        from noderun.contracts import ConfigurationError, ErrorKind

        script = tmp_path / "upper.js"
        script.write_text(UPPERCASE_SCRIPT)

        with pytest.raises(ConfigurationError) as exc_info:
            await strategy.execute(_request(script, page_id=404))
        assert exc_info.value.kind is ErrorKind.INVALID_REQUEST

    async def test_missing_interpreter(self, tmp_path: Path, artifact_store, titles, empty_path: str) -> None:
        from noderun.contracts import ErrorKind, ExecutionError
        from noderun.core.build_cache import BuildCache
        from noderun.core.tools import ToolLocator
        from noderun.engine.script import ScriptStrategy

        strategy = ScriptStrategy(artifact_store, titles, ToolLocator(search_path=empty_path), BuildCache())
        script = tmp_path / "upper.js"
        script.write_text(UPPERCASE_SCRIPT)

        with pytest.raises(ExecutionError) as exc_info:
            await strategy.execute(_request(script))
        assert exc_info.value.kind is ErrorKind.PROCESS_SPAWN_FAILED


class TestPreconditions:
    async def test_typescript_requires_project_dir(self, tmp_path: Path, strategy, artifact_store) -> None:
        from noderun.contracts import ConfigurationError, ErrorKind

        with pytest.raises(ConfigurationError) as exc_info:
            await strategy.execute(_request(tmp_path / "main.ts", project_path=str(tmp_path / "missing")))
        assert exc_info.value.kind is ErrorKind.PROJECT_PATH_MISSING
        assert not artifact_store.log_root.exists()

    async def test_browser_test_without_dependency(self, tmp_path: Path, strategy, artifact_store) -> None:
        from noderun.contracts import ConfigurationError, ErrorKind

        project = tmp_path / "proj"
        (project / "tests").mkdir(parents=True)
        (project / "package.json").write_text('{"dependencies": {}}')
        script = project / "tests" / "login.spec.ts"
        script.write_text("")

        with pytest.raises(ConfigurationError) as exc_info:
            await strategy.execute(_request(script, project_path=str(project)))
        assert exc_info.value.kind is ErrorKind.DEPENDENCY_MISSING
        assert not artifact_store.log_root.exists()
