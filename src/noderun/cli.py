# src/noderun/cli.py
"""noderun Command Line Interface.

Runs a single workflow node from the shell. The node's result goes to
stdout; diagnostics, errors and log events go to stderr.
"""

import asyncio
import json
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import typer
from pydantic import BaseModel, TypeAdapter, ValidationError

from noderun import __version__
from noderun.contracts import (
    ConnectionDescriptor,
    DbCallSpec,
    ExecutionError,
    ExecutionRequest,
    ExecutionResult,
    HttpCallSpec,
)
from noderun.core.artifacts import ArtifactStore
from noderun.core.config import EngineSettings, load_settings
from noderun.core.logging import configure_logging
from noderun.core.retention import find_expired_runs, purge_expired_runs
from noderun.core.titles import GraphStoreTitleResolver, StaticTitleResolver, TitleResolver
from noderun.engine import ExecutionEngine

app = typer.Typer(
    name="noderun",
    help="noderun: execute script, API and database workflow nodes.",
    no_args_is_help=True,
)

ModelT = TypeVar("ModelT", bound=BaseModel)

_SETTINGS_OPTION = typer.Option(
    None,
    "--settings",
    "-s",
    help="Path to settings YAML file (defaults apply when omitted).",
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"noderun version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """noderun: execute script, API and database workflow nodes."""
    pass


def _echo_validation_errors(title: str, error: ValidationError) -> None:
    typer.echo(title, err=True)
    for item in error.errors():
        loc = ".".join(str(x) for x in item["loc"])
        typer.echo(f"  - {loc}: {item['msg']}", err=True)


def _load(settings: str | None) -> EngineSettings:
    """Load settings (or defaults) and configure logging, exiting on failure."""
    if settings is None:
        config = EngineSettings()
    else:
        try:
            config = load_settings(Path(settings))
        except FileNotFoundError:
            typer.echo(f"Error: Settings file not found: {settings}", err=True)
            raise typer.Exit(1) from None
        except ValidationError as e:
            _echo_validation_errors("Configuration errors:", e)
            raise typer.Exit(1) from None
    configure_logging(config.logging)
    return config


def _read_json(path: str) -> Any:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        typer.echo(f"Error: Cannot read {path}: {e}", err=True)
        raise typer.Exit(1) from None
    except ValueError as e:
        typer.echo(f"Error: Invalid JSON in {path}: {e}", err=True)
        raise typer.Exit(1) from None


def _validate(model: type[ModelT], data: Any) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        _echo_validation_errors("Request errors:", e)
        raise typer.Exit(1) from None


def _title_resolver(config: EngineSettings, pages: dict[int, str], books: dict[int, str]) -> TitleResolver:
    if config.graph_store_url:
        return GraphStoreTitleResolver(config.graph_store_url)
    return StaticTitleResolver(books=books, pages=pages)


def _run_engine(
    config: EngineSettings,
    titles: TitleResolver,
    call: Callable[[ExecutionEngine], Awaitable[ExecutionResult | str]],
) -> ExecutionResult | str:
    """Build an engine, run one call, and map ExecutionError to exit code 1."""

    async def _go() -> ExecutionResult | str:
        async with ExecutionEngine(config, titles) as engine:
            return await call(engine)

    try:
        return asyncio.run(_go())
    except ExecutionError as e:
        typer.echo(f"Error [{e.kind.value}]: {e.message}", err=True)
        raise typer.Exit(1) from None
    finally:
        if isinstance(titles, GraphStoreTitleResolver):
            titles.close()


def _emit(result: ExecutionResult | str) -> None:
    if isinstance(result, str):
        typer.echo(result)
        return
    for diagnostic in result.diagnostics:
        typer.echo(f"Warning [{diagnostic.source.value}]: {diagnostic.message}", err=True)
    typer.echo(result.output)


@app.command()
def script(
    target: str = typer.Argument(..., help="Script file (.js, .ts, or *.spec.* / *.test.*)."),
    page_id: int = typer.Option(..., "--page-id", help="Page the node belongs to."),
    node_name: str = typer.Option(..., "--node", "-n", help="Node name (artifact file stem)."),
    run_id: str = typer.Option(..., "--run-id", "-r", help="Run identifier."),
    project_path: str = typer.Option("", "--project-path", "-p", help="Project root directory."),
    project_id: int | None = typer.Option(None, "--project-id", help="Project (book) id."),
    param: str = typer.Option("", "--param", help="Input payload written to the input artifact."),
    param_file: str | None = typer.Option(None, "--param-file", help="Read the input payload from a file."),
    page_title: str | None = typer.Option(None, "--page-title", help="Page title when no graph store is configured."),
    project_title: str | None = typer.Option(
        None, "--project-title", help="Project title when no graph store is configured."
    ),
    settings: str | None = _SETTINGS_OPTION,
) -> None:
    """Run a script node and print its result."""
    config = _load(settings)
    if param_file is not None:
        try:
            param = Path(param_file).read_text(encoding="utf-8")
        except OSError as e:
            typer.echo(f"Error: Cannot read {param_file}: {e}", err=True)
            raise typer.Exit(1) from None

    request = _validate(
        ExecutionRequest,
        {
            "target": target,
            "project_path": project_path,
            "project_id": project_id,
            "page_id": page_id,
            "node_name": node_name,
            "run_id": run_id,
            "param": param,
        },
    )
    books = {project_id: project_title} if project_id is not None and project_title else {}
    titles = _title_resolver(config, {page_id: page_title or str(page_id)}, books)
    _emit(_run_engine(config, titles, lambda engine: engine.execute_script(request)))


@app.command()
def api(
    method: str = typer.Argument(..., help="HTTP method."),
    url: str = typer.Argument(..., help="Request URL."),
    query: str | None = typer.Option(None, "--query", "-q", help="JSON object of query parameters."),
    headers: str | None = typer.Option(None, "--headers", "-H", help="JSON object of headers."),
    body: str | None = typer.Option(None, "--body", "-d", help="Raw request body."),
    auth: str | None = typer.Option(None, "--auth", help='JSON auth, e.g. {"type": "bearer", "token": "..."}.'),
    timeout: float | None = typer.Option(None, "--timeout", "-t", help="Timeout in seconds."),
    settings: str | None = _SETTINGS_OPTION,
) -> None:
    """Send one HTTP request and print the response envelope."""
    config = _load(settings)
    spec = _validate(
        HttpCallSpec,
        {
            "method": method,
            "base_url": url,
            "query": query,
            "headers": headers,
            "body": body,
            "auth": auth,
            "timeout": timeout,
        },
    )
    _emit(_run_engine(config, StaticTitleResolver(), lambda engine: engine.execute_api_call(spec)))


@app.command()
def db(
    request: str = typer.Option(
        ...,
        "--request",
        help='JSON file with "connection" and "query" (and optional "maxRows").',
    ),
    query: str | None = typer.Option(None, "--query", "-q", help="SQL overriding the request file's query."),
    max_rows: int | None = typer.Option(None, "--max-rows", "-m", help="Row cap."),
    settings: str | None = _SETTINGS_OPTION,
) -> None:
    """Run one SQL statement and print the row envelope."""
    config = _load(settings)
    data = _read_json(request)
    if not isinstance(data, dict):
        typer.echo(f"Error: {request} must contain a JSON object", err=True)
        raise typer.Exit(1)
    if query is not None:
        data["query"] = query
    if max_rows is not None:
        data["max_rows"] = max_rows
    spec = _validate(DbCallSpec, data)
    _emit(_run_engine(config, StaticTitleResolver(), lambda engine: engine.execute_db_query(spec)))


@app.command("test-connection")
def test_connection(
    connection: str = typer.Option(
        ...,
        "--connection",
        "-c",
        help='JSON file with a connection descriptor (must include "type").',
    ),
    settings: str | None = _SETTINGS_OPTION,
) -> None:
    """Probe a database connection."""
    config = _load(settings)
    data = _read_json(connection)
    try:
        descriptor = TypeAdapter(ConnectionDescriptor).validate_python(data)
    except ValidationError as e:
        _echo_validation_errors("Connection errors:", e)
        raise typer.Exit(1) from None
    _emit(_run_engine(config, StaticTitleResolver(), lambda engine: engine.test_connection(descriptor)))


@app.command()
def purge(
    retention_days: int | None = typer.Option(
        None,
        "--retention-days",
        "-d",
        help="Override artifacts.retention_days from settings.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-n",
        help="List expired run directories without deleting them.",
    ),
    settings: str | None = _SETTINGS_OPTION,
) -> None:
    """Delete run artifact directories older than the retention period."""
    config = _load(settings)
    days = retention_days or config.artifacts.retention_days
    if days is None:
        typer.echo("Error: No retention period configured (set artifacts.retention_days or pass --retention-days)", err=True)
        raise typer.Exit(1)

    store = ArtifactStore(config.artifacts.resolved_data_root(), config.artifacts.app_name)
    if dry_run:
        expired = find_expired_runs(store, days)
        typer.echo(f"Would delete {len(expired)} run directories:")
        for path in expired:
            typer.echo(f"  {path}")
        return

    result = purge_expired_runs(store, days)
    typer.echo(f"Deleted {result.deleted_count} run directories ({result.bytes_freed} bytes).")
    if result.failed_paths:
        typer.echo(f"Failed to delete {len(result.failed_paths)} directories:", err=True)
        for path in result.failed_paths:
            typer.echo(f"  {path}", err=True)
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
