"""Execution request records consumed by the strategies.

These mirror the wire shape the workflow front-end sends. Field aliases
accept both snake_case and the camelCase names used by the UI
(`filePath`, `serviceName`, `sslMode`, ...).

Connection descriptors deliberately leave every field optional: a missing
host or password is a MissingConnectionField error raised by the database
strategy, not a parse error, so callers can tell the two apart.
"""

from typing import Annotated, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

_ALIAS_CONFIG = ConfigDict(frozen=True, populate_by_name=True)


class ExecutionRequest(BaseModel):
    """One script node run.

    (node_name, run_id) determines the artifact file names. The caller
    must keep that pair unique across concurrent runs of the same node.
    """

    model_config = _ALIAS_CONFIG

    target: str = Field(
        validation_alias=AliasChoices("target", "file_path", "filePath"),
        description="Script file path",
    )
    project_path: str = Field(
        default="",
        validation_alias=AliasChoices("project_path", "projectPath"),
        description="Root of the script's project (package.json lives here)",
    )
    project_id: int | None = Field(
        default=None,
        validation_alias=AliasChoices("project_id", "projectId"),
    )
    page_id: int = Field(validation_alias=AliasChoices("page_id", "pageId"))
    node_name: str = Field(
        min_length=1,
        validation_alias=AliasChoices("node_name", "nodeName"),
    )
    run_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("run_id", "runId"),
    )
    param: str = Field(default="", description="Serialized input payload, written verbatim")


class HttpCallSpec(BaseModel):
    """One API node call.

    query, headers and auth are raw JSON strings parsed permissively;
    body is passed through verbatim.
    """

    model_config = _ALIAS_CONFIG

    method: str
    base_url: str = Field(validation_alias=AliasChoices("base_url", "baseUrl", "url"))
    query: str | None = None
    headers: str | None = None
    body: str | None = None
    auth: str | None = None
    timeout: float | None = Field(
        default=None,
        gt=0,
        description="Request timeout in seconds (engine default when omitted)",
    )
    project_id: int | None = Field(default=None, validation_alias=AliasChoices("project_id", "projectId"))
    page_id: int | None = Field(default=None, validation_alias=AliasChoices("page_id", "pageId"))
    run_id: str | None = Field(default=None, validation_alias=AliasChoices("run_id", "runId"))


class SqliteConnection(BaseModel):
    """SQLite database file."""

    model_config = _ALIAS_CONFIG

    type: Literal["sqlite"] = "sqlite"
    file_path: str | None = Field(
        default=None,
        validation_alias=AliasChoices("file_path", "filePath"),
    )


class PostgresConnection(BaseModel):
    """PostgreSQL server."""

    model_config = _ALIAS_CONFIG

    type: Literal["postgresql"] = "postgresql"
    host: str | None = None
    port: int | None = None
    database: str | None = None
    username: str | None = Field(
        default=None,
        validation_alias=AliasChoices("username", "user"),
    )
    password: str | None = Field(default=None, repr=False)
    schema_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("schema", "schema_name"),
        description="search_path to set before the query",
    )
    ssl_mode: bool | None = Field(
        default=None,
        validation_alias=AliasChoices("ssl_mode", "sslMode", "ssl"),
    )


class OracleConnection(BaseModel):
    """Oracle server, addressed by service name or SID."""

    model_config = _ALIAS_CONFIG

    type: Literal["oracle"] = "oracle"
    host: str | None = None
    port: int | None = None
    service_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("service_name", "serviceName"),
    )
    sid: str | None = None
    username: str | None = Field(
        default=None,
        validation_alias=AliasChoices("username", "user"),
    )
    password: str | None = Field(default=None, repr=False)


ConnectionDescriptor = Annotated[
    SqliteConnection | PostgresConnection | OracleConnection,
    Field(discriminator="type"),
]


class DbCallSpec(BaseModel):
    """One DB node query."""

    model_config = _ALIAS_CONFIG

    connection: ConnectionDescriptor
    query: str
    max_rows: int | None = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("max_rows", "maxRows"),
        description="Row cap (engine default when omitted)",
    )
    timeout: float | None = Field(default=None, gt=0, description="Connect timeout in seconds")
    project_id: int | None = Field(default=None, validation_alias=AliasChoices("project_id", "projectId"))
    page_id: int | None = Field(default=None, validation_alias=AliasChoices("page_id", "pageId"))
    run_id: str | None = Field(default=None, validation_alias=AliasChoices("run_id", "runId"))


class ConnectionProbeSpec(BaseModel):
    """Connectivity probe for a descriptor, without user SQL."""

    model_config = _ALIAS_CONFIG

    connection: ConnectionDescriptor
