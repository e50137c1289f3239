"""API call strategy: one HTTP request from a dynamic spec.

Query, header and auth fragments arrive as raw JSON strings written by a
user in the node editor. They are parsed permissively: a malformed
fragment (or a single malformed header) is skipped and reported as a
Diagnostic, and the call proceeds without it. The body is never parsed.

The response is normalized into the envelope:

    {"status": 200, "statusText": "OK", "headers": {...}, "data": <json or text>}
"""

import json
import re
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any

import httpx
import structlog

from noderun.contracts import (
    ConfigurationError,
    Diagnostic,
    DiagnosticSource,
    ErrorKind,
    ExecutionResult,
    HttpCallSpec,
    TransportError,
)

logger = structlog.get_logger(__name__)

SUPPORTED_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"})
BODYLESS_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
DEFAULT_ACCEPT = "application/json"

# RFC 7230 token characters
_HEADER_NAME = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
# Visible ASCII, space and tab; no CR/LF
_HEADER_VALUE = re.compile(r"^[\t\x20-\x7e]*$")


@dataclass
class PreparedRequest:
    """Request parts assembled from an HttpCallSpec, plus diagnostics."""

    method: str
    url: str
    params: dict[str, str] = field(default_factory=dict)
    headers: list[tuple[str, str]] = field(default_factory=list)
    auth: tuple[str, str] | None = None
    content: bytes | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)


def parse_string_map(raw: str | None, source: DiagnosticSource) -> tuple[dict[str, str], list[Diagnostic]]:
    """Parse a JSON object whose values are all strings.

    Empty or absent input yields an empty map. Anything else that is not
    a flat string map is rejected as a whole.

    Args:
        raw: Raw JSON text from the node editor
        source: Fragment name for diagnostics

    Returns:
        (parsed map, diagnostics); the map is empty when parsing failed
    """
    if raw is None or not raw.strip():
        return {}, []
    try:
        parsed = json.loads(raw)
    except ValueError as e:
        return {}, [Diagnostic(source, f"Error parsing {source.value}: {e}")]
    if not isinstance(parsed, dict):
        return {}, [Diagnostic(source, f"Error parsing {source.value}: expected a JSON object")]
    bad = [k for k, v in parsed.items() if not isinstance(v, str)]
    if bad:
        return {}, [
            Diagnostic(source, f"Error parsing {source.value}: value for '{bad[0]}' is not a string", key=bad[0])
        ]
    return parsed, []


def is_valid_header(name: str, value: str) -> bool:
    return bool(_HEADER_NAME.match(name)) and bool(_HEADER_VALUE.match(value))


def prepare_request(spec: HttpCallSpec) -> PreparedRequest:
    """Build request parts from a spec, collecting non-fatal diagnostics.

    Raises:
        ConfigurationError: UNSUPPORTED_METHOD for methods outside the allowed set
    """
    method = spec.method.strip().upper()
    if method not in SUPPORTED_METHODS:
        raise ConfigurationError(
            ErrorKind.UNSUPPORTED_METHOD,
            f"Unsupported HTTP method: {spec.method}",
        )

    prepared = PreparedRequest(method=method, url=spec.base_url)

    params, diagnostics = parse_string_map(spec.query, DiagnosticSource.QUERY)
    prepared.params = params
    prepared.diagnostics.extend(diagnostics)

    auth_map, diagnostics = parse_string_map(spec.auth, DiagnosticSource.AUTH)
    prepared.diagnostics.extend(diagnostics)
    auth_type = auth_map.get("type")
    if auth_type == "bearer":
        token = auth_map.get("token")
        if token is not None:
            prepared.headers.append(("Authorization", f"Bearer {token}"))
    elif auth_type == "basic":
        username = auth_map.get("username")
        password = auth_map.get("password")
        if username is not None and password is not None:
            prepared.auth = (username, password)
    elif auth_type is not None:
        prepared.diagnostics.append(
            Diagnostic(DiagnosticSource.AUTH, f"Unknown auth type: {auth_type}")
        )

    header_map, diagnostics = parse_string_map(spec.headers, DiagnosticSource.HEADERS)
    prepared.diagnostics.extend(diagnostics)
    for name, value in header_map.items():
        if is_valid_header(name, value):
            prepared.headers.append((name, value))
        else:
            prepared.diagnostics.append(
                Diagnostic(DiagnosticSource.HEADERS, f"Invalid header: {name}", key=name)
            )

    if spec.body:
        if method in BODYLESS_METHODS:
            prepared.diagnostics.append(
                Diagnostic(DiagnosticSource.BODY, f"Body ignored for {method} request")
            )
        else:
            prepared.content = spec.body.encode("utf-8")

    prepared.headers.append(("Accept", DEFAULT_ACCEPT))
    return prepared


def status_text(status_code: int) -> str:
    """Canonical reason phrase for a status code."""
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Unknown"


def response_envelope(response: httpx.Response) -> dict[str, Any]:
    """Normalize a response into {status, statusText, headers, data}.

    Repeated header names collapse to their last value.
    """
    headers = {name.lower(): value for name, value in response.headers.multi_items()}
    text = response.text
    try:
        data: Any = json.loads(text)
    except ValueError:
        data = text
    return {
        "status": response.status_code,
        "statusText": status_text(response.status_code),
        "headers": headers,
        "data": data,
    }


class ApiCallStrategy:
    """Sends one HTTP request per call with a fresh httpx.AsyncClient."""

    def __init__(
        self,
        default_timeout: float = 30.0,
        *,
        follow_redirects: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize strategy.

        Args:
            default_timeout: Seconds, used when a spec has no timeout
            follow_redirects: Whether 3xx responses are followed
            transport: Optional transport (tests inject httpx.MockTransport)
        """
        self._default_timeout = default_timeout
        self._follow_redirects = follow_redirects
        self._transport = transport

    async def execute(self, spec: HttpCallSpec) -> ExecutionResult:
        """Send the request and return the serialized response envelope.

        Raises:
            ConfigurationError: Unsupported method
            TransportError: Connection, timeout or protocol failure
        """
        prepared = prepare_request(spec)
        timeout = spec.timeout or self._default_timeout
        log = logger.bind(method=prepared.method, url=prepared.url, run_id=spec.run_id)

        for diagnostic in prepared.diagnostics:
            log.warning(
                "Request fragment skipped",
                source=diagnostic.source.value,
                key=diagnostic.key,
                reason=diagnostic.message,
            )

        log.info("Sending request", timeout=timeout)
        try:
            async with httpx.AsyncClient(
                timeout=timeout,
                follow_redirects=self._follow_redirects,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    prepared.method,
                    prepared.url,
                    params=prepared.params or None,
                    headers=prepared.headers,
                    auth=prepared.auth,
                    content=prepared.content,
                )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            log.warning("Request failed", error=str(e), error_type=type(e).__name__)
            raise TransportError(f"Request failed: {str(e) or type(e).__name__}") from e

        log.info("Response received", status=response.status_code, body_bytes=len(response.content))
        envelope = response_envelope(response)
        return ExecutionResult(
            output=json.dumps(envelope, ensure_ascii=False, separators=(",", ":")),
            diagnostics=tuple(prepared.diagnostics),
        )
