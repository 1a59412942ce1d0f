"""Request dispatch and HTTP backends

RequestDispatcher - Auth/version headers and verb-specific body encoding
HttpxBackend - Native runtime backend on a pooled httpx.AsyncClient
FetchBackend - Sandboxed runtime backend on the host's fetch (Pyodide)
"""

import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable
from urllib.parse import urlencode

import httpx
from loguru import logger

from ._version import __version__
from .exceptions import TransportError
from .logging_bridge import install_logging_bridge
from .urls import KITE_VERSION

if TYPE_CHECKING:
    from .session import Credentials

USER_AGENT = f"kite-client-python/{__version__}"

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
JSON_CONTENT_TYPE = "application/json"

SUPPORTED_METHODS = ("GET", "POST", "PUT", "DELETE")


@dataclass(frozen=True)
class RequestDescriptor:
    """A single outgoing call, built per request and discarded after dispatch"""

    url: httpx.URL
    method: str
    params: dict[str, str] | None = None


@dataclass(frozen=True)
class RawResponse:
    """Uninterpreted HTTP outcome"""

    status_code: int
    text: str
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


@runtime_checkable
class HttpBackend(Protocol):
    """Protocol for the transport that actually performs the HTTP call."""

    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        content: bytes | None,
    ) -> RawResponse:
        """Send one request and return the raw response."""
        ...

    async def aclose(self) -> None:
        """Release transport resources."""
        ...


class HttpxBackend:
    """Native backend on httpx.AsyncClient

    The client (and its connection pool) is created lazily and may be shared
    across client copies; nothing here mutates it after construction.

    A client passed in through ``http_client`` or ``set_http_client`` belongs
    to the caller: ``aclose`` leaves it open and it is never replaced.
    """

    def __init__(
        self,
        timeout: float = 7.0,
        transport: httpx.AsyncBaseTransport | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize backend

        Args:
            timeout: Request timeout in seconds
            transport: Optional httpx transport (e.g. httpx.MockTransport)
            http_client: Pre-built client; takes precedence over transport
        """
        self._timeout = timeout
        self._transport = transport
        self._http_client = http_client
        self._owns_http_client = http_client is None
        install_logging_bridge()

    def _build_http_client(self) -> httpx.AsyncClient:
        """Create an AsyncClient with request/response logging hooks."""
        return httpx.AsyncClient(
            timeout=self._timeout,
            transport=self._transport,
            event_hooks={
                "request": [self._log_httpx_request],
                "response": [self._log_httpx_response],
            },
        )

    async def _log_httpx_request(self, request: httpx.Request) -> None:
        """Log outbound httpx requests with headers (auth masked)."""
        headers = {
            k: ("***" if k.lower() == "authorization" else v)
            for k, v in request.headers.items()
        }
        logger.debug(f"HTTPX request: {request.method} {request.url} {headers}")

    async def _log_httpx_response(self, response: httpx.Response) -> None:
        """Log httpx response status; bodies may carry tokens."""
        logger.debug(
            f"HTTPX response: status={response.status_code} url={response.url}"
        )

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = self._build_http_client()
        return self._http_client

    def set_http_client(self, client: httpx.AsyncClient) -> None:
        """Set the HTTP client (for testing or external management)"""
        self._http_client = client
        self._owns_http_client = False

    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        content: bytes | None,
    ) -> RawResponse:
        try:
            response = await self.http_client.request(
                method, url, headers=headers, content=content
            )
        except httpx.RequestError as e:
            logger.warning(f"Network error on {method} {url}: {e}")
            raise TransportError(f"{method} {url} failed: {e}") from e

        return RawResponse(
            status_code=response.status_code,
            text=response.text,
            headers=dict(response.headers),
        )

    async def aclose(self) -> None:
        """Close the client this backend built; injected clients stay open"""
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None


FetchFunction = Callable[..., Awaitable[Any]]


class FetchBackend:
    """Sandboxed backend on the host's fetch

    Inside Pyodide this is ``pyodide.http.pyfetch``. The host owns
    connection reuse and timeouts.
    """

    def __init__(self, fetch: FetchFunction | None = None) -> None:
        self._fetch = fetch

    def _resolve_fetch(self) -> FetchFunction:
        if self._fetch is not None:
            return self._fetch
        try:
            from pyodide.http import pyfetch  # type: ignore[import-not-found]
        except ImportError as e:
            raise TransportError(
                "Host fetch is not available in this runtime"
            ) from e
        self._fetch = pyfetch
        return pyfetch

    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        content: bytes | None,
    ) -> RawResponse:
        fetch = self._resolve_fetch()
        options: dict[str, Any] = {"method": method, "headers": headers}
        if content is not None:
            options["body"] = content.decode("utf-8")

        try:
            response = await fetch(url, **options)
        except OSError as e:
            logger.warning(f"Host fetch error on {method} {url}: {e}")
            raise TransportError(f"{method} {url} failed: {e}") from e

        # an aborted body read surfaces as a JsException, not OSError
        try:
            text = await response.string()
        except Exception as e:
            logger.warning(f"Host body read error on {method} {url}: {e}")
            raise TransportError(f"{method} {url} body read failed: {e}") from e

        return RawResponse(
            status_code=int(response.status),
            text=text,
            headers=dict(getattr(response, "headers", {}) or {}),
        )

    async def aclose(self) -> None:
        return None


class RequestDispatcher:
    """Attaches auth headers, encodes the body and hands off to a backend

    Wire contract:
    - GET: no body
    - POST, PUT: params as an urlencoded form body
    - DELETE: params as a JSON body
    """

    def __init__(self, backend: HttpBackend, user_agent: str = USER_AGENT) -> None:
        self._backend = backend
        self._user_agent = user_agent

    @property
    def backend(self) -> HttpBackend:
        return self._backend

    def build_headers(self, credentials: "Credentials") -> dict[str, str]:
        """Headers for one request, derived from credentials at call time"""
        return {
            "X-Kite-Version": KITE_VERSION,
            "Authorization": (
                f"token {credentials.api_key}:{credentials.access_token}"
            ),
            "User-Agent": self._user_agent,
        }

    @staticmethod
    def encode_body(
        method: str, params: dict[str, str] | None
    ) -> tuple[bytes | None, str | None]:
        """Return (body, content type) for the verb

        Raises:
            ValueError: For verbs outside GET/POST/PUT/DELETE
        """
        if method == "GET":
            return None, None
        if method in ("POST", "PUT"):
            return urlencode(params or {}).encode("utf-8"), FORM_CONTENT_TYPE
        if method == "DELETE":
            return json.dumps(params or {}).encode("utf-8"), JSON_CONTENT_TYPE
        raise ValueError(f"Unsupported HTTP method: {method}")

    async def dispatch(
        self, request: RequestDescriptor, credentials: "Credentials"
    ) -> RawResponse:
        """Send request and return the raw response

        Raises:
            TransportError: If no HTTP response was received
            ValueError: For unsupported verbs
        """
        method = request.method.upper()
        content, content_type = self.encode_body(method, request.params)

        headers = self.build_headers(credentials)
        if content_type is not None:
            headers["Content-Type"] = content_type

        logger.debug(f"{method} {request.url}")
        response = await self._backend.send(
            method, str(request.url), headers, content
        )
        logger.debug(f"{method} {request.url.path} -> {response.status_code}")
        return response

    async def aclose(self) -> None:
        await self._backend.aclose()
