"""Tests for RequestDispatcher and the HTTP backends"""

import json
from urllib.parse import parse_qsl

import httpx
import pytest

from kite_client import __version__
from kite_client.exceptions import TransportError
from kite_client.session import Credentials
from kite_client.transport import (
    USER_AGENT,
    FetchBackend,
    HttpBackend,
    HttpxBackend,
    RawResponse,
    RequestDescriptor,
    RequestDispatcher,
)

URL = httpx.URL("http://127.0.0.1:1234/orders/regular")
CREDENTIALS = Credentials(api_key="key", access_token="token")


def recording_backend():
    """HttpxBackend on a MockTransport that keeps every request"""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"status": "success"})

    return HttpxBackend(transport=httpx.MockTransport(handler)), seen


class FakeFetchResponse:
    def __init__(self, status: int, text: str, headers: dict | None = None):
        self.status = status
        self._text = text
        self.headers = headers or {}

    async def string(self) -> str:
        return self._text


@pytest.mark.unit
def test_raw_response_is_success():
    assert RawResponse(200, "").is_success
    assert RawResponse(204, "").is_success
    assert not RawResponse(302, "").is_success
    assert not RawResponse(403, "").is_success


@pytest.mark.unit
def test_build_headers():
    """Version marker, token authorization and client identifier"""
    dispatcher = RequestDispatcher(HttpxBackend())
    headers = dispatcher.build_headers(CREDENTIALS)

    assert headers == {
        "X-Kite-Version": "3",
        "Authorization": "token key:token",
        "User-Agent": USER_AGENT,
    }


@pytest.mark.unit
@pytest.mark.parametrize(
    "method, expected_body, expected_type",
    [
        ("GET", None, None),
        ("POST", b"a=1&b=x+y", "application/x-www-form-urlencoded"),
        ("PUT", b"a=1&b=x+y", "application/x-www-form-urlencoded"),
        ("DELETE", b'{"a": "1", "b": "x y"}', "application/json"),
    ],
)
def test_encode_body_per_verb(method, expected_body, expected_type):
    body, content_type = RequestDispatcher.encode_body(
        method, {"a": "1", "b": "x y"}
    )
    assert body == expected_body
    assert content_type == expected_type


@pytest.mark.unit
def test_encode_body_rejects_unknown_verb():
    with pytest.raises(ValueError, match="Unsupported HTTP method: PATCH"):
        RequestDispatcher.encode_body("PATCH", {})


@pytest.mark.unit
@pytest.mark.asyncio
async def test_dispatch_get_sends_headers_and_no_body():
    backend, seen = recording_backend()
    dispatcher = RequestDispatcher(backend)

    response = await dispatcher.dispatch(
        RequestDescriptor(url=URL, method="GET"), CREDENTIALS
    )

    assert response.status_code == 200
    request = seen[0]
    assert request.method == "GET"
    assert request.content == b""
    assert request.headers["authorization"] == "token key:token"
    assert request.headers["x-kite-version"] == "3"
    assert request.headers["user-agent"] == USER_AGENT
    assert "content-type" not in request.headers


@pytest.mark.unit
@pytest.mark.asyncio
async def test_dispatch_post_sends_form_body():
    backend, seen = recording_backend()
    dispatcher = RequestDispatcher(backend)

    await dispatcher.dispatch(
        RequestDescriptor(
            url=URL, method="POST", params={"exchange": "NSE", "quantity": "1"}
        ),
        CREDENTIALS,
    )

    request = seen[0]
    assert request.headers["content-type"] == "application/x-www-form-urlencoded"
    assert parse_qsl(request.content.decode()) == [
        ("exchange", "NSE"),
        ("quantity", "1"),
    ]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_dispatch_put_sends_form_body():
    backend, seen = recording_backend()
    dispatcher = RequestDispatcher(backend)

    await dispatcher.dispatch(
        RequestDescriptor(url=URL, method="put", params={"price": "10.5"}),
        CREDENTIALS,
    )

    request = seen[0]
    assert request.method == "PUT"
    assert request.content == b"price=10.5"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_dispatch_delete_sends_json_body():
    """DELETE carries its params as JSON, unlike POST/PUT"""
    backend, seen = recording_backend()
    dispatcher = RequestDispatcher(backend)

    await dispatcher.dispatch(
        RequestDescriptor(
            url=URL, method="DELETE", params={"order_id": "1", "variety": "regular"}
        ),
        CREDENTIALS,
    )

    request = seen[0]
    assert request.method == "DELETE"
    assert request.headers["content-type"] == "application/json"
    assert json.loads(request.content) == {"order_id": "1", "variety": "regular"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_dispatch_returns_error_responses_uninterpreted():
    def handler(request):
        return httpx.Response(403, text="Incorrect `api_key` or `access_token`.")

    dispatcher = RequestDispatcher(HttpxBackend(transport=httpx.MockTransport(handler)))
    response = await dispatcher.dispatch(
        RequestDescriptor(url=URL, method="GET"), CREDENTIALS
    )

    assert response.status_code == 403
    assert response.text == "Incorrect `api_key` or `access_token`."


@pytest.mark.unit
@pytest.mark.asyncio
async def test_httpx_backend_network_error_raises_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    dispatcher = RequestDispatcher(HttpxBackend(transport=httpx.MockTransport(handler)))

    with pytest.raises(TransportError, match="connection refused") as exc_info:
        await dispatcher.dispatch(RequestDescriptor(url=URL, method="GET"), CREDENTIALS)

    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_httpx_backend_reuses_client_and_closes():
    backend, _ = recording_backend()

    client = backend.http_client
    assert backend.http_client is client

    await backend.aclose()
    assert client.is_closed


@pytest.mark.unit
def test_httpx_backend_set_http_client():
    backend = HttpxBackend()
    http_client = httpx.AsyncClient()
    backend.set_http_client(http_client)

    assert backend.http_client is http_client


@pytest.mark.unit
@pytest.mark.asyncio
async def test_httpx_request_hook_masks_authorization(mocker):
    backend = HttpxBackend()
    mock_logger = mocker.patch("kite_client.transport.logger")

    request = httpx.Request(
        "GET", "http://127.0.0.1:1234/user/profile",
        headers={"Authorization": "token key:secret"},
    )
    await backend._log_httpx_request(request)

    message = mock_logger.debug.call_args[0][0]
    assert "secret" not in message
    assert "***" in message


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fetch_backend_sends_through_host_fetch():
    calls = []

    async def fake_fetch(url, **options):
        calls.append((url, options))
        return FakeFetchResponse(
            200, '{"data": {}}', {"content-type": "application/json"}
        )

    dispatcher = RequestDispatcher(FetchBackend(fetch=fake_fetch))
    response = await dispatcher.dispatch(
        RequestDescriptor(url=URL, method="POST", params={"a": "1"}), CREDENTIALS
    )

    assert response == RawResponse(
        200, '{"data": {}}', {"content-type": "application/json"}
    )
    url, options = calls[0]
    assert url == str(URL)
    assert options["method"] == "POST"
    assert options["body"] == "a=1"
    assert options["headers"]["Authorization"] == "token key:token"
    assert options["headers"]["Content-Type"] == "application/x-www-form-urlencoded"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fetch_backend_get_has_no_body():
    calls = []

    async def fake_fetch(url, **options):
        calls.append(options)
        return FakeFetchResponse(200, "{}")

    await FetchBackend(fetch=fake_fetch).send("GET", str(URL), {}, None)

    assert "body" not in calls[0]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fetch_backend_host_error_raises_transport_error():
    async def failing_fetch(url, **options):
        raise OSError("Failed to fetch")

    with pytest.raises(TransportError, match="Failed to fetch"):
        await FetchBackend(fetch=failing_fetch).send("GET", str(URL), {}, None)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fetch_backend_without_host_raises_transport_error():
    with pytest.raises(TransportError, match="not available"):
        await FetchBackend().send("GET", str(URL), {}, None)


@pytest.mark.unit
def test_backends_satisfy_protocol():
    assert isinstance(HttpxBackend(), HttpBackend)
    assert isinstance(FetchBackend(), HttpBackend)


@pytest.mark.unit
def test_user_agent_carries_package_version():
    assert USER_AGENT == f"kite-client-python/{__version__}"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_httpx_backend_leaves_injected_client_open():
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(200, text="{}"))
    )
    backend = HttpxBackend(http_client=http_client)

    await backend.aclose()

    assert not http_client.is_closed
    assert backend.http_client is http_client
    response = await backend.send("GET", str(URL), {}, None)
    assert response.status_code == 200
    await http_client.aclose()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_httpx_backend_leaves_set_http_client_open():
    backend, _ = recording_backend()
    http_client = httpx.AsyncClient()
    backend.set_http_client(http_client)

    await backend.aclose()

    assert not http_client.is_closed
    assert backend.http_client is http_client
    await http_client.aclose()


class FailingBodyResponse:
    status = 200
    headers: dict = {}

    async def string(self) -> str:
        raise RuntimeError("Error: aborted")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fetch_backend_body_read_error_raises_transport_error():
    async def fake_fetch(url, **options):
        return FailingBodyResponse()

    with pytest.raises(TransportError, match="body read failed") as exc_info:
        await FetchBackend(fetch=fake_fetch).send("GET", str(URL), {}, None)

    assert isinstance(exc_info.value.__cause__, RuntimeError)
