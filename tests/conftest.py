"""Pytest fixtures for Kite client tests"""

import json
import sys
from pathlib import Path

import httpx
import pytest

# =============================================================================
# Global Test Setup
# =============================================================================

# Add src to Python path for all tests
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from kite_client import KiteClient, native_platform  # noqa: E402

BASE_URL = "http://127.0.0.1:1234"
API_KEY = "API_KEY"
ACCESS_TOKEN = "ACCESS_TOKEN"


class FakeKiteServer:
    """Routes httpx.MockTransport requests by (method, path)

    Records every request so tests can inspect headers and bodies.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], httpx.Response] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        *,
        status: int = 200,
        text: str | None = None,
        json_body: object | None = None,
    ) -> None:
        if json_body is not None:
            response = httpx.Response(status, json=json_body)
        else:
            response = httpx.Response(status, text=text or "")
        self.routes[(method, path)] = response

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.routes.get((request.method, request.url.path))
        if response is None:
            return httpx.Response(404, text=f"No route for {request.url.path}")
        return httpx.Response(
            response.status_code,
            headers=response.headers,
            content=response.content,
        )

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture(scope="session")
def fixtures_dir():
    """Return path to test fixtures directory

    Session scope: This is just a path lookup, immutable across all tests.
    """
    return Path(__file__).parent / "fixtures" / "kite_responses"


@pytest.fixture(scope="session")
def load_fixture(fixtures_dir):
    """Helper to load JSON fixture files."""

    def _load(filename):
        with open(fixtures_dir / filename) as f:
            return json.load(f)

    return _load


@pytest.fixture(scope="session")
def fixture_text(fixtures_dir):
    """Helper to read raw fixture files (CSV bodies)."""

    def _read(filename):
        return (fixtures_dir / filename).read_text()

    return _read


@pytest.fixture
def kite_server():
    """Fresh fake broker for each test"""
    return FakeKiteServer()


@pytest.fixture
def kite_client(kite_server):
    """Native client wired to the fake broker"""
    platform = native_platform(transport=httpx.MockTransport(kite_server.handler))
    return KiteClient(API_KEY, ACCESS_TOKEN, base_url=BASE_URL, platform=platform)
