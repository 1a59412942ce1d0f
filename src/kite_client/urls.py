"""URL construction for Kite Connect requests"""

from collections.abc import Iterable

import httpx

DEFAULT_BASE_URL = "https://api.kite.trade"
DEFAULT_LOGIN_URL = "https://kite.trade/connect/login"
KITE_VERSION = "3"

QueryPairs = Iterable[tuple[str, str]]


def validate_base_url(base_url: str) -> httpx.URL:
    """Parse base_url, raising ValueError unless it is an absolute http(s) origin"""
    try:
        url = httpx.URL(base_url)
    except httpx.InvalidURL as e:
        raise ValueError(f"Malformed base URL {base_url!r}: {e}") from e

    if url.scheme not in ("http", "https") or not url.host:
        raise ValueError(f"Malformed base URL {base_url!r}")
    if url.query or url.fragment:
        raise ValueError(f"Base URL {base_url!r} must not carry a query or fragment")
    return url


def build_url(
    base_url: str,
    path: str,
    params: QueryPairs | None = None,
) -> httpx.URL:
    """Compose base origin, resource path and ordered query pairs

    Repeated keys are kept in the order given, since the API reads them as
    a list parameter (e.g. several ``instruments=`` entries).

    Args:
        base_url: Absolute origin, e.g. "https://api.kite.trade"
        path: Resource path beginning with "/"
        params: Ordered (key, value) query pairs

    Returns:
        Absolute httpx.URL

    Raises:
        ValueError: If base_url is malformed or path is not absolute
    """
    if not path.startswith("/"):
        raise ValueError(f"Path must begin with '/': {path!r}")

    base = validate_base_url(base_url)
    url = httpx.URL(f"{str(base).rstrip('/')}{path}")

    pairs = list(params or [])
    if pairs:
        url = url.copy_with(params=httpx.QueryParams(pairs))
    return url


def login_url(login_base: str, api_key: str) -> str:
    """Browser login URL the user visits to obtain a request token"""
    return f"{login_base}?api_key={api_key}&v{KITE_VERSION}"
