"""Build-target capability bundles

A Platform fixes, once, which checksum provider and HTTP backend the client
uses and whether instrument CSV is parsed. Shared logic receives the bundle
and never branches on the target itself.
"""

import sys
from dataclasses import dataclass
from typing import Any

import httpx

from .checksum import ChecksumProvider, HashlibChecksum, HostCryptoChecksum
from .exceptions import ConfigurationError
from .transport import FetchBackend, FetchFunction, HttpBackend, HttpxBackend

NATIVE = "native"
SANDBOXED = "sandboxed"
TARGETS = (NATIVE, SANDBOXED)

# Pyodide reports itself as emscripten
DEFAULT_TARGET = SANDBOXED if sys.platform == "emscripten" else NATIVE


@dataclass(frozen=True)
class Platform:
    """Checksum provider, HTTP backend and table mode for one build target"""

    name: str
    checksum: ChecksumProvider
    backend: HttpBackend
    parse_tables: bool


def native_platform(
    timeout: float = 7.0,
    transport: httpx.AsyncBaseTransport | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> Platform:
    """hashlib checksums, httpx transport, parsed CSV"""
    return Platform(
        name=NATIVE,
        checksum=HashlibChecksum(),
        backend=HttpxBackend(
            timeout=timeout, transport=transport, http_client=http_client
        ),
        parse_tables=True,
    )


def sandboxed_platform(
    fetch: FetchFunction | None = None,
    subtle: Any | None = None,
) -> Platform:
    """Host SubtleCrypto checksums, host fetch, raw CSV text"""
    return Platform(
        name=SANDBOXED,
        checksum=HostCryptoChecksum(subtle=subtle),
        backend=FetchBackend(fetch=fetch),
        parse_tables=False,
    )


def select_platform(target: str = DEFAULT_TARGET, timeout: float = 7.0) -> Platform:
    """Build the Platform for a target name

    Raises:
        ConfigurationError: If target is not a known build target
    """
    if target == NATIVE:
        return native_platform(timeout=timeout)
    if target == SANDBOXED:
        return sandboxed_platform()
    raise ConfigurationError(
        f"Unknown target {target!r}, expected one of {TARGETS}"
    )
