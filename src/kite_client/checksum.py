"""Checksum providers for the login handshake

The handshake proves possession of the API secret by sending
SHA-256(api_key + token + api_secret) as a lowercase hex digest. Two
interchangeable providers exist:

HashlibChecksum - local hashing, used by the native runtime
HostCryptoChecksum - delegates to the host's SubtleCrypto (Pyodide)
"""

import hashlib
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from .exceptions import CryptoUnavailable

DIGEST_ALGORITHM = "SHA-256"


@runtime_checkable
class ChecksumProvider(Protocol):
    """Protocol for computing the handshake checksum."""

    async def compute(self, message: str) -> str:
        """Return the 64-character lowercase hex SHA-256 digest of message."""
        ...


def checksum_input(api_key: str, token: str, api_secret: str) -> str:
    """Concatenate handshake material in protocol order, no delimiter"""
    return f"{api_key}{token}{api_secret}"


class HashlibChecksum:
    """SHA-256 via the interpreter's hashlib"""

    async def compute(self, message: str) -> str:
        return hashlib.sha256(message.encode("utf-8")).hexdigest()


class HostCryptoChecksum:
    """SHA-256 via the host's Web Crypto API

    Used inside sandboxed runtimes (Pyodide) where the host page provides
    ``crypto.subtle``. Never falls back to local hashing: if the host has no
    crypto subsystem, ``compute`` raises CryptoUnavailable.
    """

    def __init__(
        self,
        subtle: Any | None = None,
        to_host: Callable[[bytes], Any] | None = None,
    ) -> None:
        """Initialize provider

        Args:
            subtle: SubtleCrypto-like object; resolved from the host when None
            to_host: Converts bytes into a host buffer; identity when subtle
                is supplied explicitly
        """
        self._subtle = subtle
        self._to_host = to_host

    def _resolve_host(self) -> tuple[Any, Callable[[bytes], Any]]:
        if self._subtle is not None:
            return self._subtle, self._to_host or (lambda data: data)

        try:
            from js import crypto  # type: ignore[import-not-found]
            from pyodide.ffi import to_js  # type: ignore[import-not-found]
        except ImportError as e:
            raise CryptoUnavailable(
                "Host crypto subsystem is not available in this runtime"
            ) from e

        subtle = getattr(crypto, "subtle", None)
        if subtle is None:
            raise CryptoUnavailable("Host crypto object has no subtle API")
        return subtle, self._to_host or to_js

    async def compute(self, message: str) -> str:
        subtle, to_host = self._resolve_host()

        try:
            digest = await subtle.digest(
                DIGEST_ALGORITHM, to_host(message.encode("utf-8"))
            )
        except Exception as e:
            logger.error(f"Host digest failed: {e}")
            raise CryptoUnavailable(f"Failed to compute hash: {e}") from e

        return _digest_bytes(digest).hex()


def _digest_bytes(digest: Any) -> bytes:
    """Convert a host ArrayBuffer proxy (or plain buffer) to bytes"""
    to_bytes = getattr(digest, "to_bytes", None)
    if callable(to_bytes):
        return bytes(to_bytes())
    return bytes(digest)
