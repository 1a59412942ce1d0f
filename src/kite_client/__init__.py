"""Async client for the Kite Connect REST trading API

KiteClient - Endpoint facade
SessionManager - Checksum handshake and access token lifecycle
RequestDispatcher - Auth headers and verb-specific body encoding
ResponseNormalizer - JSON/CSV decoding and typed failures
"""

from ._version import __version__
from .checksum import ChecksumProvider, HashlibChecksum, HostCryptoChecksum
from .client import KiteClient
from .config import KiteConfig
from .exceptions import (
    ApiError,
    ConfigurationError,
    CryptoUnavailable,
    DecodeError,
    KiteClientError,
    TransportError,
)
from .logging_bridge import install_logging_bridge
from .platform import Platform, native_platform, sandboxed_platform, select_platform
from .responses import ResponseNormalizer, parse_csv_records
from .session import Credentials, SessionManager, SessionState
from .transport import (
    FetchBackend,
    HttpBackend,
    HttpxBackend,
    RawResponse,
    RequestDescriptor,
    RequestDispatcher,
)
from .urls import build_url

__all__ = [
    "ApiError",
    "ChecksumProvider",
    "ConfigurationError",
    "Credentials",
    "CryptoUnavailable",
    "DecodeError",
    "FetchBackend",
    "HashlibChecksum",
    "HostCryptoChecksum",
    "HttpBackend",
    "HttpxBackend",
    "KiteClient",
    "KiteClientError",
    "KiteConfig",
    "Platform",
    "RawResponse",
    "RequestDescriptor",
    "RequestDispatcher",
    "ResponseNormalizer",
    "SessionManager",
    "SessionState",
    "TransportError",
    "build_url",
    "install_logging_bridge",
    "native_platform",
    "parse_csv_records",
    "sandboxed_platform",
    "select_platform",
]
