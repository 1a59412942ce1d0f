"""Consolidated exceptions for the Kite Connect client.

All custom exceptions are defined here to provide a single source of truth
for error handling across the package. Nothing in the package retries or
swallows these; every failure surfaces to the caller of the method that
triggered it.
"""


class KiteClientError(Exception):
    """Base exception for Kite client errors"""

    pass


class CryptoUnavailable(KiteClientError):
    """Raised when the checksum backend has no working hash primitive"""

    pass


class TransportError(KiteClientError):
    """Raised when the request never produced an HTTP response"""

    pass


class ApiError(KiteClientError):
    """Raised for non-2xx responses

    The message is the broker's response body, verbatim.
    """

    TOKEN_ERROR_STATUS = 403

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def is_token_error(self) -> bool:
        """True when the broker rejected the session (expired or invalid token)"""
        return self.status_code == self.TOKEN_ERROR_STATUS

    def __repr__(self) -> str:
        return f"ApiError(status_code={self.status_code}, message={self.message!r})"


class DecodeError(KiteClientError):
    """Raised when a 2xx body cannot be decoded into the expected shape"""

    pass


class ConfigurationError(KiteClientError):
    """Raised when configuration is invalid or missing"""

    pass
