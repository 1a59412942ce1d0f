"""SessionManager - checksum handshake and access token lifecycle"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from loguru import logger
from pydantic import ValidationError

from .checksum import ChecksumProvider, checksum_input
from .exceptions import DecodeError
from .models import RenewedToken, SessionResponse
from .responses import ResponseNormalizer
from .transport import RawResponse, RequestDescriptor, RequestDispatcher
from .urls import build_url


class SessionState(str, Enum):
    """Lifecycle of the held access token"""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    RENEWING = "renewing"


@dataclass(frozen=True)
class Credentials:
    """API key and access token, held by value"""

    api_key: str
    access_token: str = ""

    def with_access_token(self, access_token: str) -> "Credentials":
        return replace(self, access_token=access_token)

    def __repr__(self) -> str:
        token = "***" if self.access_token else "''"
        return f"Credentials(api_key={self.api_key!r}, access_token={token})"


class SessionManager:
    """Owns the credentials pair and is its only writer

    Responsibilities:
    - Session generation from a request token
    - Access token renewal
    - Remote token invalidation (local state is left alone)

    Credentials are replaced, never edited in place, and only after the
    handshake response has been fully decoded. A failed or cancelled
    handshake leaves the previous credentials and state in effect.
    """

    SESSION_TOKEN_PATH = "/session/token"
    REFRESH_TOKEN_PATH = "/session/refresh_token"

    def __init__(
        self,
        credentials: Credentials,
        checksum: ChecksumProvider,
        dispatcher: RequestDispatcher,
        normalizer: ResponseNormalizer,
        base_url: str,
    ) -> None:
        self._credentials = credentials
        self._checksum = checksum
        self._dispatcher = dispatcher
        self._normalizer = normalizer
        self._base_url = base_url
        self._state = self._resting_state(credentials.access_token)

    @staticmethod
    def _resting_state(access_token: str) -> SessionState:
        if access_token:
            return SessionState.AUTHENTICATED
        return SessionState.UNAUTHENTICATED

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def access_token(self) -> str:
        return self._credentials.access_token

    def set_access_token(self, access_token: str) -> None:
        """Install a caller-supplied access token"""
        self._credentials = self._credentials.with_access_token(access_token)
        self._state = self._resting_state(access_token)

    def invalidate(self) -> None:
        """Forget the local access token"""
        self.set_access_token("")
        logger.info("Local access token cleared")

    async def _post_handshake(
        self, path: str, token_field: str, token: str, api_secret: str
    ) -> Any:
        checksum = await self._checksum.compute(
            checksum_input(self._credentials.api_key, token, api_secret)
        )
        request = RequestDescriptor(
            url=build_url(self._base_url, path),
            method="POST",
            params={
                "api_key": self._credentials.api_key,
                token_field: token,
                "checksum": checksum,
            },
        )
        raw = await self._dispatcher.dispatch(request, self._credentials)
        try:
            return self._normalizer.json(raw)
        except Exception:
            logger.warning(f"Handshake on {path} failed ({raw.status_code})")
            raise

    async def generate_session(
        self, request_token: str, api_secret: str
    ) -> dict[str, Any]:
        """Exchange a request token for an access token

        Args:
            request_token: Token received on the login redirect
            api_secret: API secret; only its checksum is sent

        Returns:
            Full decoded response body

        Raises:
            ApiError: Broker rejected the exchange
            DecodeError: Response lacks ``data.access_token``
            TransportError: No response received
            CryptoUnavailable: Checksum backend unusable
        """
        previous = self._state
        self._state = SessionState.AUTHENTICATING
        try:
            body = await self._post_handshake(
                self.SESSION_TOKEN_PATH, "request_token", request_token, api_secret
            )
            try:
                session = SessionResponse.model_validate(body)
            except ValidationError as e:
                raise DecodeError(f"Session response missing access token: {e}") from e

            self._credentials = self._credentials.with_access_token(
                session.data.access_token
            )
            self._state = SessionState.AUTHENTICATED
            logger.info(f"Session generated for user {session.data.user_id}")
            return body
        finally:
            if self._state is SessionState.AUTHENTICATING:
                self._state = previous

    async def renew_access_token(
        self, access_token: str, api_secret: str
    ) -> dict[str, Any]:
        """Obtain a fresh access token

        Args:
            access_token: Token to present to the refresh endpoint
            api_secret: API secret; only its checksum is sent

        Returns:
            Full decoded response body

        Raises:
            ApiError: Broker rejected the renewal
            DecodeError: Response lacks a top-level ``access_token``
            TransportError: No response received
            CryptoUnavailable: Checksum backend unusable
        """
        previous = self._state
        self._state = SessionState.RENEWING
        try:
            body = await self._post_handshake(
                self.REFRESH_TOKEN_PATH, "access_token", access_token, api_secret
            )
            try:
                renewed = RenewedToken.model_validate(body)
            except ValidationError as e:
                raise DecodeError(f"Renewal response missing access token: {e}") from e

            self._credentials = self._credentials.with_access_token(
                renewed.access_token
            )
            self._state = SessionState.AUTHENTICATED
            logger.info("Access token renewed")
            return body
        finally:
            if self._state is SessionState.RENEWING:
                self._state = previous

    async def _delete_token(self, path: str, field: str, token: str) -> RawResponse:
        request = RequestDescriptor(
            url=build_url(self._base_url, path),
            method="DELETE",
            params={field: token},
        )
        response = await self._dispatcher.dispatch(request, self._credentials)
        logger.info(f"Token invalidation on {path} returned {response.status_code}")
        return response

    async def invalidate_access_token(self, access_token: str) -> RawResponse:
        """Ask the broker to kill access_token; local credentials are kept"""
        return await self._delete_token(
            self.SESSION_TOKEN_PATH, "access_token", access_token
        )

    async def invalidate_refresh_token(self, refresh_token: str) -> RawResponse:
        """Ask the broker to kill refresh_token; local credentials are kept"""
        return await self._delete_token(
            self.REFRESH_TOKEN_PATH, "refresh_token", refresh_token
        )
