"""KiteClient - facade with one coroutine per Kite Connect endpoint"""

from collections.abc import Callable, Iterable
from typing import Any

from loguru import logger

from .config import KiteConfig
from .platform import DEFAULT_TARGET, Platform, select_platform
from .responses import Record, ResponseNormalizer
from .session import Credentials, SessionManager, SessionState
from .transport import RawResponse, RequestDescriptor, RequestDispatcher
from .urls import (
    DEFAULT_BASE_URL,
    DEFAULT_LOGIN_URL,
    QueryPairs,
    build_url,
    login_url as build_login_url,
    validate_base_url,
)

ParamValue = str | int | float | None
SessionExpiryHook = Callable[[], None]


def present_params(**fields: ParamValue) -> dict[str, str]:
    """Stringify present fields and drop absent ones"""
    return {name: str(value) for name, value in fields.items() if value is not None}


class KiteClient:
    """Kite Connect REST API client

    Each instance owns one credentials pair. Use ``copy()`` to hand an
    independent snapshot to another task; copies share the transport pool
    but a session change on one never affects the other. Only the original
    client closes the pool.

    The session expiry hook is stored for the application's use; this
    client never calls it. Applications typically call it when an ApiError
    has ``is_token_error`` set.
    """

    def __init__(
        self,
        api_key: str,
        access_token: str = "",
        *,
        base_url: str = DEFAULT_BASE_URL,
        login_url: str = DEFAULT_LOGIN_URL,
        platform: Platform | None = None,
        timeout: float = 7.0,
    ) -> None:
        """Initialize client

        Args:
            api_key: Kite Connect API key
            access_token: Existing access token, or empty before login
            base_url: API origin
            login_url: Browser login page
            platform: Capability bundle; defaults to the current build target
            timeout: Request timeout in seconds for the default platform

        Raises:
            ValueError: If base_url is not an absolute http(s) origin
        """
        validate_base_url(base_url)
        self._base_url = base_url
        self._login_url = login_url
        self._platform = platform or select_platform(DEFAULT_TARGET, timeout)
        self._dispatcher = RequestDispatcher(self._platform.backend)
        self._normalizer = ResponseNormalizer(self._platform.parse_tables)
        self._session = SessionManager(
            Credentials(api_key=api_key, access_token=access_token),
            self._platform.checksum,
            self._dispatcher,
            self._normalizer,
            base_url,
        )
        self._session_expiry_hook: SessionExpiryHook | None = None
        self._owns_transport = True

    @classmethod
    def from_config(cls, config: KiteConfig) -> "KiteClient":
        """Build a client for config's target"""
        config.validate()
        return cls(
            config.api_key,
            config.access_token,
            base_url=config.base_url,
            login_url=config.login_url,
            platform=select_platform(config.target, config.timeout),
        )

    def copy(self) -> "KiteClient":
        """Independent client with the same credentials and shared transport"""
        clone = KiteClient(
            self.api_key,
            self.access_token,
            base_url=self._base_url,
            login_url=self._login_url,
            platform=self._platform,
        )
        clone._session_expiry_hook = self._session_expiry_hook
        clone._owns_transport = False
        return clone

    __copy__ = copy

    async def aclose(self) -> None:
        """Close the transport; a copy leaves it to the client it came from"""
        if self._owns_transport:
            await self._dispatcher.aclose()

    async def __aenter__(self) -> "KiteClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return (
            f"KiteClient(api_key={self.api_key!r}, "
            f"platform={self._platform.name!r}, state={self.session_state.value!r})"
        )

    # Session state

    @property
    def api_key(self) -> str:
        return self._session.credentials.api_key

    @property
    def access_token(self) -> str:
        return self._session.access_token

    @property
    def credentials(self) -> Credentials:
        return self._session.credentials

    @property
    def session_state(self) -> SessionState:
        return self._session.state

    @property
    def platform(self) -> Platform:
        return self._platform

    def set_access_token(self, access_token: str) -> None:
        self._session.set_access_token(access_token)

    def invalidate_session(self) -> None:
        """Forget the local access token without contacting the broker"""
        self._session.invalidate()

    @property
    def session_expiry_hook(self) -> SessionExpiryHook | None:
        return self._session_expiry_hook

    def set_session_expiry_hook(self, hook: SessionExpiryHook) -> None:
        if not callable(hook):
            raise TypeError("session expiry hook must be callable")
        self._session_expiry_hook = hook

    def login_url(self) -> str:
        """URL the user opens in a browser to log in and get a request token"""
        return build_login_url(self._login_url, self.api_key)

    async def generate_session(
        self, request_token: str, api_secret: str
    ) -> dict[str, Any]:
        return await self._session.generate_session(request_token, api_secret)

    async def renew_access_token(
        self, access_token: str, api_secret: str
    ) -> dict[str, Any]:
        return await self._session.renew_access_token(access_token, api_secret)

    async def invalidate_access_token(self, access_token: str) -> RawResponse:
        return await self._session.invalidate_access_token(access_token)

    async def invalidate_refresh_token(self, refresh_token: str) -> RawResponse:
        return await self._session.invalidate_refresh_token(refresh_token)

    # Request plumbing

    async def _send(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        query: QueryPairs | None = None,
    ) -> RawResponse:
        request = RequestDescriptor(
            url=build_url(self._base_url, path, query),
            method=method,
            params=params,
        )
        # credentials are read here, at dispatch time
        return await self._dispatcher.dispatch(request, self._session.credentials)

    async def _json(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        query: QueryPairs | None = None,
    ) -> Any:
        return self._normalizer.json(await self._send(method, path, params, query))

    async def _table(self, path: str) -> list[Record] | str:
        return self._normalizer.table(await self._send("GET", path))

    # User

    async def margins(self, segment: str | None = None) -> Any:
        """Funds and margins, optionally for a single segment"""
        path = f"/user/margins/{segment}" if segment else "/user/margins"
        return await self._json("GET", path)

    async def profile(self) -> Any:
        return await self._json("GET", "/user/profile")

    # Portfolio

    async def holdings(self) -> Any:
        return await self._json("GET", "/portfolio/holdings")

    async def positions(self) -> Any:
        return await self._json("GET", "/portfolio/positions")

    async def convert_position(
        self,
        exchange: str,
        tradingsymbol: str,
        transaction_type: str,
        position_type: str,
        quantity: str | int,
        old_product: str,
        new_product: str,
    ) -> Any:
        """Change the product type of an open position"""
        params = present_params(
            exchange=exchange,
            tradingsymbol=tradingsymbol,
            transaction_type=transaction_type,
            position_type=position_type,
            quantity=quantity,
            old_product=old_product,
            new_product=new_product,
        )
        return await self._json("PUT", "/portfolio/positions", params)

    # Orders

    async def place_order(
        self,
        variety: str,
        exchange: str,
        tradingsymbol: str,
        transaction_type: str,
        quantity: str | int,
        product: str | None = None,
        order_type: str | None = None,
        price: ParamValue = None,
        validity: str | None = None,
        disclosed_quantity: ParamValue = None,
        trigger_price: ParamValue = None,
        squareoff: ParamValue = None,
        stoploss: ParamValue = None,
        trailing_stoploss: ParamValue = None,
        tag: str | None = None,
    ) -> Any:
        """Place an order of the given variety

        Returns:
            Decoded response, ``data.order_id`` holds the new order ID
        """
        params = present_params(
            variety=variety,
            exchange=exchange,
            tradingsymbol=tradingsymbol,
            transaction_type=transaction_type,
            quantity=quantity,
            product=product,
            order_type=order_type,
            price=price,
            validity=validity,
            disclosed_quantity=disclosed_quantity,
            trigger_price=trigger_price,
            squareoff=squareoff,
            stoploss=stoploss,
            trailing_stoploss=trailing_stoploss,
            tag=tag,
        )
        logger.info(
            f"Placing {variety} order: {transaction_type} {quantity} "
            f"{exchange}:{tradingsymbol}"
        )
        return await self._json("POST", f"/orders/{variety}", params)

    async def modify_order(
        self,
        order_id: str,
        variety: str,
        quantity: ParamValue = None,
        price: ParamValue = None,
        order_type: str | None = None,
        validity: str | None = None,
        disclosed_quantity: ParamValue = None,
        trigger_price: ParamValue = None,
        parent_order_id: str | None = None,
    ) -> Any:
        params = present_params(
            order_id=order_id,
            variety=variety,
            quantity=quantity,
            price=price,
            order_type=order_type,
            validity=validity,
            disclosed_quantity=disclosed_quantity,
            trigger_price=trigger_price,
            parent_order_id=parent_order_id,
        )
        return await self._json("PUT", f"/orders/{variety}/{order_id}", params)

    async def cancel_order(
        self,
        order_id: str,
        variety: str,
        parent_order_id: str | None = None,
    ) -> Any:
        params = present_params(
            order_id=order_id,
            variety=variety,
            parent_order_id=parent_order_id,
        )
        logger.info(f"Cancelling {variety} order {order_id}")
        return await self._json("DELETE", f"/orders/{variety}/{order_id}", params)

    async def exit_order(
        self,
        order_id: str,
        variety: str,
        parent_order_id: str | None = None,
    ) -> Any:
        """Exit a cover/bracket order (same call as cancel)"""
        return await self.cancel_order(order_id, variety, parent_order_id)

    async def orders(self) -> Any:
        return await self._json("GET", "/orders")

    async def order_history(self, order_id: str) -> Any:
        return await self._json("GET", "/orders", query=[("order_id", order_id)])

    async def trades(self) -> Any:
        return await self._json("GET", "/trades")

    async def order_trades(self, order_id: str) -> Any:
        return await self._json("GET", f"/orders/{order_id}/trades")

    # Mutual funds

    async def mf_orders(self, order_id: str | None = None) -> Any:
        path = f"/mf/orders/{order_id}" if order_id else "/mf/orders"
        return await self._json("GET", path)

    # Instruments

    async def trigger_range(
        self, transaction_type: str, instruments: Iterable[str]
    ) -> Any:
        """Trigger price range for instruments like ``"NSE:INFY"``"""
        query = [("transaction_type", transaction_type)]
        query.extend(("instruments", instrument) for instrument in instruments)
        return await self._json("GET", "/instruments/trigger_range", query=query)

    async def instruments(self, exchange: str | None = None) -> list[Record] | str:
        """Instrument master as records (or raw CSV on the sandboxed target)"""
        path = f"/instruments/{exchange}" if exchange else "/instruments"
        return await self._table(path)

    async def mf_instruments(self) -> list[Record] | str:
        return await self._table("/mf/instruments")
