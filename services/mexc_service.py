"""
MEXC Spot REST client

Builds signed requests for account info, authorized symbols and order
placement, and unsigned requests for public market endpoints. The client
never retries: a signed, timestamped order request that is blindly resent
can be filled twice.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from .config import MexcConfig
from .errors import ConfigurationError, ExchangeAPIError
from .models import (
    BUY,
    LIMIT,
    LIMIT_ENTRY,
    MARKET,
    SELL,
    AccountInfo,
    MexcCredentials,
    OrderRequest,
    OrderResponse,
)
from .signature_service import build_query_string, sign

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-MEXC-APIKEY"
# Older payloads report "ENABLED", current ones report "1"
ENABLED_STATUSES = ("ENABLED", "1")


def current_millis() -> int:
    return int(time.time() * 1000)


def _unexpected_response(operation: str, data: Any) -> ExchangeAPIError:
    """A 2xx body that is missing the fields the operation reads."""
    return ExchangeAPIError(operation, 200, f"Unexpected response: {str(data)[:200]}")


def build_order_request(trade, symbol: str, quantity: str, timestamp: int) -> OrderRequest:
    """Map a trade setup onto a venue order: Long->BUY, Short->SELL."""
    side = BUY if trade.direction == "Long" else SELL
    order_type = LIMIT if trade.entry_type == LIMIT_ENTRY else MARKET
    return OrderRequest(
        symbol=symbol,
        side=side,
        type=order_type,
        quantity=quantity,
        price=str(trade.entry) if order_type == LIMIT else None,
        timestamp=timestamp,
    )


class MexcClient:
    """Typed wrapper around the MEXC spot v3 REST endpoints."""

    def __init__(
        self,
        config: Optional[MexcConfig] = None,
        session: Optional[requests.Session] = None,
        clock: Callable[[], int] = current_millis,
    ):
        self.config = config or MexcConfig()
        self.session = session or requests.Session()
        self.clock = clock

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self.config.base_url}{path}"

    def _signed_query(self, credentials: MexcCredentials, params: Dict[str, Any]) -> str:
        if not credentials or not credentials.api_key:
            raise ConfigurationError("MEXC API key not configured")
        query_string = build_query_string(params)
        signature = sign(credentials.secret_key, query_string)
        return f"{query_string}&signature={signature}"

    def _timestamp_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {"timestamp": self.clock()}
        if self.config.recv_window:
            params["recvWindow"] = self.config.recv_window
        return params

    def _request(self, method: str, url: str, operation: str,
                 headers: Optional[Dict[str, str]] = None,
                 params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = self.session.request(
                method, url, headers=headers, params=params, timeout=self.config.timeout
            )
        except requests.RequestException as e:
            logger.error(f"MEXC {operation} network error: {e}")
            raise ExchangeAPIError(operation, None, str(e)) from e

        if not response.ok:
            logger.warning(f"MEXC {operation} returned {response.status_code}")
            raise ExchangeAPIError(operation, response.status_code, response.text)

        try:
            return response.json()
        except ValueError as e:
            raise ExchangeAPIError(operation, response.status_code, f"Invalid JSON: {response.text[:200]}") from e

    def signed_url(self, path: str, credentials: MexcCredentials, params: Dict[str, Any]) -> str:
        """Full URL with the signature appended to the exact signed query string."""
        return f"{self._url(path)}?{self._signed_query(credentials, params)}"

    def auth_headers(self, credentials: MexcCredentials) -> Dict[str, str]:
        return {
            API_KEY_HEADER: credentials.api_key,
            "Content-Type": "application/json",
        }

    def _signed_request(self, method: str, path: str, operation: str,
                        credentials: MexcCredentials, params: Dict[str, Any]) -> Any:
        # The URL is sent exactly as signed; nothing is appended afterwards
        url = self.signed_url(path, credentials, params)
        return self._request(method, url, operation, headers=self.auth_headers(credentials))

    # ------------------------------------------------------------------
    # Public endpoints
    # ------------------------------------------------------------------

    def get_price(self, symbol: str = "BTCUSDT") -> float:
        """Latest traded price for a symbol."""
        data = self._request("GET", self._url("/api/v3/ticker/price"), "get_price",
                             params={"symbol": symbol})
        try:
            return float(data["price"])
        except (KeyError, TypeError, ValueError) as e:
            raise _unexpected_response("get_price", data) from e

    def list_symbols(self) -> List[str]:
        """Enabled symbols quoted in the configured stablecoin."""
        data = self._request("GET", self._url("/api/v3/exchangeInfo"), "list_symbols")
        quote = self.config.quote_asset
        try:
            return [
                s["symbol"]
                for s in data.get("symbols", [])
                if str(s.get("status")) in ENABLED_STATUSES and s.get("quoteAsset") == quote
            ]
        except (KeyError, TypeError, AttributeError) as e:
            raise _unexpected_response("list_symbols", data) from e

    # ------------------------------------------------------------------
    # Signed endpoints
    # ------------------------------------------------------------------

    def get_account_info(self, credentials: MexcCredentials) -> AccountInfo:
        data = self._signed_request("GET", "/api/v3/account", "get_account_info",
                                    credentials, self._timestamp_params())
        account = AccountInfo.from_dict(data)
        logger.info(f"Fetched MEXC account ({len(account.balances)} balances)")
        return account

    def get_authorized_symbols(self, credentials: MexcCredentials) -> List[str]:
        """Symbols the API key is scoped to trade. A missing list means none."""
        data = self._signed_request("GET", "/api/v3/selfSymbols", "get_authorized_symbols",
                                    credentials, self._timestamp_params())
        if not isinstance(data, dict):
            return []
        return list(data.get("data") or [])

    def submit_order(self, credentials: MexcCredentials, order: OrderRequest) -> OrderResponse:
        """POST a prepared order; parameters are signed in sorted key order."""
        logger.info(f"Placing {order.type} {order.side} {order.quantity} {order.symbol}")
        data = self._signed_request("POST", "/api/v3/order", "place_order",
                                    credentials, order.to_params())
        return OrderResponse.from_dict(data)

    def place_order(self, credentials: MexcCredentials, trade, symbol: str, quantity: str) -> OrderResponse:
        """
        Place the entry order for a trade setup.

        Stop-loss and take-profit are not attached: the venue has no atomic
        bracket orders, so protective orders are separate calls made by the
        caller (see TradeExecutor).
        """
        order = build_order_request(trade, symbol, quantity, self.clock())
        return self.submit_order(credentials, order)
