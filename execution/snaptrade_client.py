"""
SnapTrade Client - Minimal authenticated brokerage HTTP client.

Uses direct HTTP calls to the SnapTrade REST API via httpx.
One request per operation: no retries, no pagination, no streaming.

Provides:
- Account listing
- Positions for an account
- Order placement, single cancel, cancel-all

Every transport failure (connection error, non-2xx status, undecodable
body) is raised as a single BackendError naming the operation.
Cancellation (asyncio.CancelledError) is never caught here, so a call
abandoned by the gateway closes its in-flight request.
"""

import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from execution.snaptrade_utils import SnapTradeConfig, format_snaptrade_endpoint
from tools.errors import BackendError

logger = logging.getLogger(__name__)


# =========================================================================
# WIRE SHAPES
# =========================================================================

@dataclass
class Account:
    id: str
    name: str = ""

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Account":
        account_id = raw.get("id")
        if account_id is None or not str(account_id).strip():
            raise ValueError("account without id")
        return cls(id=str(account_id), name=str(raw.get("name", "") or ""))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Position:
    symbol: str
    quantity: float = 0.0
    avg_price: float = 0.0

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Position":
        return cls(
            symbol=str(raw.get("symbol", "")),
            quantity=float(raw.get("quantity") or 0.0),
            avg_price=float(raw.get("avg_price") or 0.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PlaceOrderRequest:
    symbol: str
    side: str
    quantity: float
    type: str
    tif: str
    client_id: str
    limit_price: Optional[float] = None

    def to_payload(self) -> Dict[str, Any]:
        """JSON body for the broker. limit_price is omitted when unset."""
        payload = {
            "symbol": self.symbol,
            "side": self.side,
            "quantity": self.quantity,
            "type": self.type,
            "tif": self.tif,
            "client_id": self.client_id,
        }
        if self.limit_price:
            payload["limit_price"] = self.limit_price
        return payload


@dataclass
class PlaceOrderResponse:
    broker_order_id: str
    status: str

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "PlaceOrderResponse":
        return cls(
            broker_order_id=str(raw.get("broker_order_id", "")),
            status=str(raw.get("status", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _segment(value: str) -> str:
    encoded = quote(str(value), safe="")
    # Dot segments would be collapsed by URL normalization.
    if encoded in (".", ".."):
        encoded = encoded.replace(".", "%2E")
    return encoded


def _path(*segments: str) -> str:
    """Join path segments, percent-encoding each so ids cannot reroute the call."""
    return "/" + "/".join(_segment(seg) for seg in segments)


# =========================================================================
# CLIENT
# =========================================================================

class SnapTradeClient:
    """
    Async client for the SnapTrade API.

    Use as an async context manager so the underlying connection pool is
    always closed:

        async with SnapTradeClient(config) as client:
            accounts = await client.list_accounts()
    """

    def __init__(
        self,
        config: SnapTradeConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._http_client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={
                "Content-Type": "application/json",
                "X-Snaptrade-Client-Id": config.client_id,
                "X-Snaptrade-Client-Secret": config.client_secret,
            },
            timeout=config.timeout,
            transport=transport,
        )
        self._request_count = 0
        logger.debug(f"SnapTradeClient ready: {format_snaptrade_endpoint(config)}")

    async def __aenter__(self) -> "SnapTradeClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self._http_client.aclose()

    @property
    def request_count(self) -> int:
        return self._request_count

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        expect_body: bool = True,
    ) -> Any:
        """One round trip. Returns decoded JSON, or None when no body is expected."""
        self._request_count += 1
        try:
            response = await self._http_client.request(method, path, json=body)
        except httpx.TimeoutException as e:
            logger.warning(f"SnapTrade {operation} timed out: {e}")
            raise BackendError(operation, reason="request timed out") from e
        except httpx.HTTPError as e:
            logger.warning(f"SnapTrade {operation} transport error: {e}")
            raise BackendError(operation, reason="connection error") from e

        if not response.is_success:
            logger.warning(f"SnapTrade {operation} returned HTTP {response.status_code}")
            raise BackendError(operation, status=response.status_code)

        if not expect_body:
            return None
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"SnapTrade {operation} sent an undecodable body")
            raise BackendError(operation, reason="malformed response") from e

    def _decode_list(self, operation: str, data: Any, shape) -> list:
        if not isinstance(data, list):
            raise BackendError(operation, reason="malformed response")
        try:
            return [shape.from_dict(item) for item in data]
        except (AttributeError, TypeError, ValueError) as e:
            raise BackendError(operation, reason="malformed response") from e

    async def list_accounts(self) -> List[Account]:
        data = await self._request("list_accounts", "GET", _path("accounts"))
        return self._decode_list("list_accounts", data, Account)

    async def get_positions(self, account_id: str) -> List[Position]:
        data = await self._request("get_positions", "GET", _path("accounts", account_id, "positions"))
        return self._decode_list("get_positions", data, Position)

    async def place_order(self, account_id: str, req: PlaceOrderRequest) -> PlaceOrderResponse:
        data = await self._request(
            "place_order", "POST", _path("accounts", account_id, "orders"), body=req.to_payload()
        )
        if not isinstance(data, dict):
            raise BackendError("place_order", reason="malformed response")
        return PlaceOrderResponse.from_dict(data)

    async def cancel_order(self, account_id: str, broker_order_id: str) -> None:
        await self._request(
            "cancel_order",
            "POST",
            _path("accounts", account_id, "orders", broker_order_id, "cancel"),
            expect_body=False,
        )

    async def cancel_all(self, account_id: str) -> None:
        await self._request(
            "cancel_all",
            "POST",
            _path("accounts", account_id, "orders", "cancel_all"),
            expect_body=False,
        )
