"""SnapTrade-backed account, position and order tool handlers.

Every handler loads credentials fresh, opens a client for the duration of
the call and closes it again. Arguments are coerced into typed values on
entry; anything unusable is rejected with InvalidArgumentError before the
broker is contacted.
"""

import logging
import math
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

from execution.snaptrade_client import PlaceOrderRequest, SnapTradeClient
from execution.snaptrade_utils import default_account_id, load_snaptrade_config
from tools.errors import InvalidArgumentError, NoLinkedAccountError
from tools.registry import Tool

logger = logging.getLogger(__name__)


# =============================================================================
# PARAM SANITIZATION: LLM sometimes sends dicts or strings where numbers belong
# =============================================================================

def _finite(num: float, field_name: str) -> float:
    if not math.isfinite(num):
        raise InvalidArgumentError(f"{field_name} must be a finite number")
    return num


def _safe_float(val, field_name: str) -> float:
    """Extract float from value, handling dict wrapping from LLM."""
    if isinstance(val, bool):
        raise InvalidArgumentError(f"{field_name} must be a number")
    if isinstance(val, (int, float, str)):
        try:
            num = float(val)
        except (OverflowError, ValueError):
            raise InvalidArgumentError(f"{field_name} must be a number, got {val!r}") from None
        return _finite(num, field_name)
    if isinstance(val, dict):
        # LLM wraps values: {"value": 10} or {"price": 148.52}
        for key in ("value", "amount", "price", "quantity", "qty"):
            if key in val:
                return _safe_float(val[key], field_name)
    raise InvalidArgumentError(f"{field_name} must be a number")


def _text(val, default: str = "") -> str:
    if val is None:
        return default
    text = str(val).strip()
    return text or default


@dataclass
class OrderArgs:
    """Typed view of the ``order`` argument."""
    symbol: str
    side: str
    quantity: float
    type: str
    tif: str
    client_id: str
    limit_price: Optional[float] = None

    @classmethod
    def from_params(cls, params: dict) -> "OrderArgs":
        order = params.get("order")
        if not isinstance(order, dict):
            raise InvalidArgumentError("order must be an object")

        symbol = _text(order.get("symbol"))
        if not symbol:
            raise InvalidArgumentError("order.symbol required")
        side = _text(order.get("side")).upper()
        if not side:
            raise InvalidArgumentError("order.side required")

        raw_qty = order.get("qty", order.get("quantity"))
        if raw_qty is None:
            raise InvalidArgumentError("order.qty required")
        quantity = _safe_float(raw_qty, "order.qty")
        if quantity <= 0:
            raise InvalidArgumentError("order.qty must be positive")

        limit_price = None
        if order.get("limit_price") is not None:
            limit_price = _safe_float(order["limit_price"], "order.limit_price")

        order_type = _text(order.get("type"), "LIMIT" if limit_price else "MARKET").upper()
        return cls(
            symbol=symbol,
            side=side,
            quantity=quantity,
            type=order_type,
            tif=_text(order.get("tif"), "DAY").upper(),
            client_id=_text(order.get("client_id")) or uuid.uuid4().hex,
            limit_price=limit_price,
        )

    def to_request(self) -> PlaceOrderRequest:
        return PlaceOrderRequest(
            symbol=self.symbol,
            side=self.side,
            quantity=self.quantity,
            type=self.type,
            tif=self.tif,
            client_id=self.client_id,
            limit_price=self.limit_price,
        )


# =============================================================================
# COMMON HELPERS
# =============================================================================

@asynccontextmanager
async def _open_client(ctx) -> AsyncIterator[SnapTradeClient]:
    """Load credentials and yield a client that is closed on exit."""
    ctx.check_deadline()
    config = load_snaptrade_config(ctx.services.environ)
    client = ctx.services.snaptrade_factory(config)
    try:
        yield client
    finally:
        await client.close()


async def _resolve_account_id(ctx, client: SnapTradeClient, params: dict) -> str:
    """Explicit arg, else SNAPTRADE_ACCOUNT_ID, else the first linked account."""
    explicit = _text(params.get("account_id"))
    if explicit:
        return explicit
    override = default_account_id(ctx.services.environ)
    if override:
        return override
    accounts = await client.list_accounts()
    if not accounts:
        raise NoLinkedAccountError()
    logger.debug(f"Defaulting to first linked account {accounts[0].id}")
    return accounts[0].id


# =============================================================================
# HANDLERS
# =============================================================================

async def handle_accounts(ctx, params: dict) -> Any:
    async with _open_client(ctx) as client:
        accounts = await client.list_accounts()
    return {"accounts": [a.to_dict() for a in accounts]}


async def handle_positions(ctx, params: dict) -> Any:
    async with _open_client(ctx) as client:
        account_id = await _resolve_account_id(ctx, client, params)
        positions = await client.get_positions(account_id)
    return {"account_id": account_id, "positions": [p.to_dict() for p in positions]}


async def handle_place_order(ctx, params: dict) -> Any:
    order = OrderArgs.from_params(params)
    async with _open_client(ctx) as client:
        account_id = await _resolve_account_id(ctx, client, params)
        ctx.check_deadline()

        async def _submit() -> dict:
            resp = await client.place_order(account_id, order.to_request())
            logger.info(
                f"SnapTrade order {resp.broker_order_id} {resp.status}: "
                f"{order.side} {order.quantity:g} {order.symbol} (client_id={order.client_id})"
            )
            return {
                "broker_order_id": resp.broker_order_id,
                "status": resp.status,
                "client_id": order.client_id,
            }

        result, replayed = await ctx.services.idempotency.run(
            f"{account_id}:{order.client_id}", _submit
        )
    if replayed:
        result["replayed"] = True
    return result


async def handle_cancel(ctx, params: dict) -> Any:
    broker_order_id = _text(params.get("broker_order_id"))
    if not broker_order_id:
        raise InvalidArgumentError("broker_order_id required")
    async with _open_client(ctx) as client:
        account_id = await _resolve_account_id(ctx, client, params)
        await client.cancel_order(account_id, broker_order_id)
    logger.info(f"SnapTrade cancel {broker_order_id} sent")
    return {"status": "CANCELED", "broker_order_id": broker_order_id}


async def handle_cancel_all(ctx, params: dict) -> Any:
    async with _open_client(ctx) as client:
        account_id = await _resolve_account_id(ctx, client, params)
        await client.cancel_all(account_id)
    logger.info(f"SnapTrade cancel_all sent for {account_id}")
    return {"status": "CANCELED_ALL"}


_ACCOUNT_PARAM = {
    "account_id": {
        "type": "string",
        "description": "Brokerage account; defaults to SNAPTRADE_ACCOUNT_ID or the first linked account",
    },
}

TOOLS = [
    Tool(
        name="snaptrade.accounts",
        handler=handle_accounts,
        description="List linked brokerage accounts.",
    ),
    Tool(
        name="snaptrade.positions",
        handler=handle_positions,
        description="List positions held in a brokerage account.",
        parameters={"type": "object", "properties": dict(_ACCOUNT_PARAM)},
    ),
    Tool(
        name="snaptrade.place_order",
        handler=handle_place_order,
        description="Submit an order to the brokerage. Pass client_id so retries are safe.",
        parameters={
            "type": "object",
            "properties": {
                **_ACCOUNT_PARAM,
                "order": {
                    "type": "object",
                    "properties": {
                        "symbol": {"type": "string"},
                        "side": {"type": "string", "enum": ["BUY", "SELL"]},
                        "qty": {"type": "number"},
                        "type": {"type": "string", "description": "MARKET or LIMIT"},
                        "limit_price": {"type": "number"},
                        "tif": {"type": "string", "description": "DAY, GTC, ..."},
                        "client_id": {"type": "string"},
                    },
                    "required": ["symbol", "side", "qty"],
                },
            },
            "required": ["order"],
        },
        side_effect=True,
    ),
    Tool(
        name="snaptrade.cancel",
        handler=handle_cancel,
        description="Cancel one brokerage order.",
        parameters={
            "type": "object",
            "properties": {**_ACCOUNT_PARAM, "broker_order_id": {"type": "string"}},
            "required": ["broker_order_id"],
        },
        side_effect=True,
    ),
    Tool(
        name="snaptrade.cancel_all",
        handler=handle_cancel_all,
        description="Cancel every open order in a brokerage account.",
        parameters={"type": "object", "properties": dict(_ACCOUNT_PARAM)},
        side_effect=True,
    ),
]
