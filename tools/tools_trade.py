"""Trade preview + local stub order handlers.

The stub order tools stand in for a brokerage: they accept everything and
persist nothing. Preview is a pure cost estimate with a fixed fee schedule.
"""

import itertools
import logging
import math
import time
from typing import Any

from tools.registry import Tool
from tools.tools_data import utc_now_iso

logger = logging.getLogger(__name__)

# =============================================================================
# FEE SCHEDULE
# =============================================================================

COMMISSION = 1.00
FEES = (
    ("SEC", 0.46),
    ("TAF", 0.01),
)

# Process-wide sequence; the clock part alone can collide on coarse clocks.
_ORDER_SEQ = itertools.count(1)


def _finite_or_zero(num: float) -> float:
    return num if math.isfinite(num) else 0.0


def _as_number(val) -> float:
    """Lenient numeric read: bad, missing or non-finite values count as 0."""
    if isinstance(val, bool) or not isinstance(val, (int, float, str)):
        return 0.0
    try:
        return _finite_or_zero(float(val))
    except (OverflowError, ValueError):
        return 0.0


# =============================================================================
# PREVIEW
# =============================================================================

def preview_orders(orders: list) -> dict:
    """Per-order estimated_total plus aggregate impact. Input fields are kept."""
    total = 0.0
    out_orders = []
    for order in orders:
        if not isinstance(order, dict):
            order = {}
        # Finite factors can still overflow to inf.
        value = _finite_or_zero(_as_number(order.get("qty")) * _as_number(order.get("limit_price")))
        total = _finite_or_zero(total + value)
        priced = dict(order)
        priced["estimated_total"] = value
        out_orders.append(priced)

    fees_total = sum(amount for _, amount in FEES)
    impact = {
        "total_value": total,
        "commission": COMMISSION,
        "fees": [{"type": kind, "amount": amount} for kind, amount in FEES],
        "total_cost": total + COMMISSION + fees_total,
        "slippage_bps": 0,
        "pnl_impact": 0,
    }
    return {"orders": out_orders, "impact": impact}


async def handle_preview(ctx, params: dict) -> Any:
    orders = params.get("orders")
    if not isinstance(orders, list):
        orders = []
    return preview_orders(orders)


# =============================================================================
# STUB ORDERS
# =============================================================================

def next_stub_order_id() -> str:
    return f"SNAP-{time.time_ns()}-{next(_ORDER_SEQ)}"


async def handle_place_order(ctx, params: dict) -> Any:
    order = params.get("order")
    if not isinstance(order, dict):
        order = {}
    order_id = next_stub_order_id()
    logger.info(f"Stub order accepted: {order_id} {order.get('side', '')} {order.get('symbol', '')}")
    return {
        "broker_order_id": order_id,
        "status": "ACCEPTED",
        "submitted_at": utc_now_iso(),
        "echo": order,
    }


async def handle_cancel(ctx, params: dict) -> Any:
    return {"status": "CANCELED"}


async def handle_cancel_all(ctx, params: dict) -> Any:
    return {"status": "CANCELED_ALL"}


_ORDER_SCHEMA = {
    "type": "object",
    "properties": {
        "symbol": {"type": "string"},
        "side": {"type": "string", "enum": ["BUY", "SELL"]},
        "qty": {"type": "number"},
        "type": {"type": "string", "description": "MARKET or LIMIT"},
        "limit_price": {"type": "number"},
        "tif": {"type": "string", "description": "DAY, GTC, ..."},
        "client_id": {"type": "string", "description": "Idempotency key"},
    },
    "required": ["symbol", "side", "qty"],
}

TOOLS = [
    Tool(
        name="trade.preview",
        handler=handle_preview,
        description="Estimate totals, commission and fees for a list of orders.",
        parameters={
            "type": "object",
            "properties": {"orders": {"type": "array", "items": _ORDER_SCHEMA}},
            "required": ["orders"],
        },
    ),
    Tool(
        name="trade.place_order",
        handler=handle_place_order,
        description="Place an order on the local paper stub.",
        parameters={
            "type": "object",
            "properties": {"order": _ORDER_SCHEMA},
            "required": ["order"],
        },
        side_effect=True,
    ),
    Tool(
        name="trade.cancel",
        handler=handle_cancel,
        description="Cancel an order on the local paper stub.",
        parameters={
            "type": "object",
            "properties": {"broker_order_id": {"type": "string"}},
        },
        side_effect=True,
    ),
    Tool(
        name="trade.cancel_all",
        handler=handle_cancel_all,
        description="Cancel every open order on the local paper stub.",
        side_effect=True,
    ),
]

__all__ = ["TOOLS", "preview_orders", "next_stub_order_id", "COMMISSION", "FEES"]
