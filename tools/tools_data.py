"""Market data tool handlers (local stub quotes)."""

import logging
from datetime import datetime, timezone
from typing import Any

from tools.registry import Tool

logger = logging.getLogger(__name__)

# Fixed synthetic book until a real market data backend is wired in.
STUB_BID = 225.05
STUB_ASK = 225.15
STUB_MID = 225.10


def utc_now_iso() -> str:
    """RFC 3339 UTC timestamp, second precision."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


async def handle_snapshot(ctx, params: dict) -> Any:
    """Quote every requested symbol. Bad input yields an empty quote map."""
    symbols = params.get("symbols")
    if not isinstance(symbols, list):
        return {"quotes": {}}
    now = utc_now_iso()
    quotes = {}
    for sym in symbols:
        if not isinstance(sym, str) or not sym:
            continue
        quotes[sym] = {
            "bid": STUB_BID,
            "ask": STUB_ASK,
            "mid": STUB_MID,
            "ts": now,
        }
    return {"quotes": quotes}


TOOLS = [
    Tool(
        name="data.snapshot",
        handler=handle_snapshot,
        description="Latest bid/ask/mid quote for each symbol.",
        parameters={
            "type": "object",
            "properties": {
                "symbols": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Tickers, e.g. ['AAPL', 'BTC-USD']",
                },
            },
            "required": ["symbols"],
        },
    ),
]
