"""
Trading Policy — the gate every side-effecting tool passes through.

Rules (all optional, unset means unlimited):
  - kill switch:       SKYBIT_TRADING_ENABLED=false blocks new orders
  - symbol allowlist:  SKYBIT_SYMBOL_ALLOWLIST=AAPL,MSFT
  - max quantity:      SKYBIT_MAX_ORDER_QTY
  - max notional:      SKYBIT_MAX_ORDER_NOTIONAL (qty × limit_price, priced orders only)

Cancels are always allowed: reducing exposure is never blocked.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional

from core import config

logger = logging.getLogger(__name__)

_CANCEL_ACTIONS = {"cancel", "cancel_all"}


@dataclass
class PolicyDecision:
    allowed: bool
    reason: str
    rules: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _number(val) -> Optional[float]:
    """Numeric read for limit checks. Non-finite values count as missing."""
    if isinstance(val, bool) or not isinstance(val, (int, float, str)):
        return None
    try:
        num = float(val)
    except (OverflowError, ValueError):
        return None
    return num if math.isfinite(num) else None


def is_cancel_action(tool: str) -> bool:
    return tool.rsplit(".", 1)[-1] in _CANCEL_ACTIONS


class TradingPolicy:
    """Stateless rule set; safe to share across concurrent calls."""

    def __init__(
        self,
        trading_enabled: bool = True,
        max_order_qty: Optional[float] = None,
        max_order_notional: Optional[float] = None,
        symbol_allowlist: FrozenSet[str] = frozenset(),
    ):
        self.trading_enabled = trading_enabled
        self.max_order_qty = max_order_qty
        self.max_order_notional = max_order_notional
        self.symbol_allowlist = frozenset(s.upper() for s in symbol_allowlist)

    @classmethod
    def from_config(cls) -> "TradingPolicy":
        return cls(
            trading_enabled=config.TRADING_ENABLED,
            max_order_qty=config.MAX_ORDER_QTY,
            max_order_notional=config.MAX_ORDER_NOTIONAL,
            symbol_allowlist=config.SYMBOL_ALLOWLIST,
        )

    def describe(self) -> Dict[str, Any]:
        return {
            "trading_enabled": self.trading_enabled,
            "max_order_qty": self.max_order_qty,
            "max_order_notional": self.max_order_notional,
            "symbol_allowlist": sorted(self.symbol_allowlist),
        }

    def evaluate(self, tool: str, params: Dict[str, Any]) -> PolicyDecision:
        """Decide whether ``tool`` may run with ``params``."""
        if is_cancel_action(tool):
            return PolicyDecision(True, "cancels are always allowed", ["cancel"])

        rules = ["kill_switch"]
        if not self.trading_enabled:
            return PolicyDecision(False, "trading is disabled", rules)

        order = params.get("order")
        if not isinstance(order, dict):
            order = params

        if self.symbol_allowlist:
            rules.append("symbol_allowlist")
            symbol = str(order.get("symbol") or "").upper()
            if symbol not in self.symbol_allowlist:
                return PolicyDecision(False, f"symbol {symbol or '<none>'} is not allowlisted", rules)

        qty = _number(order.get("qty", order.get("quantity")))
        if self.max_order_qty is not None:
            rules.append("max_order_qty")
            if qty is None:
                return PolicyDecision(False, "order quantity is missing or not numeric", rules)
            if abs(qty) > self.max_order_qty:
                return PolicyDecision(
                    False, f"quantity {qty:g} exceeds limit {self.max_order_qty:g}", rules
                )

        if self.max_order_notional is not None:
            rules.append("max_order_notional")
            price = _number(order.get("limit_price"))
            if qty is not None and price:
                notional = abs(qty * price)
                if notional > self.max_order_notional:
                    return PolicyDecision(
                        False,
                        f"notional {notional:,.2f} exceeds limit {self.max_order_notional:,.2f}",
                        rules,
                    )

        return PolicyDecision(True, "ok", rules)
