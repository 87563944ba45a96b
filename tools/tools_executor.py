"""
Tool Execution Layer

The gateway every tool call goes through, whatever transport delivered it.
Builds a deadline-bounded CallContext, consults the trading policy for
side-effecting tools, runs the handler via the registry, audits side
effects, and folds the outcome into a ToolResult envelope.

AVAILABLE TOOLS (for agent prompt):

=== MARKET DATA ===
data.snapshot: {symbols} -> {quotes: {SYM: {bid, ask, mid, ts}}}

=== TRADE (local paper stub) ===
trade.preview: {orders: [{qty, limit_price, ...}]} -> orders with estimated_total + impact
trade.place_order: {order} -> broker_order_id, status=ACCEPTED, submitted_at, echo
trade.cancel: {broker_order_id?} -> status=CANCELED
trade.cancel_all: {} -> status=CANCELED_ALL

=== BROKERAGE (SnapTrade) ===
snaptrade.accounts: {} -> accounts [{id, name}]
snaptrade.positions: {account_id?} -> positions [{symbol, quantity, avg_price}]
snaptrade.place_order: {account_id?, order: {symbol, side, qty, type?, limit_price?, tif?, client_id?}}
snaptrade.cancel: {account_id?, broker_order_id}
snaptrade.cancel_all: {account_id?}

=== GOVERNANCE ===
policy.check: {action?, order?} -> allowed, reason, rules
audit.log: {event, payload?} -> persisted
"""

import asyncio
import json
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

from core import config
from data.audit_log import AuditLog
from tools.context import CallContext, ToolServices
from tools.errors import (
    CallTimeoutError,
    ErrorKind,
    MalformedEnvelopeError,
    PolicyDeniedError,
    ToolError,
)
from tools.idempotency import IdempotencyCache
from tools.policy import TradingPolicy
from tools.registry import Tool, ToolRegistry

logger = logging.getLogger(__name__)


@dataclass
class ToolResult:
    """Structured result from tool execution: exactly one of data or error."""
    action: str
    ok: bool
    data: Any = None
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None
    elapsed_ms: float = 0.0

    @classmethod
    def success(cls, action: str, data: Any) -> "ToolResult":
        return cls(action=action, ok=True, data=data)

    @classmethod
    def failure(cls, action: str, error: ToolError) -> "ToolResult":
        return cls(action=action, ok=False, error=str(error), kind=error.kind)

    def to_envelope(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, "data": self.data}
        return {"ok": False, "error": self.error, "kind": self.kind.value}

    def __str__(self) -> str:
        return json.dumps(self.to_envelope(), indent=2, default=str)


# =========================================================================
# ENVELOPE PARSING
# =========================================================================

def _reject_constant(token: str) -> float:
    raise MalformedEnvelopeError(f"non-finite number {token} in envelope")


def _finite_float(token: str) -> float:
    value = float(token)
    if not math.isfinite(value):
        raise MalformedEnvelopeError(f"number {token} out of range")
    return value


def parse_envelope(raw: Any) -> Tuple[str, Dict[str, Any]]:
    """Turn a request body into (name, args).

    Accepts bytes/str JSON or an already-decoded dict. A missing or null
    ``args`` means no arguments.

    Raises:
        MalformedEnvelopeError: body is not JSON (NaN and out-of-range
            numbers included), not an object, has no
            string ``name``, or has a non-object ``args``.
    """
    if isinstance(raw, (bytes, bytearray, str)):
        try:
            raw = json.loads(raw, parse_constant=_reject_constant, parse_float=_finite_float)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedEnvelopeError("invalid json") from e
    if not isinstance(raw, dict):
        raise MalformedEnvelopeError("envelope must be a JSON object")
    name = raw.get("name")
    if not isinstance(name, str) or not name:
        raise MalformedEnvelopeError("envelope name must be a non-empty string")
    args = raw.get("args")
    if args is None:
        args = {}
    if not isinstance(args, dict):
        raise MalformedEnvelopeError("envelope args must be an object")
    return name, args


# =========================================================================
# GATEWAY
# =========================================================================

class ToolGateway:
    """
    Runs tool calls against one registry.

    Never raises for a call's failure: every outcome, including handler
    bugs, comes back as a ToolResult.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        services: ToolServices,
        call_timeout: float = config.CALL_TIMEOUT_SECONDS,
        audit_grace: float = config.AUDIT_GRACE_SECONDS,
    ):
        self.registry = registry
        self.services = services
        self.call_timeout = call_timeout
        self.audit_grace = audit_grace

    def names(self) -> list:
        return self.registry.names()

    async def execute(
        self,
        action: str,
        params: Optional[Dict[str, Any]] = None,
        caller_timeout: Optional[float] = None,
    ) -> ToolResult:
        """Execute a tool and return structured ToolResult."""
        params = params if params is not None else {}
        started = time.monotonic()
        ctx = CallContext.with_timeout(action, self.services, self.call_timeout, caller_timeout)
        try:
            data = await self._run(ctx, action, params)
            result = ToolResult.success(action, data)
        except ToolError as e:
            result = ToolResult.failure(action, e)
        except Exception as e:
            logger.error(f"Tool error: {action} - {e}", exc_info=True)
            result = ToolResult(
                action=action, ok=False,
                error=f"internal error in {action}", kind=ErrorKind.INTERNAL,
            )
        result.elapsed_ms = round((time.monotonic() - started) * 1000, 1)

        if result.ok:
            logger.info(f"Tool: {action} [{ctx.call_id}] ok in {result.elapsed_ms}ms")
        else:
            logger.warning(
                f"Tool: {action} [{ctx.call_id}] {result.kind.value} in "
                f"{result.elapsed_ms}ms - {result.error}"
            )
        return result

    async def _run(self, ctx: CallContext, action: str, params: Dict[str, Any]) -> Any:
        tool = self.registry.get(action)  # NotFound before any side effect

        if tool.side_effect:
            decision = self.services.policy.evaluate(action, params)
            if not decision.allowed:
                await self._audit(ctx, tool, params, ok=False, kind=ErrorKind.POLICY_DENIED)
                raise PolicyDeniedError(action, decision.reason)

        budget = ctx.remaining()
        outcome_kind = None
        try:
            return await asyncio.wait_for(self.registry.call(ctx, action, params), timeout=budget)
        except asyncio.TimeoutError:
            outcome_kind = ErrorKind.TIMEOUT
            raise CallTimeoutError(action, budget) from None
        except asyncio.CancelledError:
            outcome_kind = ErrorKind.TIMEOUT
            raise
        except ToolError as e:
            outcome_kind = e.kind
            raise
        except Exception:
            outcome_kind = ErrorKind.INTERNAL
            raise
        finally:
            if tool.side_effect:
                await self._audit(ctx, tool, params, ok=outcome_kind is None, kind=outcome_kind)

    async def _audit(
        self,
        ctx: CallContext,
        tool: Tool,
        params: Dict[str, Any],
        ok: bool,
        kind: Optional[ErrorKind],
    ) -> None:
        """Best-effort audit of a side-effecting call. Never raises.

        Bounded by the call deadline plus a short grace period so a stalled
        disk cannot hold the response.
        """
        payload = {"args": params, "ok": ok}
        if kind is not None:
            payload["kind"] = kind.value
        bound = max(ctx.remaining(), self.audit_grace)
        try:
            persisted = await asyncio.wait_for(
                self.services.audit_log.append_async(f"tool.{tool.name}", payload), timeout=bound
            )
        except asyncio.TimeoutError:
            logger.warning(f"Audit write for {tool.name} [{ctx.call_id}] exceeded {bound:.1f}s")
            persisted = False
        if not persisted:
            logger.warning(f"Audit trail missing entry for {tool.name}")


# =========================================================================
# COMPOSITION ROOT
# =========================================================================

def default_tools() -> list:
    """Every built-in tool, grouped by backend."""
    from tools.tools_data import TOOLS as _DATA
    from tools.tools_trade import TOOLS as _TRADE
    from tools.tools_snaptrade import TOOLS as _SNAPTRADE
    from tools.tools_policy import TOOLS as _POLICY

    return [*_DATA, *_TRADE, *_SNAPTRADE, *_POLICY]


def build_registry(tools: Optional[Iterable[Tool]] = None) -> ToolRegistry:
    """Register every tool once. Duplicate names fail here, at startup."""
    registry = ToolRegistry()
    for tool in (default_tools() if tools is None else tools):
        registry.register(tool)
    logger.info(f"Tool registry built: {len(registry)} tools")
    return registry


def build_services(**overrides) -> ToolServices:
    services = {
        "audit_log": AuditLog(config.AUDIT_PATH),
        "policy": TradingPolicy.from_config(),
        "idempotency": IdempotencyCache(config.IDEMPOTENCY_TTL_SECONDS),
    }
    services.update(overrides)
    return ToolServices(**services)


def build_gateway(
    registry: Optional[ToolRegistry] = None,
    services: Optional[ToolServices] = None,
    call_timeout: float = config.CALL_TIMEOUT_SECONDS,
) -> ToolGateway:
    return ToolGateway(
        registry if registry is not None else build_registry(),
        services if services is not None else build_services(),
        call_timeout=call_timeout,
    )
