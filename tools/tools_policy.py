"""Policy check and audit log tool handlers."""

import logging
from typing import Any

from tools.registry import Tool

logger = logging.getLogger(__name__)


async def handle_policy_check(ctx, params: dict) -> Any:
    """Evaluate the trading policy for a proposed action. Never raises."""
    action = params.get("action")
    if not isinstance(action, str) or not action:
        action = "trade.place_order"
    decision = ctx.services.policy.evaluate(action, params)
    result = decision.to_dict()
    result["action"] = action
    return result


async def handle_audit_log(ctx, params: dict) -> Any:
    """Append one audit record. Write failures come back as persisted=False."""
    persisted = await ctx.services.audit_log.append_async(
        params.get("event"), params.get("payload")
    )
    if not persisted:
        logger.warning(f"Audit record for {params.get('event')!r} was not persisted")
    return {"persisted": persisted}


TOOLS = [
    Tool(
        name="policy.check",
        handler=handle_policy_check,
        description="Ask whether an order action is allowed before placing it.",
        parameters={
            "type": "object",
            "properties": {
                "action": {"type": "string", "description": "Tool about to be called"},
                "order": {"type": "object", "description": "Order that tool will send"},
            },
        },
    ),
    Tool(
        name="audit.log",
        handler=handle_audit_log,
        description="Append an event to the local audit trail.",
        parameters={
            "type": "object",
            "properties": {
                "event": {"type": "string"},
                "payload": {"type": "object"},
            },
            "required": ["event"],
        },
    ),
]
