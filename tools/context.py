"""Per-call context and the shared services handlers reach through it."""

from __future__ import annotations

import os
import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Mapping, Optional

from execution.snaptrade_client import SnapTradeClient
from execution.snaptrade_utils import SnapTradeConfig
from tools.errors import CallTimeoutError

if TYPE_CHECKING:
    from data.audit_log import AuditLog
    from tools.idempotency import IdempotencyCache
    from tools.policy import TradingPolicy


@dataclass
class ToolServices:
    """
    Long-lived collaborators shared by every call.

    Built once by the composition root; read-only while serving.
    """
    audit_log: "AuditLog"
    policy: "TradingPolicy"
    idempotency: "IdempotencyCache"
    snaptrade_factory: Callable[[SnapTradeConfig], SnapTradeClient] = SnapTradeClient
    environ: Mapping[str, str] = field(default_factory=lambda: os.environ)


@dataclass
class CallContext:
    """Bounded-lifetime context for one tool invocation."""
    tool: str
    deadline: float  # time.monotonic() value
    services: ToolServices
    call_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    @classmethod
    def with_timeout(
        cls,
        tool: str,
        services: ToolServices,
        timeout: float,
        caller_timeout: Optional[float] = None,
    ) -> "CallContext":
        """Deadline = now + min(timeout, caller_timeout)."""
        budget = timeout
        if caller_timeout is not None and caller_timeout < budget:
            budget = max(caller_timeout, 0.0)
        return cls(tool=tool, deadline=time.monotonic() + budget, services=services)

    def remaining(self) -> float:
        return max(self.deadline - time.monotonic(), 0.0)

    def expired(self) -> bool:
        return time.monotonic() >= self.deadline

    def check_deadline(self) -> None:
        """Raise before starting expensive work on a call that is already out of time."""
        if self.expired():
            raise CallTimeoutError(self.tool)
