"""
Tool Errors — the gateway's error taxonomy.

Every failure a caller can see maps to one ErrorKind. Handlers raise the
typed exceptions below; the gateway is the only place that turns them into
envelope strings.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """
    Error kinds carried in the response envelope's ``kind`` field.

    Values are the exact strings the calling agent sees.
    """

    NOT_FOUND = "not_found"                  # Unknown tool name
    INVALID_ARGUMENT = "invalid_argument"    # Missing/malformed handler argument
    NO_LINKED_ACCOUNT = "no_linked_account"  # No account to default to
    BACKEND_ERROR = "backend_error"          # Brokerage transport/status failure
    TIMEOUT = "timeout"                      # Call deadline elapsed
    POLICY_DENIED = "policy_denied"          # Policy gate refused a side effect
    CONFIG_ERROR = "config_error"            # Missing credentials/settings
    INTERNAL = "internal"                    # Unexpected handler bug


class ToolError(Exception):
    """Base for every error a tool call can fail with."""

    kind: ErrorKind = ErrorKind.INTERNAL


class DuplicateToolError(Exception):
    """Raised at build time when two tools claim the same name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"tool already registered: {name}")


class MalformedEnvelopeError(ValueError):
    """Request body is not a usable {name, args} envelope. Rejected before lookup."""
    pass


class ToolNotFoundError(ToolError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"unknown tool: {name}")


class InvalidArgumentError(ToolError):
    kind = ErrorKind.INVALID_ARGUMENT


class NoLinkedAccountError(ToolError):
    kind = ErrorKind.NO_LINKED_ACCOUNT

    def __init__(self, message: str = "no accounts linked; run brokers connect"):
        super().__init__(message)


class BackendError(ToolError):
    """
    A brokerage call failed (connection, non-2xx status, bad body).

    Carries the operation and HTTP status (when there was one) so the
    failure can be diagnosed without exposing transport internals.
    """

    kind = ErrorKind.BACKEND_ERROR

    def __init__(self, operation: str, status: Optional[int] = None, reason: str = ""):
        self.operation = operation
        self.status = status
        self.reason = reason
        if status is not None:
            detail = f"http {status}"
        else:
            detail = reason or "transport error"
        super().__init__(f"snaptrade {operation} failed: {detail}")


class BrokerConfigError(ToolError):
    """Raised when brokerage credentials or settings are missing."""

    kind = ErrorKind.CONFIG_ERROR


class CallTimeoutError(ToolError):
    kind = ErrorKind.TIMEOUT

    def __init__(self, name: str, timeout: Optional[float] = None):
        self.name = name
        self.timeout = timeout
        if timeout is None:
            super().__init__(f"tool {name} exceeded its deadline")
        else:
            super().__init__(f"tool {name} timed out after {timeout:.1f}s")


class PolicyDeniedError(ToolError):
    kind = ErrorKind.POLICY_DENIED

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"policy denied {name}: {reason}")


__all__ = [
    "ErrorKind",
    "ToolError",
    "DuplicateToolError",
    "MalformedEnvelopeError",
    "ToolNotFoundError",
    "InvalidArgumentError",
    "NoLinkedAccountError",
    "BackendError",
    "BrokerConfigError",
    "CallTimeoutError",
    "PolicyDeniedError",
]
