"""
Core Configuration — All gateway settings consolidated here + .env

Values are read once at import. __main__ loads .env before importing
anything that reads this module.
"""

import os
from pathlib import Path
from typing import Optional


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


# ── Gateway / Transport ─────────────────────────────────────────
GATEWAY_HOST: str = os.getenv("GATEWAY_HOST", "127.0.0.1")
GATEWAY_PORT: int = int(_env_float("GATEWAY_PORT", 8765))

# Hard upper bound for any single tool call. A caller deadline can only
# shorten it, never extend it.
CALL_TIMEOUT_SECONDS: float = _env_float("GATEWAY_CALL_TIMEOUT", 10.0) or 10.0

# ── Audit Log ───────────────────────────────────────────────────
AUDIT_PATH: Path = Path(
    os.getenv("SKYBIT_AUDIT_PATH", str(Path.home() / ".skybit" / "audit.jsonl"))
).expanduser()

# Extra time an audit write may take once the call deadline has passed.
AUDIT_GRACE_SECONDS: float = _env_float("SKYBIT_AUDIT_GRACE", 1.0) or 1.0

# ── Idempotency ─────────────────────────────────────────────────
IDEMPOTENCY_TTL_SECONDS: float = _env_float("SKYBIT_IDEMPOTENCY_TTL", 300.0) or 300.0

# ── Policy ──────────────────────────────────────────────────────
TRADING_ENABLED: bool = _env_bool("SKYBIT_TRADING_ENABLED", True)
MAX_ORDER_QTY: Optional[float] = _env_float("SKYBIT_MAX_ORDER_QTY", None)
MAX_ORDER_NOTIONAL: Optional[float] = _env_float("SKYBIT_MAX_ORDER_NOTIONAL", None)
SYMBOL_ALLOWLIST: frozenset = frozenset(
    s.strip().upper()
    for s in os.getenv("SKYBIT_SYMBOL_ALLOWLIST", "").split(",")
    if s.strip()
)

# ── LLM (OpenRouter, OpenAI-compatible) ─────────────────────────
OPENROUTER_BASE_URL: str = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
OPENROUTER_MODEL: str = os.getenv("OPENROUTER_MODEL", "anthropic/claude-3-opus")
LLM_TEMPERATURE = 0.1
LLM_TIMEOUT_SECONDS = 30.0

SYSTEM_PROMPT = """You are Skybit, a trading assistant with access to brokerage tools.

RULES:
- Use data.snapshot and trade.preview before proposing any order.
- Call policy.check before placing or cancelling orders.
- Always pass a client_id when placing an order so retries are safe.
- If a tool fails with not_found, do not retry it. Pick another tool.
- Keep answers short. Report broker order ids and statuses verbatim."""
