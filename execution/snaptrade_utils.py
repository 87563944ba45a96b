"""SnapTrade endpoint and credential resolution.

SIMPLE: SNAPTRADE_ENV is the ONLY environment switch. Default sandbox.
- sandbox    = https://api.sandbox.snaptrade.com/api/v1 (default, safe)
- production = https://api.snaptrade.com/api/v1 (set explicitly when ready)

Anything other than the literal "production" resolves to sandbox.
Credentials are re-read on every call so a rotated .env takes effect
without a restart.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from tools.errors import BrokerConfigError

SANDBOX_BASE_URL = "https://api.sandbox.snaptrade.com/api/v1"
PRODUCTION_BASE_URL = "https://api.snaptrade.com/api/v1"
DEFAULT_ENV = "sandbox"
DEFAULT_TIMEOUT = 15.0


@dataclass(frozen=True)
class SnapTradeConfig:
    """Credentials + environment for one SnapTrade integration."""
    client_id: str
    client_secret: str
    env: str = DEFAULT_ENV
    timeout: float = DEFAULT_TIMEOUT

    @property
    def base_url(self) -> str:
        return resolve_base_url(self.env)

    @property
    def is_production(self) -> bool:
        return self.env == "production"


def resolve_base_url(env: Optional[str]) -> str:
    """Map an environment name to the SnapTrade API base URL."""
    if (env or "").strip().lower() == "production":
        return PRODUCTION_BASE_URL
    return SANDBOX_BASE_URL


def load_snaptrade_config(environ: Optional[Mapping[str, str]] = None) -> SnapTradeConfig:
    """Read SnapTrade settings from the environment.

    Raises:
        BrokerConfigError: if the client id or secret is missing.
    """
    env_vars = os.environ if environ is None else environ
    client_id = env_vars.get("SNAPTRADE_CLIENT_ID", "").strip()
    secret = env_vars.get("SNAPTRADE_CLIENT_SECRET", "").strip()
    env = env_vars.get("SNAPTRADE_ENV", "").strip().lower() or DEFAULT_ENV
    if env != "production":
        env = DEFAULT_ENV
    if not client_id or not secret:
        raise BrokerConfigError("missing SNAPTRADE_CLIENT_ID/SECRET envs")
    try:
        timeout = float(env_vars.get("SNAPTRADE_TIMEOUT", "") or DEFAULT_TIMEOUT)
    except ValueError:
        timeout = DEFAULT_TIMEOUT
    return SnapTradeConfig(client_id=client_id, client_secret=secret, env=env, timeout=timeout)


def default_account_id(environ: Optional[Mapping[str, str]] = None) -> str:
    """Account override from SNAPTRADE_ACCOUNT_ID, or '' when unset."""
    env_vars = os.environ if environ is None else environ
    return env_vars.get("SNAPTRADE_ACCOUNT_ID", "").strip()


def format_snaptrade_endpoint(config: SnapTradeConfig) -> str:
    """Human-readable endpoint string for logging. Never includes secrets."""
    return f"{config.base_url} ({config.env})"
