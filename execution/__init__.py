"""
Execution (Stable Infrastructure)

This package contains:
- SnapTrade brokerage client (snaptrade_client)
- SnapTrade endpoint + credential resolution (snaptrade_utils)

Every brokerage round trip goes through here. Tool handlers never build
HTTP requests themselves.
"""

from execution.snaptrade_client import (
    Account,
    PlaceOrderRequest,
    PlaceOrderResponse,
    Position,
    SnapTradeClient,
)
from execution.snaptrade_utils import SnapTradeConfig, load_snaptrade_config, resolve_base_url

__all__ = [
    'Account',
    'PlaceOrderRequest',
    'PlaceOrderResponse',
    'Position',
    'SnapTradeClient',
    'SnapTradeConfig',
    'load_snaptrade_config',
    'resolve_base_url',
]
