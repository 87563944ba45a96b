"""Pytest fixtures for gateway tests."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from data.audit_log import AuditLog
from execution.snaptrade_client import SnapTradeClient
from tools.context import CallContext, ToolServices
from tools.idempotency import IdempotencyCache
from tools.policy import TradingPolicy

API_PREFIX = "/api/v1"


class FakeBroker:
    """In-memory SnapTrade stand-in served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.accounts = [{"id": "acct-1", "name": "Main"}, {"id": "acct-2", "name": "IRA"}]
        self.positions = {"acct-1": [{"symbol": "AAPL", "quantity": 10, "avg_price": 180.5}]}
        self.fail_status: int | None = None
        self.raise_connect = False
        self.requests: list[httpx.Request] = []
        self.orders: list[tuple[str, dict]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_connect:
            raise httpx.ConnectError("connection refused", request=request)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, json={"detail": "nope"})

        path = request.url.path.removeprefix(API_PREFIX)
        parts = [p for p in path.split("/") if p]
        if request.method == "GET" and parts == ["accounts"]:
            return httpx.Response(200, json=self.accounts)
        if request.method == "GET" and len(parts) == 3 and parts[2] == "positions":
            return httpx.Response(200, json=self.positions.get(parts[1], []))
        if request.method == "POST" and len(parts) == 3 and parts[2] == "orders":
            body = json.loads(request.content)
            self.orders.append((parts[1], body))
            return httpx.Response(
                200, json={"broker_order_id": f"BRK-{len(self.orders)}", "status": "ACCEPTED"}
            )
        if request.method == "POST" and parts[-1] in ("cancel", "cancel_all"):
            return httpx.Response(200)
        return httpx.Response(404)

    def paths(self) -> list[str]:
        return [f"{r.method} {r.url.path.removeprefix(API_PREFIX)}" for r in self.requests]


@pytest.fixture
def broker() -> FakeBroker:
    return FakeBroker()


@pytest.fixture
def snaptrade_env() -> dict:
    return {
        "SNAPTRADE_CLIENT_ID": "cid",
        "SNAPTRADE_CLIENT_SECRET": "secret",
        "SNAPTRADE_ENV": "sandbox",
    }


@pytest.fixture
def audit_path(tmp_path: Path) -> Path:
    return tmp_path / "skybit" / "audit.jsonl"


@pytest.fixture
def services(broker: FakeBroker, snaptrade_env: dict, audit_path: Path) -> ToolServices:
    transport = httpx.MockTransport(broker.handler)
    return ToolServices(
        audit_log=AuditLog(audit_path),
        policy=TradingPolicy(),
        idempotency=IdempotencyCache(ttl_seconds=60.0),
        snaptrade_factory=lambda cfg: SnapTradeClient(cfg, transport=transport),
        environ=snaptrade_env,
    )


@pytest.fixture
def make_ctx(services: ToolServices):
    def _make(tool: str = "test.tool", timeout: float = 5.0) -> CallContext:
        return CallContext.with_timeout(tool, services, timeout)
    return _make


def read_jsonl(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line]
