from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from core.server import CALLER_TIMEOUT_HEADER, _caller_timeout, create_app
from tools.registry import Tool
from tools.tools_executor import ToolGateway, build_registry


@pytest.fixture
def client(services) -> TestClient:
    gateway = ToolGateway(build_registry(), services, call_timeout=2.0)
    return TestClient(create_app(gateway))


def test_call_returns_ok_envelope(client: TestClient) -> None:
    resp = client.post("/mcp", json={"name": "data.snapshot", "args": {"symbols": ["AAPL"]}})

    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert set(body["data"]["quotes"]["AAPL"]) == {"bid", "ask", "mid", "ts"}


def test_unknown_tool_is_http_200_with_error(client: TestClient) -> None:
    resp = client.post("/mcp", json={"name": "nope", "args": {}})

    assert resp.status_code == 200
    assert resp.json() == {"ok": False, "error": "unknown tool: nope", "kind": "not_found"}


@pytest.mark.parametrize("content", [b"{not json", b'{"args": {}}', b'{"name": "x", "args": 3}'])
def test_malformed_envelope_is_http_400(client: TestClient, content: bytes) -> None:
    resp = client.post("/mcp", content=content, headers={"Content-Type": "application/json"})

    assert resp.status_code == 400
    assert resp.json()["ok"] is False


def test_brokerage_call_over_http(client: TestClient, broker) -> None:
    resp = client.post("/mcp", json={"name": "snaptrade.positions", "args": {}})

    assert resp.json()["data"]["account_id"] == "acct-1"
    assert broker.paths()[-1] == "GET /accounts/acct-1/positions"


def test_caller_timeout_header_bounds_the_call(services) -> None:
    async def slow(ctx, params):
        await asyncio.sleep(2)
        return {}

    gateway = ToolGateway(build_registry([Tool(name="slow", handler=slow)]), services, call_timeout=5.0)
    client = TestClient(create_app(gateway))

    resp = client.post("/mcp", json={"name": "slow"}, headers={CALLER_TIMEOUT_HEADER: "0.05"})

    assert resp.json()["kind"] == "timeout"


@pytest.mark.parametrize("raw, expected", [(None, None), ("", None), ("abc", None), ("-1", None), ("2.5", 2.5)])
def test_caller_timeout_parsing(raw, expected) -> None:
    assert _caller_timeout(raw) == expected


def test_tools_and_health(client: TestClient) -> None:
    tools = client.get("/tools").json()
    health = client.get("/health").json()

    assert "snaptrade.place_order" in tools["tools"]
    assert len(tools["specs"]) == len(tools["tools"])
    assert health == {"ok": True, "tools": len(tools["tools"])}


def test_overflowing_preview_still_returns_an_envelope(client: TestClient) -> None:
    resp = client.post(
        "/mcp",
        json={"name": "trade.preview", "args": {"orders": [{"qty": 1e308, "limit_price": 10}]}},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["data"]["orders"][0]["estimated_total"] == 0.0
    assert body["data"]["impact"]["total_value"] == 0.0


def test_non_finite_json_literal_is_http_400(client: TestClient) -> None:
    resp = client.post(
        "/mcp",
        content=b'{"name": "trade.place_order", "args": {"order": {"qty": NaN}}}',
        headers={"Content-Type": "application/json"},
    )

    assert resp.status_code == 400
    assert "non-finite" in resp.json()["error"]
