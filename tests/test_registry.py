from __future__ import annotations

import asyncio

import pytest

from tools.errors import DuplicateToolError, ToolNotFoundError
from tools.registry import Tool, ToolRegistry, from_llm_name, to_llm_name
from tools.tools_executor import build_registry


def _recording_tool(name: str, calls: list[str]) -> Tool:
    async def handler(ctx, params):
        calls.append(name)
        return {"tool": name, "params": params}
    return Tool(name=name, handler=handler)


def test_call_runs_the_bound_handler_and_no_other(make_ctx) -> None:
    calls: list[str] = []
    registry = ToolRegistry()
    for name in ("a.one", "a.two", "b.three"):
        registry.register(_recording_tool(name, calls))

    out = asyncio.run(registry.call(make_ctx(), "a.two", {"x": 1}))

    assert out == {"tool": "a.two", "params": {"x": 1}}
    assert calls == ["a.two"]


def test_unknown_name_raises_not_found_without_running_anything(make_ctx) -> None:
    calls: list[str] = []
    registry = ToolRegistry()
    registry.register(_recording_tool("a.one", calls))

    with pytest.raises(ToolNotFoundError) as exc:
        asyncio.run(registry.call(make_ctx(), "a.missing", {}))

    assert exc.value.name == "a.missing"
    assert "a.missing" in str(exc.value)
    assert calls == []


def test_duplicate_registration_is_rejected() -> None:
    registry = ToolRegistry()
    registry.register(_recording_tool("dup", []))

    with pytest.raises(DuplicateToolError):
        registry.register(_recording_tool("dup", []))
    assert registry.names() == ["dup"]


def test_sync_handlers_are_rejected() -> None:
    registry = ToolRegistry()
    with pytest.raises(TypeError):
        registry.register(Tool(name="sync", handler=lambda ctx, params: {}))


def test_handler_errors_pass_through_untouched(make_ctx) -> None:
    class Boom(Exception):
        pass

    async def handler(ctx, params):
        raise Boom("bad")

    registry = ToolRegistry()
    registry.register(Tool(name="boom", handler=handler))
    with pytest.raises(Boom):
        asyncio.run(registry.call(make_ctx(), "boom", {}))


def test_default_registry_exposes_every_tool() -> None:
    registry = build_registry()

    assert set(registry.names()) == {
        "data.snapshot",
        "trade.preview",
        "trade.place_order",
        "trade.cancel",
        "trade.cancel_all",
        "snaptrade.accounts",
        "snaptrade.positions",
        "snaptrade.place_order",
        "snaptrade.cancel",
        "snaptrade.cancel_all",
        "policy.check",
        "audit.log",
    }


def test_specs_use_llm_safe_names() -> None:
    specs = build_registry().specs()

    names = [s["function"]["name"] for s in specs]
    assert "data__snapshot" in names
    assert all("." not in n for n in names)
    assert all(s["type"] == "function" for s in specs)
    assert from_llm_name(to_llm_name("snaptrade.place_order")) == "snaptrade.place_order"


@pytest.mark.parametrize("name", ["x__y", "data__snapshot", ""])
def test_names_that_cannot_round_trip_are_rejected(name) -> None:
    async def handler(ctx, params):
        return {}

    registry = ToolRegistry()
    registry.register(Tool(name="data.snapshot", handler=handler))

    with pytest.raises(ValueError):
        registry.register(Tool(name=name, handler=handler))
    assert registry.names() == ["data.snapshot"]
    for spec_name in (to_llm_name(n) for n in registry.names()):
        assert registry.get(from_llm_name(spec_name))
