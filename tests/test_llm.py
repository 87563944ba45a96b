from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

from core.llm import ToolAgent
from tools.errors import ErrorKind
from tools.tools_executor import ToolGateway, build_registry


def _tool_call(call_id: str, name: str, arguments: str):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


def _response(content=None, tool_calls=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeLLM:
    """Plays back canned chat completions and records every request."""

    def __init__(self, responses):
        self.model = "test-model"
        self.temperature = 0.0
        self.requests = []
        self._responses = list(responses)
        self.client = SimpleNamespace(
            chat=SimpleNamespace(completions=SimpleNamespace(create=self._create))
        )

    async def _create(self, **kwargs):
        self.requests.append(kwargs)
        return self._responses.pop(0)


def _agent(services, responses, max_turns: int = 4):
    gateway = ToolGateway(build_registry(), services, call_timeout=2.0)
    llm = FakeLLM(responses)
    return ToolAgent(gateway, llm=llm, max_turns=max_turns), llm


def test_plain_answer_needs_no_tools(services) -> None:
    agent, llm = _agent(services, [_response(content="hello")])

    reply = asyncio.run(agent.ask("hi"))

    assert reply.text == "hello"
    assert reply.calls == []
    names = [t["function"]["name"] for t in llm.requests[0]["tools"]]
    assert "snaptrade__positions" in names


def test_picked_tool_runs_through_gateway(services, broker) -> None:
    agent, llm = _agent(services, [
        _response(tool_calls=[_tool_call("c1", "snaptrade__positions", "{}")]),
        _response(content="You hold 10 AAPL."),
    ])

    reply = asyncio.run(agent.ask("what do I hold?"))

    assert reply.text == "You hold 10 AAPL."
    (call,) = reply.calls
    assert call.tool == "snaptrade.positions"
    assert call.result.ok
    tool_message = llm.requests[1]["messages"][-1]
    assert tool_message["role"] == "tool"
    assert tool_message["tool_call_id"] == "c1"
    assert json.loads(tool_message["content"])["data"]["account_id"] == "acct-1"


def test_bad_arguments_are_reported_not_executed(services, broker) -> None:
    agent, _ = _agent(services, [
        _response(tool_calls=[_tool_call("c1", "snaptrade__accounts", "[1, 2]")]),
        _response(content="done"),
    ])

    reply = asyncio.run(agent.ask("accounts"))

    assert reply.calls[0].result.kind is ErrorKind.INVALID_ARGUMENT
    assert broker.requests == []


def test_loop_stops_after_max_turns(services) -> None:
    looping = [_response(tool_calls=[_tool_call(f"c{i}", "trade__cancel_all", "{}")]) for i in range(2)]
    agent, _ = _agent(services, looping, max_turns=2)

    reply = asyncio.run(agent.ask("cancel forever"))

    assert reply.exhausted
    assert len(reply.calls) == 2
