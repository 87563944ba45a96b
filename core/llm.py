"""
OpenRouter LLM Integration — tool selection for the gateway (Minimal)

Thin wrapper around OpenRouter's OpenAI-compatible API plus a small
tool-calling loop. The model picks tools from the registry's function
specs; every pick is dispatched through the same ToolGateway the HTTP
transport uses, so the gateway never depends on how a call was chosen.

Usage:
    agent = ToolAgent(gateway)
    reply = await agent.ask("What do I hold in my brokerage account?")
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from core.config import (
    LLM_TEMPERATURE,
    LLM_TIMEOUT_SECONDS,
    OPENROUTER_BASE_URL,
    OPENROUTER_MODEL,
    SYSTEM_PROMPT,
)
from tools.errors import ErrorKind
from tools.registry import from_llm_name
from tools.tools_executor import ToolGateway, ToolResult

logger = logging.getLogger(__name__)


class OpenRouterLLM:
    """Direct OpenRouter chat-completion client."""

    def __init__(self, model: str = OPENROUTER_MODEL, temperature: float = LLM_TEMPERATURE):
        self.model = model
        self.temperature = temperature

        api_key = os.environ.get("OPENROUTER_API_KEY")
        if not api_key:
            logger.warning("No OPENROUTER_API_KEY found in environment")

        self.client = AsyncOpenAI(
            api_key=api_key or "missing",
            base_url=OPENROUTER_BASE_URL,
            default_headers={"X-Title": "Skybit CLI"},
        )

        logger.info(f"OpenRouterLLM initialized (model={model}, temp={temperature})")


@dataclass
class ToolCallRecord:
    tool: str
    args: Any
    result: ToolResult


@dataclass
class AgentReply:
    text: str
    calls: List[ToolCallRecord] = field(default_factory=list)
    exhausted: bool = False


def _parse_arguments(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    try:
        args = json.loads(raw or "{}")
    except json.JSONDecodeError:
        return None
    return args if isinstance(args, dict) else None


class ToolAgent:
    """Ask the model, run the tools it picks, feed results back, repeat."""

    def __init__(self, gateway: ToolGateway, llm=None, max_turns: int = 4):
        self.gateway = gateway
        self.llm = llm or OpenRouterLLM()
        self.max_turns = max_turns

    async def ask(self, prompt: str) -> AgentReply:
        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        specs = self.gateway.registry.specs()
        calls: List[ToolCallRecord] = []

        for turn in range(1, self.max_turns + 1):
            response = await self.llm.client.chat.completions.create(
                model=self.llm.model,
                temperature=self.llm.temperature,
                messages=messages,
                tools=specs,
                tool_choice="auto",
                timeout=LLM_TIMEOUT_SECONDS,
            )
            message = response.choices[0].message
            tool_calls = message.tool_calls or []
            if not tool_calls:
                return AgentReply(text=message.content or "", calls=calls)

            logger.info(f"Turn {turn}: model requested {len(tool_calls)} tool call(s)")
            messages.append({
                "role": "assistant",
                "content": message.content or "",
                "tool_calls": [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {"name": tc.function.name, "arguments": tc.function.arguments},
                    }
                    for tc in tool_calls
                ],
            })

            for tc in tool_calls:
                name = from_llm_name(tc.function.name)
                args = _parse_arguments(tc.function.arguments)
                if args is None:
                    result = ToolResult(
                        action=name, ok=False,
                        error="tool arguments must be a JSON object",
                        kind=ErrorKind.INVALID_ARGUMENT,
                    )
                else:
                    result = await self.gateway.execute(name, args)
                calls.append(ToolCallRecord(tool=name, args=args, result=result))
                messages.append({"role": "tool", "tool_call_id": tc.id, "content": str(result)})

        logger.warning(f"Tool loop stopped after {self.max_turns} turns without a final answer")
        return AgentReply(text="", calls=calls, exhausted=True)
