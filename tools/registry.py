"""
Tool Registry — name → handler binding table.

Bindings are made once by the composition root (tools_executor.build_registry)
and never change afterwards, so call() can run from any number of concurrent
tasks without locking.

A handler is any coroutine function ``async def handler(ctx, params) -> Any``.
It validates its own params; the registry neither validates arguments nor
enforces deadlines.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List

from tools.context import CallContext
from tools.errors import DuplicateToolError, ToolNotFoundError

logger = logging.getLogger(__name__)

Handler = Callable[[CallContext, Dict[str, Any]], Awaitable[Any]]

# OpenAI function names may not contain dots.
_LLM_NAME_SEP = "__"


@dataclass(frozen=True)
class Tool:
    """A named handler plus the metadata advertised to the LLM."""
    name: str
    handler: Handler
    description: str = ""
    parameters: Dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    side_effect: bool = False

    async def invoke(self, ctx: CallContext, params: Dict[str, Any]) -> Any:
        return await self.handler(ctx, params)

    def to_function_spec(self) -> Dict[str, Any]:
        """OpenAI-style function tool spec."""
        return {
            "type": "function",
            "function": {
                "name": to_llm_name(self.name),
                "description": self.description,
                "parameters": self.parameters,
            },
        }


def to_llm_name(name: str) -> str:
    return name.replace(".", _LLM_NAME_SEP)


def from_llm_name(name: str) -> str:
    return name.replace(_LLM_NAME_SEP, ".")


class ToolRegistry:
    """Maps tool names to Tool objects. One tool per name, no overwrites."""

    def __init__(self) -> None:
        self._tools: Dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """Bind a tool. Raises DuplicateToolError if the name is taken.

        Names may not contain the LLM separator, so every name maps to a
        distinct function name and back.
        """
        if tool.name in self._tools:
            raise DuplicateToolError(tool.name)
        if not tool.name or _LLM_NAME_SEP in tool.name:
            raise ValueError(f"invalid tool name {tool.name!r}: must be non-empty without {_LLM_NAME_SEP!r}")
        if not inspect.iscoroutinefunction(tool.handler):
            raise TypeError(f"handler for {tool.name} must be an async function")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool {tool.name}")

    def names(self) -> List[str]:
        return sorted(self._tools)

    def get(self, name: str) -> Tool:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def specs(self) -> List[Dict[str, Any]]:
        return [self._tools[name].to_function_spec() for name in self.names()]

    async def call(self, ctx: CallContext, name: str, params: Dict[str, Any]) -> Any:
        """Resolve ``name`` and run its handler, returning its result untouched.

        Raises:
            ToolNotFoundError: if no tool is bound to ``name``. No handler runs.
        """
        tool = self.get(name)
        return await tool.invoke(ctx, params)
