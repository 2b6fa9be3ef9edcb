"""Tool registry: named, schema-described callables exposed to the AI runtime."""

from __future__ import annotations

import inspect
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from node_wallet_ai.llm.base import ToolDefinition


@dataclass
class Tool:
    name: str
    description: str
    parameters: dict[str, Any]
    func: Callable[..., Any] | Callable[..., Awaitable[Any]]
    is_async: bool = False

    def to_definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
        )

    def to_catalogue_entry(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.parameters,
        }

    async def execute(self, **kwargs) -> str:
        if self.is_async:
            result = await self.func(**kwargs)
        else:
            result = self.func(**kwargs)
        if isinstance(result, str):
            return result
        return json.dumps(result, default=str)


class ToolRegistry:
    """Ordered collection of tools. Each bridge owns its own registry."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def __len__(self) -> int:
        return len(self._tools)

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def get_tool(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def get_tools(self) -> list[Tool]:
        """Tools in registration order."""
        return list(self._tools.values())

    def tool(self, name: str, description: str, parameters: dict[str, Any]):
        """Decorator registering a function as a tool in this registry.

        Usage::

            @registry.tool(
                "get_wallet_address",
                "Get the connected wallet's address",
                {"type": "object", "properties": {}},
            )
            def get_wallet_address() -> str:
                ...
        """

        def decorator(func: Callable) -> Callable:
            self.register(
                Tool(
                    name=name,
                    description=description,
                    parameters=parameters,
                    func=func,
                    is_async=inspect.iscoroutinefunction(func),
                )
            )
            return func

        return decorator
