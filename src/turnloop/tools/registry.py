"""Tool registry and dispatcher.

Tools register themselves with a class decorator. The dispatcher decides
per call which tools are offered (from current secret state) and executes
calls without ever raising.
"""

import logging
from typing import Any, ClassVar

from pydantic import ValidationError

from turnloop.models.conversation import ToolCall
from turnloop.models.tools import PlainToolResult, ToolResult, ToolSchema
from turnloop.secrets_store import env_var_for
from turnloop.tools.base import Tool, ToolContext

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry of available tool classes."""

    _tools: ClassVar[dict[str, type[Tool]]] = {}

    @classmethod
    def register(cls, tool_class: type[Tool]) -> type[Tool]:
        """Decorator to register a tool under its ``name``.

        Example:
            @ToolRegistry.register
            class ClockTool(Tool):
                name = "get_datetime"
                ...
        """
        cls._tools[tool_class.name] = tool_class
        return tool_class

    @classmethod
    def get(cls, name: str) -> type[Tool] | None:
        return cls._tools.get(name)

    @classmethod
    def list_tools(cls) -> list[str]:
        """Registered tool names in registration order."""
        return list(cls._tools)

    @classmethod
    def is_registered(cls, name: str) -> bool:
        return name in cls._tools


class ToolDispatcher:
    """Offers and executes tools against a shared ToolContext."""

    def __init__(
        self,
        context: ToolContext,
        registry: type[ToolRegistry] = ToolRegistry,
    ) -> None:
        self._context = context
        self._registry = registry

    @property
    def context(self) -> ToolContext:
        return self._context

    def available_tools(self) -> list[ToolSchema]:
        """Schemas of the tools usable right now.

        Recomputed on every call so a credential added mid-session takes
        effect on the next turn.
        """
        schemas: list[ToolSchema] = []
        for name in self._registry.list_tools():
            tool_class = self._registry.get(name)
            if tool_class is not None and tool_class.is_available(self._context):
                schemas.append(tool_class.schema())
        return schemas

    async def execute(self, name: str, tool_input: dict[str, Any]) -> ToolResult:
        """Run a tool by name.

        Unknown names, missing credentials, invalid input and tool errors all
        come back as a PlainToolResult explaining what went wrong.
        """
        tool_class = self._registry.get(name)
        if tool_class is None:
            return PlainToolResult(text=f"Unknown tool: {name}")

        if not tool_class.is_available(self._context):
            secret = tool_class.required_secret or ""
            return PlainToolResult(
                text=f"Tool {name} is not available: {env_var_for(secret)} is not configured."
            )

        try:
            params = tool_class.input_model.model_validate(tool_input)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
                for err in e.errors()
            )
            return PlainToolResult(text=f"Invalid input for {name}: {problems}")

        try:
            return await tool_class().run(params, self._context)
        except Exception as e:
            logger.warning("Tool %s failed", name, exc_info=True)
            return PlainToolResult(text=f"Tool {name} failed: {e}")

    def display_label(self, call: ToolCall) -> str:
        """Human-readable status for a running tool call."""
        tool_class = self._registry.get(call.name)
        if tool_class is None:
            return f"Using {call.name}"
        return tool_class().label(call.input)
