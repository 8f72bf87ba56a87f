"""
Tool Registry.

The registry manages the tools available to ``tool`` steps:
- Registration with validation
- Lookup by name
- Adapting the registry into the ``execute_tool`` capability

Design Principle:
    Tools are registered once at startup and immutable during execution.

Usage:
    registry = ToolRegistry()
    registry.register(LookupOrderTool(orders))

    deps = ExecutorDependencies(
        ...,
        execute_tool=tool_capability(registry),
    )
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from flowcore.executors.dependencies import ToolExecution

if TYPE_CHECKING:
    from .base import Tool

logger = logging.getLogger(__name__)


class ToolRegistryError(Exception):
    """Error in tool registry operations."""

    pass


class ToolRegistry:
    """
    Registry of available tools.

    Example:
        registry = ToolRegistry()
        registry.register(LookupOrderTool(orders))

        tool = registry.get("lookup_order")
        result = await tool.execute({"order_number": "A-1"})
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """
        Register a tool.

        Raises:
            ToolRegistryError: If the name is taken or the tool is invalid
        """
        self._validate_tool(tool)

        if tool.name in self._tools:
            raise ToolRegistryError(
                f"Tool '{tool.name}' already registered. Use a unique name or unregister first."
            )

        self._tools[tool.name] = tool
        logger.info(f"[tool_registry] Registered tool: {tool.name}")

    def unregister(self, name: str) -> bool:
        """
        Unregister a tool by name.

        Returns:
            True if tool was unregistered, False if not found
        """
        if name in self._tools:
            del self._tools[name]
            logger.info(f"[tool_registry] Unregistered tool: {name}")
            return True
        return False

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list_names(self) -> list[str]:
        return list(self._tools.keys())

    def to_schemas(self) -> list[dict[str, Any]]:
        return [tool.to_schema() for tool in self._tools.values()]

    def _validate_tool(self, tool: Tool) -> None:
        if not tool.name or not isinstance(tool.name, str):
            raise ToolRegistryError(f"Tool must have a valid name: {tool}")

        if not tool.description or not isinstance(tool.description, str):
            raise ToolRegistryError(f"Tool '{tool.name}' must have a description")

        schema = tool.input_schema
        if not isinstance(schema, dict):
            raise ToolRegistryError(f"Tool '{tool.name}' input_schema must be a dict")
        if schema.get("type") != "object":
            raise ToolRegistryError(f"Tool '{tool.name}' input_schema must have type: 'object'")
        if "properties" not in schema:
            raise ToolRegistryError(f"Tool '{tool.name}' input_schema must have 'properties'")

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __repr__(self) -> str:
        return f"<ToolRegistry tools={list(self._tools.keys())}>"


# =============================================================================
# Factory Functions
# =============================================================================


def tool_capability(registry: ToolRegistry) -> Callable[..., Awaitable[ToolExecution]]:
    """
    Build an ``execute_tool`` capability backed by a registry.

    Unknown tools and error results come back as ``ToolExecution.error``.
    Exceptions raised by a tool propagate; the tool step turns them into
    step errors.

    Args:
        registry: Tools to expose

    Returns:
        Async callable matching the execute_tool signature
    """

    async def execute_tool(
        *,
        tool_name: str,
        input: dict[str, Any],
        account_id: str,
    ) -> ToolExecution:
        tool = registry.get(tool_name)
        if tool is None:
            logger.warning(f"[tool_registry] Unknown tool requested: {tool_name}")
            return ToolExecution(
                output=None,
                error=f'Tool "{tool_name}" is not registered. Available tools: {registry.list_names()}',
            )

        logger.debug(f"[tool_registry] Executing {tool_name} for account={account_id}")
        result = await tool.execute(input)
        if result.is_error:
            return ToolExecution(output=result.output, error=result.text or "Tool reported an error")
        return ToolExecution(output=result.output)

    return execute_tool
