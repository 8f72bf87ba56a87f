"""
Tool Base Classes.

This module defines the abstractions behind ``tool`` steps:
- Tool: Base class for all tools
- ToolResult: Result from tool execution

Design Principle:
    Tools do NOT know they are called by a flow. They are independent,
    testable units. A ToolRegistry turns a set of tools into the
    ``execute_tool`` capability the tool step executor calls.

Usage:
    class LookupOrderTool(Tool):
        @property
        def name(self) -> str:
            return "lookup_order"

        @property
        def description(self) -> str:
            return "Find an order by its number"

        @property
        def input_schema(self) -> dict:
            return {
                "type": "object",
                "properties": {"order_number": {"type": "string"}},
                "required": ["order_number"],
            }

        async def execute(self, arguments: dict) -> ToolResult:
            order = await self.orders.get(arguments["order_number"])
            if order is None:
                return ToolResult.error("Order not found")
            return ToolResult.success("Order found", structured=order)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class ToolResult:
    """
    Result from tool execution.

    Error Handling:
        Tool execution errors should be reported IN the result,
        not as exceptions. The flow records them as step errors and
        keeps the output on the context bus.

    Example:
        ToolResult.success("Task created: ID-123")
        ToolResult.success("Task created", structured={"task_id": "123"})
        ToolResult.error("Project not found: Mobile App")
    """

    text: str
    is_error: bool = False
    structured_content: dict[str, Any] | None = None

    @classmethod
    def success(
        cls,
        text: str,
        *,
        structured: dict[str, Any] | None = None,
    ) -> ToolResult:
        """Create a successful result."""
        return cls(text=text, is_error=False, structured_content=structured)

    @classmethod
    def error(
        cls,
        message: str,
        *,
        structured: dict[str, Any] | None = None,
    ) -> ToolResult:
        """Create an error result."""
        return cls(text=message, is_error=True, structured_content=structured)

    @property
    def output(self) -> Any:
        """Value written to the context bus: structured content when present."""
        if self.structured_content is not None:
            return self.structured_content
        return self.text

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"text": self.text}
        if self.is_error:
            result["isError"] = True
        if self.structured_content is not None:
            result["structuredContent"] = self.structured_content
        return result


class Tool(ABC):
    """
    Base class for all tools.

    Contract:
        - name: Unique identifier (snake_case recommended), matched
          against ``config.tool`` of tool steps and ``allowedTools``
        - description: What the tool does
        - input_schema: JSON Schema for arguments
        - execute: Async method that performs the action
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for the tool."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        ...

    @property
    @abstractmethod
    def input_schema(self) -> dict[str, Any]:
        """
        JSON Schema defining expected input arguments.

        Must be a JSON Schema object with ``type: "object"`` and
        ``properties``.
        """
        ...

    @abstractmethod
    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        """
        Execute the tool with the given arguments.

        Args:
            arguments: Resolved step params and inputs

        Returns:
            ToolResult with execution outcome

        Important:
            - Report errors in ToolResult.error(), don't raise exceptions
            - Exceptions should only be raised for unexpected failures
        """
        ...

    def to_schema(self) -> dict[str, Any]:
        """Name, description and input schema, e.g. for flow editors."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }

    def __repr__(self) -> str:
        return f"<Tool {self.name}>"
