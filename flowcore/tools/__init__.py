"""
Tools for ``tool`` steps.

Tools are named async units registered at startup. ``tool_capability``
exposes a ToolRegistry as the execute_tool capability of
ExecutorDependencies.
"""

from .base import Tool, ToolResult
from .registry import ToolRegistry, ToolRegistryError, tool_capability

__all__ = [
    "Tool",
    "ToolResult",
    "ToolRegistry",
    "ToolRegistryError",
    "tool_capability",
]
