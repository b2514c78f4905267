"""
Tool map built on every skills pass.

A ToolRegistry is filled once per discovery/reload pass and then frozen
into a read-only mapping; the plugin state swaps that mapping wholesale.
Nothing mutates a published map.
"""

from collections.abc import Mapping
from types import MappingProxyType

from .base import ToolDefinition


class DuplicateToolError(Exception):
    """Error raised when attempting to register a tool with a duplicate name."""

    pass


class ToolRegistry:
    """Ordered collection of tool definitions keyed by name."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}

    def register(self, tool: ToolDefinition) -> None:
        """Register a new tool.

        Raises:
            DuplicateToolError: If the name is already taken
        """
        if tool.name in self._tools:
            raise DuplicateToolError(f"Tool '{tool.name}' is already registered.")
        self._tools[tool.name] = tool

    def freeze(self) -> Mapping[str, ToolDefinition]:
        """Read-only snapshot, safe to publish to concurrent readers."""
        return MappingProxyType(dict(self._tools))

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
