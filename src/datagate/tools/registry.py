"""
Tool registry for datagate.

The registry maps tool names to tool instances and is the tool-call
boundary: `call(name, arguments)` takes plain data and always returns a
content envelope, whatever happens underneath.

Usage:
    registry = build_default_registry()
    envelope = registry.call("query", {"query": "select 1 limit 1"}, context)
"""

import logging
from typing import Any, Iterator

from datagate.errors import ToolNotFoundError
from datagate.report.envelope import text_envelope
from datagate.tools.base import Tool, ToolContext

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Registry for looking up tools by name.

    Attributes:
        _tools: Internal mapping of tool names to tool instances
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """
        Register a tool, replacing any tool with the same name.

        Raises:
            ValueError: If tool is None or has an empty name
        """
        if tool is None:
            msg = "Cannot register None as a tool"
            raise ValueError(msg)

        if not tool.name:
            msg = "Tool must have a non-empty name"
            raise ValueError(msg)

        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool:
        """
        Look up a tool by name.

        Raises:
            ToolNotFoundError: If no tool with that name is registered
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(tool=name, available=self.list_tools())
        return tool

    def call(
        self,
        name: str,
        arguments: dict[str, Any] | None,
        context: ToolContext,
    ) -> dict[str, Any]:
        """
        Invoke a tool with plain-data arguments.

        Returns:
            {"content": [{"type": "text", "text": ...}]}; unknown tools,
            invalid arguments and unexpected failures are reported in the
            text, never raised
        """
        try:
            tool = self.get(name)
        except ToolNotFoundError as e:
            return text_envelope(f"Error: {e.message}")

        try:
            output = tool.execute(arguments or {}, context)
        except Exception as e:
            logger.exception("Tool %s failed unexpectedly", name)
            return text_envelope(f"Error running {name}: {type(e).__name__}: {e}")

        return text_envelope(output.text)

    def list_tools(self) -> list[str]:
        """List all registered tool names in sorted order."""
        return sorted(self._tools.keys())

    def describe(self) -> list[dict[str, Any]]:
        """Name, title, description and input schema of every tool."""
        return [
            {
                "name": tool.name,
                "title": tool.title,
                "description": tool.description,
                "inputSchema": tool.input_schema(),
            }
            for tool in (self._tools[n] for n in self.list_tools())
        ]

    def __len__(self) -> int:
        """Return the number of registered tools."""
        return len(self._tools)

    def __iter__(self) -> Iterator[Tool]:
        """Iterate over all registered tools."""
        return iter(self._tools.values())

    def __contains__(self, name: str) -> bool:
        """Check if a tool is registered using 'in' operator."""
        return name in self._tools

    def __repr__(self) -> str:
        """String representation of the registry."""
        return f"<ToolRegistry: [{', '.join(self.list_tools())}]>"
