"""
Tools module for datagate.

The tool-call boundary: named tools that take plain-data arguments and
answer with a content envelope.

Built-in tools:
    - getEnvironment: Report the active environment
    - setEnvironment: Switch the active environment
    - listEnvironments: List configured environments
    - probeEnvironment: Liveness check for one environment
    - query: Guarded read-only query
    - analyze: Guarded query plus analysis code

Architecture:
    - Tool: Abstract base class defining the tool interface
    - ToolRegistry: Looks tools up by name and wraps every answer in an envelope
    - ToolContext: Runtime context passed to tools (engine, environment registry)
    - ToolOutput: Standardized result format from tool execution
"""

from datagate.tools.base import Tool, ToolContext, ToolOutput
from datagate.tools.data import DATA_TOOLS, AnalyzeTool, QueryTool
from datagate.tools.env import (
    ENVIRONMENT_TOOLS,
    GetEnvironmentTool,
    ListEnvironmentsTool,
    ProbeEnvironmentTool,
    SetEnvironmentTool,
)
from datagate.tools.registry import ToolRegistry


def build_default_registry() -> ToolRegistry:
    """Create a registry holding every built-in tool."""
    registry = ToolRegistry()
    for tool_cls in ENVIRONMENT_TOOLS + DATA_TOOLS:
        registry.register(tool_cls())
    return registry


__all__ = [
    "Tool",
    "ToolContext",
    "ToolOutput",
    "ToolRegistry",
    "build_default_registry",
    "AnalyzeTool",
    "GetEnvironmentTool",
    "ListEnvironmentsTool",
    "ProbeEnvironmentTool",
    "QueryTool",
    "SetEnvironmentTool",
]
