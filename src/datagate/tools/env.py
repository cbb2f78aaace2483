"""
Environment tools for datagate.

This module provides tools for inspecting and switching environments:
- getEnvironment: Report the active environment
- setEnvironment: Switch the active environment (reverts after a dwell window)
- listEnvironments: List registered environments
- probeEnvironment: Run a liveness check against one environment

Selection Note:
    setEnvironment changes process-wide state. Calls already in flight keep
    the environment they captured when they started.
"""

from pydantic import BaseModel, ConfigDict, Field

from datagate.errors import UnknownEnvironmentError
from datagate.report.envelope import format_probe_text
from datagate.tools.base import Tool, ToolContext, ToolOutput


class NoArgs(BaseModel):
    """Arguments model for tools that take none."""

    model_config = ConfigDict(extra="forbid")


class SetEnvironmentArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    environment: str = Field(..., min_length=1, description="Name of the environment to select")


class ProbeEnvironmentArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    environment: str | None = Field(
        default=None, description="Environment to probe; the active one when omitted"
    )


class GetEnvironmentTool(Tool):
    """Report the active environment."""

    name = "getEnvironment"
    title = "Get Current Environment"
    description = "Get the current database environment"
    args_model = NoArgs

    def run(self, args: NoArgs, context: ToolContext) -> ToolOutput:
        current = context.registry.current()
        return ToolOutput.ok(f"Current environment: {current}", data=current)


class SetEnvironmentTool(Tool):
    """
    Switch the active environment.

    Arguments:
        environment (str): Registered environment name (required)

    Returns:
        On success: confirmation, including when the selection will revert
        On failure: the unknown name and the registered alternatives
    """

    name = "setEnvironment"
    title = "Set Environment"
    description = "Switch the database environment used by subsequent queries"
    args_model = SetEnvironmentArgs

    def run(self, args: SetEnvironmentArgs, context: ToolContext) -> ToolOutput:
        registry = context.registry
        try:
            selected = registry.select(args.environment)
        except UnknownEnvironmentError as e:
            text = f"Error: {e.message}"
            if e.suggestion:
                text += f". {e.suggestion}"
            return ToolOutput.fail(text, data=e.to_dict())

        text = f"Environment set to {selected}"
        if registry.has_pending_revert():
            minutes = registry.revert_after_seconds / 60
            text += f" (reverts to {registry.default} after {minutes:g} minutes)"
        return ToolOutput.ok(text, data=selected)


class ListEnvironmentsTool(Tool):
    """List registered environments, marking the active one."""

    name = "listEnvironments"
    title = "List Environments"
    description = "List the configured database environments"
    args_model = NoArgs

    def run(self, args: NoArgs, context: ToolContext) -> ToolOutput:
        registry = context.registry
        current = registry.current()
        lines = [
            f"- {name}" + (" (active)" if name == current else "")
            for name in registry.names()
        ]
        return ToolOutput.ok("Environments:\n" + "\n".join(lines), data=registry.names())


class ProbeEnvironmentTool(Tool):
    """Check that an environment accepts connections."""

    name = "probeEnvironment"
    title = "Probe Environment"
    description = "Run a trivial query to check an environment is reachable"
    args_model = ProbeEnvironmentArgs

    def run(self, args: ProbeEnvironmentArgs, context: ToolContext) -> ToolOutput:
        try:
            probe = context.registry.probe(args.environment)
        except UnknownEnvironmentError as e:
            return ToolOutput.fail(f"Error: {e.message}", data=e.to_dict())

        text = format_probe_text(probe)
        if probe.healthy:
            return ToolOutput.ok(text, data=probe)
        return ToolOutput.fail(text, data=probe)


ENVIRONMENT_TOOLS: tuple[type[Tool], ...] = (
    GetEnvironmentTool,
    SetEnvironmentTool,
    ListEnvironmentsTool,
    ProbeEnvironmentTool,
)
