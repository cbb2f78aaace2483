"""
Base classes for the tool interface.

This module defines the core abstractions for tools in datagate:
- Tool: Abstract base class that all tools must implement
- ToolContext: Runtime context passed to tools during execution
- ToolOutput: Standardized result format from tool execution

Design Principles:
    - Tools are stateless - all state comes from ToolContext
    - Tools receive validated arguments - validation happens before execution
    - Tools return ToolOutput - never raise exceptions for expected failures
    - Tools are registered by name - the registry handles lookup
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, ValidationError

if TYPE_CHECKING:
    from datagate.engine import ExecutionEngine
    from datagate.store import EnvironmentRegistry


@dataclass(frozen=True)
class ToolOutput:
    """
    Standardized output from tool execution.

    Attributes:
        success: Whether the tool executed successfully
        text: Human-readable text placed in the response envelope
        data: Structured result (for programmatic callers)
        metadata: Additional metadata about the execution
    """

    success: bool
    text: str = ""
    data: Any = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, text: str, data: Any = None, **metadata: Any) -> "ToolOutput":
        """Create a successful output."""
        return cls(success=True, text=text, data=data, metadata=metadata)

    @classmethod
    def fail(cls, text: str, data: Any = None, **metadata: Any) -> "ToolOutput":
        """Create a failed output."""
        return cls(success=False, text=text, data=data, metadata=metadata)


@dataclass
class ToolContext:
    """
    Runtime context passed to tools during execution.

    Attributes:
        engine: Execution engine for guarded queries and analysis
        registry: Environment registry (selection, probes)
    """

    engine: "ExecutionEngine"
    registry: "EnvironmentRegistry"
    metadata: dict[str, Any] = field(default_factory=dict)


class Tool(ABC):
    """
    Abstract base class for all datagate tools.

    Subclasses set `name`, `title`, `description` and `args_model`, and
    implement run() with already-validated arguments.

    Example:
        class CurrentEnvironmentTool(Tool):
            name = "getEnvironment"
            args_model = NoArgs

            def run(self, args, context):
                return ToolOutput.ok(context.registry.current())
    """

    name: ClassVar[str] = ""
    title: ClassVar[str] = ""
    description: ClassVar[str] = ""
    args_model: ClassVar[type[BaseModel]]

    def validate_args(self, args: dict[str, Any]) -> list[str]:
        """
        Validate the arguments for this tool.

        Returns:
            List of validation error messages (empty if valid)
        """
        try:
            self.args_model.model_validate(args)
        except ValidationError as e:
            return [
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
                for err in e.errors()
            ]
        return []

    def execute(self, args: dict[str, Any], context: ToolContext) -> ToolOutput:
        """
        Validate arguments and run the tool.

        Invalid arguments produce a failed ToolOutput rather than an exception.
        """
        errors = self.validate_args(args)
        if errors:
            return ToolOutput.fail(f"Invalid arguments for {self.name}: {'; '.join(errors)}")
        return self.run(self.args_model.model_validate(args), context)

    @abstractmethod
    def run(self, args: Any, context: ToolContext) -> ToolOutput:
        """Perform the tool's action with validated arguments."""
        ...

    def input_schema(self) -> dict[str, Any]:
        """JSON schema of the tool's arguments."""
        return self.args_model.model_json_schema()

    def __repr__(self) -> str:
        """String representation of the tool."""
        return f"<Tool: {self.name}>"
