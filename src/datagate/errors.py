"""
Exception hierarchy for datagate.

All datagate exceptions inherit from DatagateError, allowing callers to catch
all datagate-specific exceptions with a single except clause.

Exception Categories:
    - GuardRejectedError: Query or analysis code blocked by a guard
    - UnknownEnvironmentError / ConfigError: Environment setup problems
    - PoolExhaustedError / ConnectTimeoutError: Connectivity failures
    - StoreExecutionError: The store rejected or failed a statement
    - EvaluationError: Analysis code raised while being evaluated
    - ToolNotFoundError: A tool-call named an unregistered tool

The execution engine never lets these escape its public methods: each one is
converted into a result envelope via to_dict(). They exist so the layers
below the engine can signal failure precisely.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Guard errors: 1xxx
ERROR_GUARD_REJECTED = 1001
ERROR_GUARD_NOT_READ_ONLY = 1002
ERROR_GUARD_MISSING_BOUND = 1003
ERROR_GUARD_CAP_EXCEEDED = 1004
ERROR_GUARD_BLOCKED_PATTERN = 1005

# Environment errors: 2xxx
ERROR_UNKNOWN_ENVIRONMENT = 2001
ERROR_CONFIG_INVALID = 2002

# Store errors: 3xxx
ERROR_POOL_EXHAUSTED = 3001
ERROR_CONNECT_TIMEOUT = 3002
ERROR_STORE_EXECUTION = 3003

# Evaluation errors: 4xxx
ERROR_EVALUATION_FAILED = 4001

# Tool errors: 5xxx
ERROR_TOOL_NOT_FOUND = 5001


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class DatagateError(Exception):
    """
    Base exception for all datagate errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Guard Errors
# =============================================================================


@dataclass
class GuardRejectedError(DatagateError):
    """
    Raised when a guard refuses a query or analysis snippet.

    Rejections are always locally recoverable and are never retried: the
    same text will be rejected again.

    Attributes:
        reason: Machine-readable reject reason (see RejectReason)
        detail: Extra information, e.g. the blocked pattern name
    """

    reason: str = ""
    detail: str | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Rejected ({self.reason})"
            if self.detail:
                self.message += f": {self.detail}"
        if self.code == 0:
            self.code = _GUARD_CODES.get(self.reason, ERROR_GUARD_REJECTED)
        if self.suggestion is None:
            self.suggestion = _GUARD_SUGGESTIONS.get(self.reason)
        self.context.update({
            "reason": self.reason,
            "detail": self.detail,
        })


_GUARD_CODES = {
    "not_read_only": ERROR_GUARD_NOT_READ_ONLY,
    "missing_bound": ERROR_GUARD_MISSING_BOUND,
    "cap_exceeded": ERROR_GUARD_CAP_EXCEEDED,
    "invalid_cap": ERROR_GUARD_CAP_EXCEEDED,
    "blocked_pattern": ERROR_GUARD_BLOCKED_PATTERN,
}

_GUARD_SUGGESTIONS = {
    "not_read_only": "Start the query with SELECT, WITH or EXPLAIN",
    "missing_bound": "Add a LIMIT clause to the query",
    "cap_exceeded": "Request fewer rows or page through them with LIMIT and OFFSET",
    "invalid_cap": "Pass a positive integer row cap",
    "blocked_pattern": "Work only with `data`, `pd` and the bundled utilities",
}


# =============================================================================
# Environment Errors
# =============================================================================


@dataclass
class UnknownEnvironmentError(DatagateError):
    """Raised when selecting or probing an environment that is not registered."""

    environment: str = ""
    available: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Environment {self.environment} not found"
        if self.code == 0:
            self.code = ERROR_UNKNOWN_ENVIRONMENT
        if not self.suggestion and self.available:
            self.suggestion = f"Choose one of: {', '.join(self.available)}"
        self.context.update({
            "environment": self.environment,
            "available": self.available,
        })


@dataclass
class ConfigError(DatagateError):
    """Raised when the environment configuration cannot be loaded."""

    source: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid configuration: {self.source}"
        if self.code == 0:
            self.code = ERROR_CONFIG_INVALID
        self.context["source"] = self.source


# =============================================================================
# Store Errors
# =============================================================================


@dataclass
class StoreError(DatagateError):
    """
    Base class for errors raised while talking to a backing store.

    Attributes:
        environment: Name of the environment the call was bound to
        category: Descriptive category (connectivity, missing_relation, ...)
    """

    environment: str = ""
    category: str = "unknown"

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context.update({
            "environment": self.environment,
            "category": self.category,
        })


@dataclass
class PoolExhaustedError(StoreError):
    """Raised when no pooled connection became free within pool_timeout."""

    timeout_seconds: float = 0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"No connection available in {self.environment} "
                f"after {self.timeout_seconds}s"
            )
        if self.code == 0:
            self.code = ERROR_POOL_EXHAUSTED
        self.category = "connectivity"
        if not self.suggestion:
            self.suggestion = "Retry later or increase pool_size for this environment"
        super().__post_init__()
        self.context["timeout_seconds"] = self.timeout_seconds


@dataclass
class ConnectTimeoutError(StoreError):
    """Raised when a new connection to the store could not be established."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Could not connect to {self.environment}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_CONNECT_TIMEOUT
        self.category = "connectivity"
        if not self.suggestion:
            self.suggestion = "Check the connection URL and that the database is reachable"
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class StoreExecutionError(StoreError):
    """
    Raised when the store fails a statement.

    Attributes:
        sqlstate: Raw driver error code, preserved even when unmapped
        underlying_error: The driver's error message
    """

    sqlstate: str | None = None
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Query failed ({self.category}): {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORE_EXECUTION
        super().__post_init__()
        self.context.update({
            "sqlstate": self.sqlstate,
            "underlying_error": self.underlying_error,
        })


# =============================================================================
# Evaluation Errors
# =============================================================================


@dataclass
class EvaluationError(DatagateError):
    """Raised when analysis code fails to compile or raises while running."""

    error_type: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"{self.error_type}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_EVALUATION_FAILED
        self.context.update({
            "error_type": self.error_type,
            "underlying_error": self.underlying_error,
        })


# =============================================================================
# Tool Errors
# =============================================================================


@dataclass
class ToolNotFoundError(DatagateError):
    """Raised when a tool-call names a tool that is not registered."""

    tool: str = ""
    available: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Tool not found: {self.tool}"
        if self.code == 0:
            self.code = ERROR_TOOL_NOT_FOUND
        if not self.suggestion and self.available:
            self.suggestion = f"Available tools: {', '.join(self.available)}"
        self.context.update({
            "tool": self.tool,
            "available": self.available,
        })
