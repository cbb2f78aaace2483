"""
Schema definitions for datagate.

This module defines the Pydantic models used throughout datagate:
- EnvironmentConfig/DatagateConfig: Which databases exist and how they are pooled
- GuardVerdict: The result of a guard classification
- QueryRequest/AnalysisRequest: What a caller asks for
- RowSet: A bounded, shaped query result
- QueryResult/AnalysisResult/ProbeResult: Envelopes returned to callers

Design Decisions:
    - Request and verdict models are frozen (immutable once validated)
    - Result envelopes always carry a status instead of raising
    - Engine-wide limits are module constants, not configuration
"""

import os
import re
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from datagate.errors import ConfigError, GuardRejectedError


# =============================================================================
# Engine Constants
# =============================================================================

HARD_CEILING = 5000
DEFAULT_QUERY_CAP = 100
DEFAULT_ANALYSIS_CAP = 1000
DEFAULT_ENVIRONMENT = "default"
DEFAULT_REVERT_SECONDS = 600


# =============================================================================
# Enums
# =============================================================================


class RejectReason(str, Enum):
    """Why a guard refused a request."""

    NOT_READ_ONLY = "not_read_only"
    MISSING_BOUND = "missing_bound"
    CAP_EXCEEDED = "cap_exceeded"
    INVALID_CAP = "invalid_cap"
    BLOCKED_PATTERN = "blocked_pattern"


class ResultStatus(str, Enum):
    """Outcome of an engine call."""

    SUCCESS = "success"
    REJECTED = "rejected"
    ERROR = "error"


# =============================================================================
# Guard Models
# =============================================================================


class GuardVerdict(BaseModel):
    """
    Result of classifying a request with a guard.

    Attributes:
        accepted: Whether the request may proceed
        reason: Reject reason (None when accepted)
        detail: Human-readable detail, e.g. the blocked pattern name
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    accepted: bool = Field(..., description="Whether the request may proceed")
    reason: RejectReason | None = Field(default=None, description="Reject reason")
    detail: str | None = Field(default=None, description="Extra information")

    @classmethod
    def accept(cls) -> "GuardVerdict":
        """Create an ACCEPT verdict."""
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: RejectReason, detail: str | None = None) -> "GuardVerdict":
        """Create a REJECT verdict."""
        return cls(accepted=False, reason=reason, detail=detail)

    def describe(self) -> str:
        """One-line description for envelopes and logs."""
        if self.accepted:
            return "accepted"
        if self.detail:
            return f"rejected ({self.reason.value}): {self.detail}"
        return f"rejected ({self.reason.value})"

    def to_error(self) -> GuardRejectedError:
        """The rejection as an error carrying a code and suggestion."""
        if self.accepted:
            raise ValueError("An accepted verdict has no error")
        return GuardRejectedError(reason=self.reason.value, detail=self.detail)


# =============================================================================
# Configuration Models
# =============================================================================


class EnvironmentConfig(BaseModel):
    """
    Connection settings for one environment.

    Attributes:
        name: Unique environment name (e.g. "default", "dev", "prod")
        url: SQLAlchemy database URL
        pool_size: Maximum number of pooled connections
        max_overflow: Extra connections allowed beyond pool_size
        pool_timeout: Seconds to wait for a free pooled connection
        connect_timeout: Seconds allowed to establish a new connection
        pool_recycle: Seconds after which a pooled connection is replaced
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    pool_size: int = Field(default=10, gt=0)
    max_overflow: int = Field(default=0, ge=0)
    pool_timeout: float = Field(default=2.0, gt=0)
    connect_timeout: int = Field(default=2, gt=0)
    pool_recycle: int = Field(default=1800, gt=0)

    def redacted_url(self) -> str:
        """URL with any password masked, safe to print."""
        return re.sub(r"(://[^:/@]+:)[^@]*@", r"\1***@", self.url)


class DatagateConfig(BaseModel):
    """
    Complete environment configuration.

    Attributes:
        environments: Environment settings keyed by name
        default_environment: Environment selected at startup and reverted to
        revert_after_seconds: Dwell window before a selection reverts
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    environments: dict[str, EnvironmentConfig] = Field(..., min_length=1)
    default_environment: str = Field(default=DEFAULT_ENVIRONMENT)
    revert_after_seconds: float = Field(default=DEFAULT_REVERT_SECONDS, gt=0)

    @field_validator("environments", mode="before")
    @classmethod
    def expand_environments(cls, v: Any) -> Any:
        """Allow `name: url` shorthand and fill in names from keys."""
        if not isinstance(v, Mapping):
            return v
        expanded = {}
        for name, entry in v.items():
            if isinstance(entry, str):
                entry = {"url": entry}
            if isinstance(entry, Mapping):
                entry = {"name": name, **entry}
            expanded[name] = entry
        return expanded

    @model_validator(mode="after")
    def check_default(self) -> "DatagateConfig":
        """The default environment must be one of the configured ones."""
        if self.default_environment not in self.environments:
            msg = (
                f"default_environment {self.default_environment!r} is not configured "
                f"(have: {', '.join(sorted(self.environments))})"
            )
            raise ValueError(msg)
        return self


# =============================================================================
# Request Models
# =============================================================================


class QueryRequest(BaseModel):
    """
    A read request: raw SQL text plus a requested row cap.

    Tool callers send the cap as `limit`; both names are accepted.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    query: str = Field(..., description="SQL query to execute (SELECT, WITH or EXPLAIN, with LIMIT)")
    cap: int = Field(default=DEFAULT_QUERY_CAP, alias="limit", description="Maximum rows to return")
    environment: str | None = Field(default=None, description="Environment override")


class AnalysisRequest(BaseModel):
    """A read request whose rows are handed to analysis code."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    query: str = Field(..., description="SQL query whose rows are analyzed")
    code: str = Field(..., description="Python code over `data` (list of dicts) and `pd`")
    cap: int = Field(default=DEFAULT_ANALYSIS_CAP, alias="limit", description="Maximum rows to analyze")
    environment: str | None = Field(default=None, description="Environment override")


# =============================================================================
# Result Models
# =============================================================================


class RowSet(BaseModel):
    """
    Bounded, ordered result of a guarded query.

    Attributes:
        rows: Records as field name -> JSON-compatible value
        columns: Column names in store order
        returned_count: Number of rows in `rows`
        total_available: Number of rows the store produced
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    rows: list[dict[str, Any]] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)
    returned_count: int = Field(default=0, ge=0)
    total_available: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def check_counts(self) -> "RowSet":
        """Counts must agree with the rows carried."""
        if self.returned_count != len(self.rows):
            raise ValueError("returned_count must equal len(rows)")
        if self.returned_count > self.total_available:
            raise ValueError("returned_count cannot exceed total_available")
        return self

    @property
    def truncated(self) -> bool:
        """Whether rows were dropped while shaping."""
        return self.returned_count < self.total_available


class ProbeResult(BaseModel):
    """Liveness report for one environment."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    environment: str
    healthy: bool
    latency_ms: float = 0.0
    error: str | None = None


class QueryResult(BaseModel):
    """
    Envelope returned by ExecutionEngine.run_query.

    Failures are modelled as data: `status` tells the caller which of
    row_set / verdict / error is meaningful.
    """

    model_config = ConfigDict(extra="forbid")

    status: ResultStatus
    environment: str | None = None
    row_set: RowSet | None = None
    verdict: GuardVerdict | None = None
    error: str | None = None
    error_category: str | None = None
    error_code: str | None = None
    suggestion: str | None = None
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        """Whether the query ran and produced rows."""
        return self.status == ResultStatus.SUCCESS


class AnalysisResult(QueryResult):
    """Envelope returned by ExecutionEngine.run_analysis."""

    analysis: Any = None


# =============================================================================
# Configuration Loading
# =============================================================================

_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_URL_VAR = re.compile(r"^(?:([A-Z0-9_]+)_)?DATABASE_URL$")


def _expand_refs(value: Any, environ: Mapping[str, str], source: str) -> Any:
    """Recursively replace ${VAR} references in strings."""
    if isinstance(value, str):
        def replace(match: re.Match) -> str:
            var = match.group(1)
            if var not in environ:
                raise ConfigError(
                    message=f"Environment variable {var} referenced in {source} is not set",
                    source=source,
                )
            return environ[var]

        return _ENV_REF.sub(replace, value)
    if isinstance(value, dict):
        return {k: _expand_refs(v, environ, source) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_refs(v, environ, source) for v in value]
    return value


def _validate(data: Any, source: str) -> DatagateConfig:
    try:
        return DatagateConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(message=f"Invalid configuration in {source}: {e}", source=source) from e


def load_config_from_string(
    content: str,
    environ: Mapping[str, str] | None = None,
    source: str = "<string>",
) -> DatagateConfig:
    """Load a configuration from a YAML string, expanding ${VAR} references."""
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(message=f"Invalid YAML in {source}: {e}", source=source) from e
    if not isinstance(data, dict):
        raise ConfigError(message=f"{source} must contain a mapping", source=source)
    data = _expand_refs(data, os.environ if environ is None else environ, source)
    return _validate(data, source)


def load_config(path: Path | str, environ: Mapping[str, str] | None = None) -> DatagateConfig:
    """
    Load a configuration from a YAML file.

    Example file:
        default_environment: default
        environments:
          default: ${DATABASE_URL}
          prod:
            url: ${PROD_DATABASE_URL}
            pool_size: 5

    Raises:
        FileNotFoundError: If the file doesn't exist
        ConfigError: If the YAML doesn't match the schema or references
            an unset variable
    """
    path = Path(path)
    with path.open() as f:
        content = f.read()
    return load_config_from_string(content, environ=environ, source=str(path))


def load_config_from_env(environ: Mapping[str, str] | None = None) -> DatagateConfig:
    """
    Build a configuration from *_DATABASE_URL variables.

    DATABASE_URL becomes the "default" environment; DEV_DATABASE_URL becomes
    "dev", PROD_DATABASE_URL becomes "prod", and so on.
    """
    environ = os.environ if environ is None else environ
    environments = {}
    for var, url in environ.items():
        match = _URL_VAR.match(var)
        if not match or not url:
            continue
        name = (match.group(1) or DEFAULT_ENVIRONMENT).lower()
        environments[name] = url
    if not environments:
        raise ConfigError(
            message="No DATABASE_URL or <NAME>_DATABASE_URL variables are set",
            source="environment",
            suggestion="Export DATABASE_URL or pass --config",
        )
    default = DEFAULT_ENVIRONMENT if DEFAULT_ENVIRONMENT in environments else sorted(environments)[0]
    return _validate(
        {"environments": environments, "default_environment": default},
        "environment",
    )
