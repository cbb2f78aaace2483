"""
Envelope formatting for datagate.

Turns engine results into the plain-data shape used at the tool-call
boundary:

    {"content": [{"type": "text", "text": "..."}]}

Errors travel through the same envelope as data; the text carries the
human-readable diagnostics.
"""

import json
from typing import Any

from datagate.schema import AnalysisResult, ProbeResult, QueryResult, ResultStatus


def text_envelope(text: str) -> dict[str, Any]:
    """Wrap text in a tool-call content envelope."""
    return {"content": [{"type": "text", "text": text}]}


def dumps(value: Any, indent: int = 2) -> str:
    """JSON-encode a shaped value; anything left unconverted falls back to str()."""
    return json.dumps(value, indent=indent, default=str)


def _failure_text(prefix: str, result: QueryResult) -> str:
    if result.status == ResultStatus.REJECTED:
        return f"{prefix}: {result.error} (rejected: {result.error_code})"
    text = f"{prefix}: {result.error}"
    if result.error_category:
        text += f" [category: {result.error_category}"
        if result.error_code:
            text += f", code: {result.error_code}"
        text += "]"
    return text


def format_query_text(result: QueryResult) -> str:
    """Human-readable text for a query result."""
    if not result.success:
        return _failure_text("Error executing query", result)

    row_set = result.row_set
    return (
        f"Query executed successfully on {result.environment}. "
        f"Found {row_set.total_available} rows (showing {row_set.returned_count}):\n\n"
        f"{dumps(row_set.rows)}"
    )


def format_analysis_text(result: AnalysisResult) -> str:
    """Human-readable text for an analysis result."""
    if not result.success:
        return _failure_text("Error during analysis", result)

    row_set = result.row_set
    return (
        "Analysis completed successfully.\n\n"
        f"Query returned {row_set.total_available} rows (analyzed {row_set.returned_count}).\n\n"
        f"Analysis result:\n{dumps(result.analysis)}"
    )


def format_probe_text(probe: ProbeResult) -> str:
    """Human-readable text for a liveness probe."""
    if probe.healthy:
        return f"Environment {probe.environment} is healthy ({probe.latency_ms:.1f} ms)"
    return f"Environment {probe.environment} is unhealthy after {probe.latency_ms:.1f} ms: {probe.error}"


def result_to_dict(result: QueryResult | ProbeResult) -> dict[str, Any]:
    """JSON-compatible dict of a result model, for --json output."""
    return result.model_dump(mode="json")
