"""
Unit tests for envelope text and console rendering.

Tests cover:
- Tool-call content envelopes
- Query, analysis and probe text
- Rich console output
"""

import json

from rich.console import Console

from datagate.report import (
    format_analysis_text,
    format_probe_text,
    format_query_text,
    render_environments,
    render_result,
    result_to_dict,
    text_envelope,
)
from datagate.schema import (
    AnalysisResult,
    GuardVerdict,
    ProbeResult,
    QueryResult,
    RejectReason,
    ResultStatus,
    RowSet,
)

ROW_SET = RowSet(
    rows=[{"id": 1, "name": "a"}, {"id": 2, "name": "b"}],
    columns=["id", "name"],
    returned_count=2,
    total_available=7,
)


def _console() -> Console:
    return Console(record=True, width=120, force_terminal=False)


class TestEnvelope:
    def test_text_envelope(self) -> None:
        assert text_envelope("hi") == {"content": [{"type": "text", "text": "hi"}]}

    def test_query_text(self) -> None:
        result = QueryResult(status=ResultStatus.SUCCESS, environment="dev", row_set=ROW_SET)
        text = format_query_text(result)
        header, body = text.split("\n\n", 1)
        assert header == "Query executed successfully on dev. Found 7 rows (showing 2):"
        assert json.loads(body) == ROW_SET.rows

    def test_rejected_text(self) -> None:
        verdict = GuardVerdict.reject(RejectReason.CAP_EXCEEDED, "Limit cannot exceed 5000 rows")
        result = QueryResult(
            status=ResultStatus.REJECTED,
            verdict=verdict,
            error=verdict.detail,
            error_category="guard",
            error_code="cap_exceeded",
        )
        assert format_query_text(result) == (
            "Error executing query: Limit cannot exceed 5000 rows (rejected: cap_exceeded)"
        )

    def test_error_text(self) -> None:
        result = QueryResult(
            status=ResultStatus.ERROR,
            environment="prod",
            error="Column does not exist: foo",
            error_category="missing_column",
            error_code="42703",
        )
        assert format_query_text(result) == (
            "Error executing query: Column does not exist: foo "
            "[category: missing_column, code: 42703]"
        )

    def test_analysis_text(self) -> None:
        result = AnalysisResult(
            status=ResultStatus.SUCCESS,
            environment="default",
            row_set=ROW_SET,
            analysis={"mean": 1.5},
        )
        assert format_analysis_text(result) == (
            "Analysis completed successfully.\n\n"
            "Query returned 7 rows (analyzed 2).\n\n"
            'Analysis result:\n{\n  "mean": 1.5\n}'
        )

    def test_analysis_error_text(self) -> None:
        result = AnalysisResult(
            status=ResultStatus.ERROR,
            error="No connection available in prod after 2.0s",
            error_category="connectivity",
        )
        assert format_analysis_text(result) == (
            "Error during analysis: No connection available in prod after 2.0s "
            "[category: connectivity]"
        )

    def test_probe_text(self) -> None:
        healthy = ProbeResult(environment="dev", healthy=True, latency_ms=1.234)
        assert format_probe_text(healthy) == "Environment dev is healthy (1.2 ms)"
        down = ProbeResult(environment="prod", healthy=False, latency_ms=2000.0, error="timeout")
        assert format_probe_text(down) == "Environment prod is unhealthy after 2000.0 ms: timeout"

    def test_result_to_dict(self) -> None:
        result = QueryResult(status=ResultStatus.SUCCESS, environment="dev", row_set=ROW_SET)
        data = result_to_dict(result)
        assert data["status"] == "success"
        assert data["row_set"]["total_available"] == 7


class TestConsole:
    def test_renders_rows(self) -> None:
        console = _console()
        render_result(
            QueryResult(status=ResultStatus.SUCCESS, environment="dev", row_set=ROW_SET),
            console,
        )
        output = console.export_text()
        assert "SUCCESS" in output
        assert "2 of 7 rows" in output
        assert "name" in output

    def test_renders_rejection(self) -> None:
        console = _console()
        render_result(
            QueryResult(
                status=ResultStatus.REJECTED,
                error="All queries must include a LIMIT clause",
                error_category="guard",
                error_code="missing_bound",
                suggestion="Add a LIMIT clause to the query",
            ),
            console,
        )
        output = console.export_text()
        assert "REJECTED" in output
        assert "All queries must include a LIMIT clause" in output
        assert "category: guard, code missing_bound" in output
        assert "Suggestion: Add a LIMIT clause to the query" in output

    def test_renders_analysis(self) -> None:
        console = _console()
        render_result(
            AnalysisResult(
                status=ResultStatus.SUCCESS,
                environment="dev",
                row_set=ROW_SET,
                analysis={"count": 2},
            ),
            console,
        )
        assert '"count": 2' in console.export_text()

    def test_error_text_is_escaped(self) -> None:
        console = _console()
        render_result(QueryResult(status=ResultStatus.ERROR, error="bad [red]markup"), console)
        assert "bad [red]markup" in console.export_text()

    def test_renders_environments(self) -> None:
        console = _console()
        probes = {
            "default": ProbeResult(environment="default", healthy=True, latency_ms=1.0),
            "dev": ProbeResult(environment="dev", healthy=False, latency_ms=5.0, error="refused"),
        }
        render_environments(["default", "dev"], "dev", "default", probes, console)
        output = console.export_text()
        assert "Environments" in output
        assert "refused" in output
