"""
Data tools for datagate.

This module provides the two tools that touch a store:
- query: Run a guarded, bounded read-only query
- analyze: Run a guarded query and evaluate analysis code over its rows

Arguments are validated into QueryRequest / AnalysisRequest, so the tool
schema and the engine's request shape are the same model.

Security Note:
    Guards run inside the ExecutionEngine, not here. These tools only
    translate plain-data arguments into engine calls and engine results into
    envelope text, so an argument the guards reject is reported as text.
"""

from datagate.report.envelope import format_analysis_text, format_query_text
from datagate.schema import AnalysisRequest, QueryRequest
from datagate.tools.base import Tool, ToolContext, ToolOutput


class QueryTool(Tool):
    """
    Execute a read-only SQL query.

    Arguments:
        query (str): SQL text (required)
        limit (int): Row cap, default 100, at most 5000
        environment (str): Optional environment override

    Example:
        output = tool.execute({"query": "select * from users limit 10"}, context)
    """

    name = "query"
    title = "Execute SQL Query"
    description = "Execute a read-only SQL query against the current environment"
    args_model = QueryRequest

    def run(self, args: QueryRequest, context: ToolContext) -> ToolOutput:
        result = context.engine.run_query(args.query, cap=args.cap, environment=args.environment)
        text = format_query_text(result)
        if result.success:
            return ToolOutput.ok(text, data=result, environment=result.environment)
        return ToolOutput.fail(text, data=result, status=result.status.value)


class AnalyzeTool(Tool):
    """
    Query the store and evaluate analysis code over the rows.

    Arguments:
        query (str): SQL text (required)
        code (str): Expression or function body; `data` holds the rows (required)
        limit (int): Row cap, default 1000, at most 5000
        environment (str): Optional environment override
    """

    name = "analyze"
    title = "Analyze Data"
    description = "Run a read-only query and analyze the rows with Python and pandas"
    args_model = AnalysisRequest

    def run(self, args: AnalysisRequest, context: ToolContext) -> ToolOutput:
        result = context.engine.run_analysis(
            args.query,
            args.code,
            cap=args.cap,
            environment=args.environment,
        )
        text = format_analysis_text(result)
        if result.success:
            return ToolOutput.ok(text, data=result, environment=result.environment)
        return ToolOutput.fail(text, data=result, status=result.status.value)


DATA_TOOLS: tuple[type[Tool], ...] = (QueryTool, AnalyzeTool)
