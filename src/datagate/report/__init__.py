"""
Reporting module for datagate.

Output formats:
    - Envelope: {"content": [{"type": "text", "text": ...}]} for the tool-call boundary
    - Console: Rich terminal output for the CLI
    - JSON: result models dumped with model_dump(mode="json")
"""

from datagate.report.console import render_environments, render_result
from datagate.report.envelope import (
    format_analysis_text,
    format_probe_text,
    format_query_text,
    result_to_dict,
    text_envelope,
)

__all__ = [
    "format_analysis_text",
    "format_probe_text",
    "format_query_text",
    "render_environments",
    "render_result",
    "result_to_dict",
    "text_envelope",
]
