"""
Console rendering for datagate.

Renders engine results in the terminal using Rich: a status header, the
returned rows as a table, and analysis output as pretty JSON.

Design Principles:
    - Status at a glance: icons and colors for success / rejected / error
    - Counts always visible: returned vs. available rows
    - Wide values are truncated in the table, never in --json output
"""

from typing import Any

from rich.console import Console
from rich.json import JSON
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from datagate.report.envelope import dumps
from datagate.schema import AnalysisResult, ProbeResult, QueryResult, ResultStatus, RowSet

# Status icons
ICON_SUCCESS = "[green]✓[/green]"
ICON_ERROR = "[red]✗[/red]"
ICON_REJECTED = "[yellow]⊘[/yellow]"

# Rows shown in the console table; the full RowSet stays available via --json
MAX_TABLE_ROWS = 50
MAX_CELL_WIDTH = 40


def render_result(result: QueryResult, console: Console | None = None) -> None:
    """Print a query or analysis result."""
    if console is None:
        console = Console()

    _print_header(console, result)

    if not result.success:
        style = "yellow" if result.status == ResultStatus.REJECTED else "red"
        console.print(f"  [{style}]{escape(result.error or '')}[/{style}]")
        if result.error_category:
            code = f", code {result.error_code}" if result.error_code else ""
            console.print(f"  [dim]category: {result.error_category}{code}[/dim]")
        if result.suggestion:
            console.print(f"  [dim]Suggestion: {escape(result.suggestion)}[/dim]")
        return

    if isinstance(result, AnalysisResult):
        console.print("[bold]Analysis result[/bold]")
        console.print(JSON(dumps(result.analysis)))
        return

    _print_rows(console, result.row_set)


def _print_header(console: Console, result: QueryResult) -> None:
    if result.status == ResultStatus.SUCCESS:
        status_style, icon = "green", ICON_SUCCESS
    elif result.status == ResultStatus.REJECTED:
        status_style, icon = "yellow", ICON_REJECTED
    else:
        status_style, icon = "red", ICON_ERROR

    header = Text()
    header.append(result.status.value.upper(), style=f"bold {status_style}")
    header.append(" ")
    header.append_text(Text.from_markup(icon))
    if result.environment:
        header.append(" │ ", style="dim")
        header.append(result.environment, style="bold cyan")
    if result.row_set is not None:
        header.append(" │ ", style="dim")
        header.append(
            f"{result.row_set.returned_count} of {result.row_set.total_available} rows"
        )
    header.append(" │ ", style="dim")
    header.append(f"{result.duration_ms:.1f}ms", style="dim")

    console.print(Panel(header, expand=False))


def _print_rows(console: Console, row_set: RowSet) -> None:
    if not row_set.rows:
        console.print("  [dim]No rows[/dim]")
        return

    table = Table(show_header=True, header_style="bold", expand=False)
    for column in row_set.columns:
        table.add_column(column, overflow="fold", max_width=MAX_CELL_WIDTH)

    for row in row_set.rows[:MAX_TABLE_ROWS]:
        table.add_row(*(_cell(row.get(column)) for column in row_set.columns))

    console.print(table)
    if row_set.returned_count > MAX_TABLE_ROWS:
        console.print(
            f"  [dim]... and {row_set.returned_count - MAX_TABLE_ROWS} more rows (use --json)[/dim]"
        )


def _cell(value: Any) -> str:
    if value is None:
        return "[dim]null[/dim]"
    return escape(_truncate(str(value), MAX_CELL_WIDTH))


def _truncate(s: str, max_len: int) -> str:
    """Truncate string with ellipsis."""
    if len(s) <= max_len:
        return s
    return s[: max_len - 3] + "..."


def render_environments(
    names: list[str],
    current: str,
    default: str,
    probes: dict[str, ProbeResult] | None = None,
    console: Console | None = None,
) -> None:
    """Print the registered environments, marking the active and default ones."""
    if console is None:
        console = Console()

    table = Table(title="Environments", show_header=True, header_style="bold")
    table.add_column("Name", style="cyan")
    table.add_column("Active", justify="center")
    table.add_column("Default", justify="center")
    if probes is not None:
        table.add_column("Health", justify="center")
        table.add_column("Latency", justify="right")
        table.add_column("Error", overflow="fold")

    for name in names:
        row = [
            name,
            ICON_SUCCESS if name == current else "",
            "•" if name == default else "",
        ]
        if probes is not None:
            probe = probes[name]
            row.extend([
                ICON_SUCCESS if probe.healthy else ICON_ERROR,
                f"{probe.latency_ms:.1f}ms",
                escape(probe.error or ""),
            ])
        table.add_row(*row)

    console.print(table)
