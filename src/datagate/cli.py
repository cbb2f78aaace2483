"""
CLI entry point for datagate.

This module provides the Typer-based command-line interface for datagate.

Commands:
    query         Run a guarded, bounded read-only query
    analyze       Run a query and evaluate analysis code over its rows
    envs          List configured environments (optionally probing each)
    probe         Check that one environment accepts connections
    check-query   Classify a query with the Query Guard, without a database
    check-code    Classify analysis code with the Code Guard, without a database
    call          Invoke a tool by name with JSON arguments

Environments come from --config (a YAML file, also read from DATAGATE_CONFIG)
or, when no file is given, from DATABASE_URL / <NAME>_DATABASE_URL variables.

Architecture Note:
    The CLI is intentionally thin - it parses arguments and delegates to the
    engine and tool registry. Everything it does is available programmatically.
"""

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Iterator, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from datagate import __version__
from datagate.engine import ExecutionEngine
from datagate.errors import ConfigError, UnknownEnvironmentError
from datagate.guards import CodeGuard, QueryGuard
from datagate.report import render_environments, render_result, result_to_dict
from datagate.report.envelope import dumps, format_probe_text
from datagate.schema import (
    DEFAULT_ANALYSIS_CAP,
    DEFAULT_QUERY_CAP,
    GuardVerdict,
    load_config,
    load_config_from_env,
)
from datagate.store import EnvironmentRegistry
from datagate.tools import ToolContext, build_default_registry

# Initialize Typer app with metadata
app = typer.Typer(
    name="datagate",
    help="Run guarded, read-only queries and analysis against configured databases.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich console for formatted output
console = Console()
err_console = Console(stderr=True)


# =============================================================================
# Shared Options
# =============================================================================

ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help="Path to an environments YAML file. Defaults to *_DATABASE_URL variables.",
        envvar="DATAGATE_CONFIG",
        exists=True,
        readable=True,
        resolve_path=True,
    ),
]
EnvOption = Annotated[
    Optional[str],
    typer.Option("--env", "-e", help="Environment to run against (default: the active one)."),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output results in JSON format."),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", help="Enable debug logging."),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]datagate[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    datagate - Guarded query and analysis execution.

    Every query must be read-only and carry a LIMIT; analysis code is checked
    against a denylist before it runs over the returned rows.
    """
    pass


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@contextmanager
def _open_registry(config_path: Path | None, json_output: bool) -> Iterator[EnvironmentRegistry]:
    """Load configuration and yield an environment registry, closing it afterwards."""
    try:
        config = load_config(config_path) if config_path else load_config_from_env()
    except ConfigError as e:
        _fail("config_error", str(e), json_output)

    with EnvironmentRegistry(config) as registry:
        yield registry


def _fail(error_type: str, message: str, json_output: bool) -> None:
    if json_output:
        _output_json_error(error_type, message)
    else:
        err_console.print(f"[red]{escape(message)}[/red]")
    raise typer.Exit(code=1)


def _output_json_error(error_type: str, message: str) -> None:
    """Output an error in JSON format."""
    output = {
        "error": True,
        "error_type": error_type,
        "message": message,
    }
    print(json.dumps(output, indent=2))


def _read_code(code: str | None, code_file: Path | None) -> str:
    if code_file is not None:
        return code_file.read_text()
    if code is None:
        err_console.print("[red]Provide analysis code as an argument or with --file[/red]")
        raise typer.Exit(code=2)
    return code


# =============================================================================
# Query Commands
# =============================================================================


@app.command()
def query(
    sql: Annotated[str, typer.Argument(help="SQL text (SELECT, WITH or EXPLAIN, with a LIMIT).")],
    limit: Annotated[
        int,
        typer.Option("--limit", "-l", help="Maximum rows to return."),
    ] = DEFAULT_QUERY_CAP,
    config_path: ConfigOption = None,
    environment: EnvOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
) -> None:
    """
    Run a guarded, read-only query.

    Example:
        $ datagate query "select * from users limit 10" --env dev
    """
    _configure_logging(verbose)

    with _open_registry(config_path, json_output) as registry:
        result = ExecutionEngine(registry).run_query(sql, cap=limit, environment=environment)

    if json_output:
        print(dumps(result_to_dict(result)))
    else:
        render_result(result, console)

    raise typer.Exit(code=0 if result.success else 1)


@app.command()
def analyze(
    sql: Annotated[str, typer.Argument(help="SQL text whose rows are analyzed.")],
    code: Annotated[
        Optional[str],
        typer.Argument(help="Python expression or function body over `data` and `pd`."),
    ] = None,
    code_file: Annotated[
        Optional[Path],
        typer.Option(
            "--file",
            "-f",
            help="Read the analysis code from a file instead.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-l", help="Maximum rows to analyze."),
    ] = DEFAULT_ANALYSIS_CAP,
    config_path: ConfigOption = None,
    environment: EnvOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
) -> None:
    """
    Run a query and evaluate analysis code over the returned rows.

    The rows are available as `data` (a list of dicts) and pandas as `pd`.

    Example:
        $ datagate analyze "select * from orders limit 500" "pd.DataFrame(data)['total'].sum()"
    """
    _configure_logging(verbose)
    analysis_code = _read_code(code, code_file)

    with _open_registry(config_path, json_output) as registry:
        result = ExecutionEngine(registry).run_analysis(
            sql, analysis_code, cap=limit, environment=environment
        )

    if json_output:
        print(dumps(result_to_dict(result)))
    else:
        render_result(result, console)

    raise typer.Exit(code=0 if result.success else 1)


# =============================================================================
# Environment Commands
# =============================================================================


@app.command()
def envs(
    probe_all: Annotated[
        bool,
        typer.Option("--probe", help="Run a liveness check against every environment."),
    ] = False,
    config_path: ConfigOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
) -> None:
    """
    List configured environments.

    Example:
        $ datagate envs --probe
    """
    _configure_logging(verbose)

    with _open_registry(config_path, json_output) as registry:
        names = registry.names()
        probes = {name: registry.probe(name) for name in names} if probe_all else None

        if json_output:
            output = {
                "environments": names,
                "current": registry.current(),
                "default": registry.default,
            }
            if probes is not None:
                output["probes"] = {name: result_to_dict(p) for name, p in probes.items()}
            print(dumps(output))
        else:
            render_environments(names, registry.current(), registry.default, probes, console)

    if probes is not None and not all(p.healthy for p in probes.values()):
        raise typer.Exit(code=1)


@app.command()
def probe(
    name: Annotated[
        Optional[str],
        typer.Argument(help="Environment to probe (default: the active one)."),
    ] = None,
    config_path: ConfigOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
) -> None:
    """
    Check that an environment accepts connections.

    Example:
        $ datagate probe prod
    """
    _configure_logging(verbose)

    with _open_registry(config_path, json_output) as registry:
        try:
            result = registry.probe(name)
        except UnknownEnvironmentError as e:
            _fail("unknown_environment", str(e), json_output)

    if json_output:
        print(dumps(result_to_dict(result)))
    else:
        style = "green" if result.healthy else "red"
        console.print(f"[{style}]{format_probe_text(result)}[/{style}]")

    raise typer.Exit(code=0 if result.healthy else 1)


# =============================================================================
# Guard Commands
# =============================================================================


def _report_verdict(verdict: GuardVerdict, json_output: bool) -> None:
    if json_output:
        print(dumps(verdict.model_dump(mode="json")))
    elif verdict.accepted:
        console.print("[green]✓ accepted[/green]")
    else:
        rejection = verdict.to_error()
        console.print(f"[yellow]⊘ {escape(rejection.message)}[/yellow]")
        if rejection.suggestion:
            console.print(f"  [dim]Suggestion: {escape(rejection.suggestion)}[/dim]")

    raise typer.Exit(code=0 if verdict.accepted else 1)


@app.command("check-query")
def check_query(
    sql: Annotated[str, typer.Argument(help="SQL text to classify.")],
    limit: Annotated[
        int,
        typer.Option("--limit", "-l", help="Row cap to check against the hard ceiling."),
    ] = DEFAULT_QUERY_CAP,
    json_output: JsonOption = False,
) -> None:
    """
    Classify a query without touching a database.

    Exits 0 when the query would be accepted, 1 when rejected.
    """
    guard = QueryGuard()
    verdict = guard.classify(sql)
    if verdict.accepted:
        verdict = guard.check_cap(limit)
    _report_verdict(verdict, json_output)


@app.command("check-code")
def check_code(
    code: Annotated[
        Optional[str],
        typer.Argument(help="Analysis code to classify."),
    ] = None,
    code_file: Annotated[
        Optional[Path],
        typer.Option(
            "--file",
            "-f",
            help="Read the analysis code from a file instead.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """
    Classify analysis code without running it.

    Exits 0 when the code would be accepted, 1 when rejected.
    """
    verdict = CodeGuard().classify(_read_code(code, code_file))
    _report_verdict(verdict, json_output)


# =============================================================================
# Tool Commands
# =============================================================================


@app.command()
def call(
    tool: Annotated[
        Optional[str],
        typer.Argument(help="Tool name, e.g. query or setEnvironment."),
    ] = None,
    arguments: Annotated[
        str,
        typer.Argument(help="Tool arguments as a JSON object."),
    ] = "{}",
    list_tools: Annotated[
        bool,
        typer.Option("--list", help="Describe the available tools and exit."),
    ] = False,
    config_path: ConfigOption = None,
    verbose: VerboseOption = False,
) -> None:
    """
    Invoke a tool by name and print its content envelope as JSON.

    Example:
        $ datagate call query '{"query": "select 1 as one limit 1", "limit": 1}'
    """
    _configure_logging(verbose)
    tools = build_default_registry()

    if list_tools or tool is None:
        print(dumps(tools.describe()))
        raise typer.Exit()

    try:
        parsed = json.loads(arguments)
    except json.JSONDecodeError as e:
        _fail("invalid_arguments", f"Arguments are not valid JSON: {e}", json_output=True)
    if not isinstance(parsed, dict):
        _fail("invalid_arguments", "Arguments must be a JSON object", json_output=True)

    with _open_registry(config_path, json_output=True) as registry:
        context = ToolContext(engine=ExecutionEngine(registry), registry=registry)
        envelope = tools.call(tool, parsed, context)

    print(dumps(envelope))


if __name__ == "__main__":
    app()
