"""CLI commands for daxbridge."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any

import typer
import yaml
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from daxbridge.errors import DaxBridgeError

app = typer.Typer(
    name="daxbridge",
    help="Find Power BI Desktop's local engine and run DAX queries against it.",
)
console = Console()


def _load_config(config: str | None):
    from daxbridge.config.schema import DaxBridgeConfig, default_config_path

    config_path = Path(config) if config else default_config_path()
    try:
        return DaxBridgeConfig.load(config_path)
    except (ValidationError, yaml.YAMLError) as e:
        console.print(f"[red]Invalid config {escape(str(config_path))}: {escape(str(e))}[/]")
        raise typer.Exit(code=1)


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def _connect(config: str | None, verbose: bool):
    from daxbridge.connectors.dax_connector import DaxConnector

    cfg = _load_config(config)
    _configure_logging("DEBUG" if verbose else cfg.logging.level)
    return DaxConnector.from_config(cfg)


def _run(coro_factory) -> Any:
    """Run a connector coroutine, turning daxbridge errors into a clean exit."""
    try:
        return asyncio.run(coro_factory())
    except DaxBridgeError as e:
        console.print(f"[red]{type(e).__name__}: {escape(str(e))}[/]")
        raise typer.Exit(code=1)


def _print_result(result, max_rows: int) -> None:
    if not result.columns:
        console.print("[dim]No data returned.[/]")
        return

    table = Table(*(escape(c) for c in result.columns))
    for row in result.rows[:max_rows]:
        table.add_row(*(escape(value) for _, value in row))
    console.print(table)
    if len(result) > max_rows:
        console.print(f"[dim]Showing {max_rows} of {len(result)} rows.[/]")
    else:
        console.print(f"[dim]{len(result)} rows.[/]")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def init(config: str = typer.Option(None, "-c", "--config", help="Path to config file.")):
    """Write a default configuration file."""
    from daxbridge.config.schema import DaxBridgeConfig, default_config_path

    config_path = Path(config) if config else default_config_path()

    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/]")
        overwrite = typer.confirm("Overwrite?", default=False)
        if not overwrite:
            console.print("[dim]Keeping existing config.[/]")
            return

    DaxBridgeConfig().save(config_path)
    console.print(f"[green]Created config at {config_path}[/]")


@app.command()
def status(config: str = typer.Option(None, "-c", "--config", help="Path to config file.")):
    """Show configuration in effect."""
    from daxbridge.config.schema import default_config_path

    config_path = Path(config) if config else default_config_path()
    cfg = _load_config(config)

    console.print("[bold]daxbridge status[/]\n")
    console.print(f"  Config: {config_path} ({'exists' if config_path.exists() else 'not found'})")
    console.print(f"  Engine process: {cfg.engine.process_name}")
    console.print(f"  Port discovery: {cfg.discovery.strategy}")
    console.print(f"  Data source: {cfg.connection.data_source}")


@app.command()
def discover(
    config: str = typer.Option(None, "-c", "--config", help="Path to config file."),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging."),
):
    """Locate the engine process and print its connection string."""
    try:
        conn = _connect(config, verbose)
    except DaxBridgeError as e:
        console.print(f"[red]{type(e).__name__}: {escape(str(e))}[/]")
        raise typer.Exit(code=1)

    console.print(f"  Process: {conn.process.name} (pid {conn.process.pid})")
    console.print(f"  Port: {conn.port}")
    console.print(f"  Connection string: [bold]{escape(conn.connection_string)}[/]")


@app.command()
def query(
    text: str = typer.Option(None, "-q", "--query", help="DAX query text."),
    file: Path = typer.Option(None, "-f", "--file", help="Read the query from a file."),
    max_rows: int = typer.Option(100, "--max-rows", help="Rows to display."),
    config: str = typer.Option(None, "-c", "--config", help="Path to config file."),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging."),
):
    """Run a DAX query and print the rows."""
    if file is not None:
        text = file.read_text()
    if not text:
        console.print("[red]Provide a query with --query or --file.[/]")
        raise typer.Exit(code=2)

    def _go():
        return _connect(config, verbose).execute("query", query=text)

    _print_result(_run(_go), max_rows)


@app.command()
def scalar(
    text: str = typer.Argument(..., help="DAX query text."),
    config: str = typer.Option(None, "-c", "--config", help="Path to config file."),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging."),
):
    """Run a query in single-value mode (not supported by Power BI Desktop)."""
    value = _run(lambda: _connect(config, verbose).execute("query_scalar", query=text))
    console.print(escape(value))


@app.command()
def evaluate(
    expression: str = typer.Argument(..., help="Measure expression, e.g. SUM(fact[Value])."),
    config: str = typer.Option(None, "-c", "--config", help="Path to config file."),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging."),
):
    """Evaluate a measure expression and print its value."""
    value = _run(lambda: _connect(config, verbose).execute("evaluate_measure", expression=expression))
    console.print(escape(value))


@app.command()
def measures(
    show_expressions: bool = typer.Option(False, "-e", "--expressions", help="Print DAX expressions."),
    config: str = typer.Option(None, "-c", "--config", help="Path to config file."),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging."),
):
    """List every measure in the open model, grouped by table."""
    by_table = _run(lambda: _connect(config, verbose).execute("measures"))

    table = Table("Table", "Measure", *(["Expression"] if show_expressions else []))
    for table_name, defs in by_table.items():
        for m in defs:
            cells = [table_name, m.name] + ([m.expression] if show_expressions else [])
            table.add_row(*(escape(c) for c in cells))
    console.print(table)
    console.print(f"[dim]{sum(len(d) for d in by_table.values())} measures in {len(by_table)} tables.[/]")


if __name__ == "__main__":
    app()
