"""Typer-based CLI for nixsize closure size attribution."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__, config
from .attribution import get_policy
from .config_manager import load_config, set_value
from .errors import NixSizeError
from .graph_export import export_csv, export_dot, format_size, short_names
from .pipeline import analyze
from .report import Report, SortKey, SortOrder
from .store_query import NixStoreQuery, load_records_json

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="📦 nixsize — attribute Nix closure storage cost to individual store paths.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    help="⚙️  Configuration — report and analysis defaults.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
app.add_typer(config_app, name="config")


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"nixsize v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    )
):
    """nixsize: find out which store paths make a closure big."""
    pass


def _configure_logging(verbose: bool) -> None:
    package_logger = logging.getLogger("nixsize_cli")
    package_logger.handlers.clear()
    package_logger.addHandler(RichHandler(console=err_console, show_path=False))
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def _print_preview(report: Report, top: int) -> None:
    rows = report.top(top)
    if not rows:
        return
    names = short_names(row.node_id for row in report)
    table = Table(title=f"Top {len(rows)} by {report.sort_key.value}")
    table.add_column("Store path", style="cyan", overflow="fold")
    table.add_column("Exclusive", justify="right")
    table.add_column("Closure", justify="right")
    table.add_column("Shared", justify="right", style="bold")
    for row in rows:
        table.add_row(
            names[row.node_id],
            format_size(row.exclusive_size),
            format_size(row.closure_size),
            format_size(row.shared_size),
        )
    console.print(table)


@app.command("analyze")
def analyze_command(
    target: str = typer.Argument(..., help="Store path or build result link to analyze."),
    from_json: Optional[Path] = typer.Option(
        None, "--from-json", "-j", dir_okay=False,
        help="Read a JSON snapshot (e.g. from 'nix path-info --json --recursive') instead of querying the store.",
    ),
    output_dir: Path = typer.Option(Path("."), "--output-dir", "-o", file_okay=False, help="Directory for report files."),
    write_csv: bool = typer.Option(True, "--csv/--no-csv", help="Write the ranked CSV report."),
    write_dot: bool = typer.Option(True, "--dot/--no-dot", help="Write a Graphviz DOT graph."),
    csv_file: Optional[Path] = typer.Option(
        None, "--csv-file", "-c", dir_okay=False, help="Write the CSV report to this file instead of the output directory.",
    ),
    dot_file: Optional[Path] = typer.Option(
        None, "--dot-file", "-d", dir_okay=False, help="Write the DOT graph to this file instead of the output directory.",
    ),
    sort_by: Optional[str] = typer.Option(None, "--sort-by", "-s", help="exclusive_size, closure_size, shared_size or id."),
    order: Optional[str] = typer.Option(None, "--order", help="ascending or descending."),
    policy: Optional[str] = typer.Option(None, "--policy", "-p", help="Shared size apportionment: equal or proportional."),
    top: Optional[int] = typer.Option(None, "--top", "-n", min=0, help="Rows to show in the preview table."),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
):
    """Attribute the storage of TARGET's closure and export the report."""
    _configure_logging(verbose)
    settings = load_config()
    report_cfg, analysis_cfg = settings["report"], settings["analysis"]

    try:
        sort_key = SortKey.parse(sort_by or report_cfg["sort_by"])
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--sort-by")
    try:
        sort_order = SortOrder.parse(order or report_cfg["order"])
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--order")
    policy_name = policy or analysis_cfg["policy"]
    try:
        get_policy(policy_name)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--policy")

    try:
        if from_json is not None:
            records = load_records_json(from_json)
        else:
            query = NixStoreQuery(analysis_cfg["nix_store"], timeout=analysis_cfg["timeout"] or None)
            records = query.records(target)
        result = analyze(records, sort_key, sort_order, policy_name)
    except NixSizeError as exc:
        logger.debug("Analysis of %s failed", target, exc_info=True)
        err_console.print(f"Error [{exc.kind}]: {exc}", markup=False, style="bold red", soft_wrap=True)
        raise typer.Exit(code=1)

    if csv_file is not None or write_csv:
        csv_path = csv_file or output_dir / config.CSV_FILE_NAME
        csv_path.parent.mkdir(parents=True, exist_ok=True)
        export_csv(result.report, csv_path, precision=report_cfg["precision"])
        typer.echo(f"Wrote CSV report to {csv_path}")
    if dot_file is not None or write_dot:
        dot_path = dot_file or output_dir / config.DOT_FILE_NAME
        dot_path.parent.mkdir(parents=True, exist_ok=True)
        export_dot(result.report, result.graph, dot_path)
        typer.echo(f"Wrote DOT graph to {dot_path}")

    _print_preview(result.report, report_cfg["top"] if top is None else top)
    typer.echo(f"Store paths: {len(result.report)}")
    typer.echo(f"Total bytes calculated for this store path: {result.report.total_exclusive_size}")


@config_app.command("show")
def config_show():
    """Show effective settings."""
    settings = load_config()
    table = Table(title=f"Settings ({config.CONFIG_FILE})")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for section, values in settings.items():
        for key, value in values.items():
            table.add_row(f"{section}.{key}", str(value))
    console.print(table)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Setting name, e.g. report.sort_by"),
    value: str = typer.Argument(..., help="New value."),
):
    """Persist a default setting to config.toml."""
    try:
        stored = set_value(key, value)
    except KeyError:
        raise typer.BadParameter(f"Unknown setting '{key}'", param_hint="KEY")
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="VALUE")
    typer.echo(f"Set {key} = {stored}")
