"""Typer-based CLI for metadatafy."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from .analyzer import ProjectAnalyzer
from .config import CONFIG_FILENAME, IndexerConfig, find_config, load_config, render_default_config
from .errors import ConfigurationError
from .models import ROLES, AnalysisReport
from .output import ApiSender, FileWriter

console = Console()

app = typer.Typer(
    help="Index a TypeScript/JavaScript project into searchable code metadata.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

MAX_ERRORS_SHOWN = 5


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"metadatafy v{__version__}")
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
    """metadatafy: classify files, extract imports/exports/props and link them into an index."""
    pass


def _setup_logging(verbose: bool) -> None:
    package_logger = logging.getLogger("metadatafy")
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
        package_logger.addHandler(RichHandler(console=console, show_path=False, markup=False))


def _print_summary(report: AnalysisReport) -> None:
    table = Table(title=f"📦 {escape(report.project_id)}", title_style="bold cyan")
    table.add_column("Type", style="cyan")
    table.add_column("Files", justify="right")
    for role in ROLES:
        table.add_row(role, str(report.stats.by_role.get(role, 0)))
    table.add_row("[bold]total[/bold]", f"[bold]{len(report.items)}[/bold]")
    console.print(table)
    console.print(f"Indexed {report.stats.total_files} files.")

    errors = report.stats.parse_errors
    if errors:
        console.print(f"[yellow]⚠ {len(errors)} file(s) could not be parsed:[/yellow]")
        for message in errors[:MAX_ERRORS_SHOWN]:
            console.print(f"  [yellow]- {escape(message)}[/yellow]", highlight=False)
        if len(errors) > MAX_ERRORS_SHOWN:
            console.print(f"  ... and {len(errors) - MAX_ERRORS_SHOWN} more")


@app.command("analyze")
def analyze(
    root: Path = typer.Argument(Path("."), exists=True, file_okay=False, help="Project root to analyze."),
    project_id: Optional[str] = typer.Option(None, "--project-id", "-p", help="Project id stamped on every record."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Where to write the JSON report."),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help=f"Config file (default: {CONFIG_FILENAME} in ROOT)."),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Parallel parse workers."),
    verbose: bool = typer.Option(False, "--verbose", help="Log classification details."),
):
    """Analyze a project and write its metadata report."""
    _setup_logging(verbose)
    root = root.resolve()

    if config_path is not None and not config_path.exists():
        raise typer.BadParameter(f"Config file not found: {config_path}", param_hint="--config")
    source = config_path or find_config(root)

    try:
        cfg = load_config(source) if source is not None else IndexerConfig()
    except ConfigurationError as exc:
        console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    if project_id:
        cfg.project_id = project_id
    if workers is not None:
        cfg.workers = workers
    if output is not None:
        cfg.output.file.enabled = True
        cfg.output.file.path = str(output.resolve())
    if cfg.verbose and not verbose:
        _setup_logging(True)
    cfg.verbose = cfg.verbose or verbose

    analyzer = ProjectAnalyzer(cfg, config_source=str(source) if source else None)
    try:
        report = analyzer.analyze(root)
    except ConfigurationError as exc:
        console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    _print_summary(report)

    if cfg.output.file.enabled:
        out_path = Path(cfg.output.file.path)
        if not out_path.is_absolute():
            out_path = root / out_path
        written = FileWriter(out_path).write(report)
        console.print(f"[green]✓[/green] Report written to {written}")

    if cfg.output.api.enabled:
        result = ApiSender(cfg.output.api).send(report)
        if result.success:
            console.print(f"[green]✓[/green] Uploaded to {cfg.output.api.endpoint}")
        else:
            status = f"HTTP {result.status}" if result.status else "no response"
            console.print(f"[red]✗ Upload failed ({status}):[/red] {escape(result.message)}")
            raise typer.Exit(code=1)


@app.command("init")
def init(
    root: Path = typer.Argument(Path("."), exists=True, file_okay=False, help="Project root."),
    project_id: Optional[str] = typer.Option(None, "--project-id", "-p", help="Project id (default: folder name)."),
):
    """Write a starter metadatafy.toml."""
    root = root.resolve()
    target = root / CONFIG_FILENAME
    if target.exists():
        console.print(f"[yellow]{CONFIG_FILENAME} already exists; leaving it untouched.[/yellow]")
        raise typer.Exit(code=1)

    target.write_text(render_default_config(project_id or root.name), encoding="utf-8")
    console.print(f"[green]✓[/green] Created {target}")
