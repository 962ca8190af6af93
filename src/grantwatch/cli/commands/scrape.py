"""
Scrape commands for running portal scrapes.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import orjson
import typer
from rich.console import Console
from rich.table import Table

from grantwatch.core.config import AppConfig, load_app_config
from grantwatch.core.errors import ConfigurationError, ScrapeError
from grantwatch.core.logging import setup_logging
from grantwatch.core.models import ScrapeOptions, ScrapeResult
from grantwatch.core.orchestrator import (
    EventKind,
    ProgressEvent,
    encode_event,
    run_scrape_streaming,
    stream_scrape,
)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Run scrape jobs",
    no_args_is_help=True,
)


def load_config_or_exit(config_path: Optional[Path]) -> AppConfig:
    """Load configuration, printing the problem and exiting on failure."""
    try:
        return load_app_config(config_path)
    except ConfigurationError as e:
        err_console.print(f"[red]Error loading config:[/red] {e.message}")
        if e.details:
            err_console.print(f"[dim]{e.details}[/dim]")
        raise typer.Exit(1)


def _setup_logging(config: AppConfig) -> None:
    secrets = [config.credentials.password.get_secret_value()] if config.credentials else []
    setup_logging(
        level=config.logging.level,
        log_file=config.logging.file,
        json_format=config.logging.json_format,
        rich_console=config.logging.rich_console,
        secrets=secrets,
    )


@app.command("run")
def run_scrape(
    enrich: bool = typer.Option(
        False,
        "--enrich",
        "-e",
        help="Visit each grant's detail page for long-form fields",
    ),
    stream: bool = typer.Option(
        False,
        "--stream",
        "-s",
        help="Print progress events as JSON lines",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the full result as JSON to this file",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file (default: configs/grantwatch.yaml if present)",
    ),
) -> None:
    """Scrape the funding portal.

    Examples:
        grantwatch scrape run
        grantwatch scrape run --enrich --output grants.json
        grantwatch scrape run --stream
    """
    config = load_config_or_exit(config_path)
    _setup_logging(config)
    options = ScrapeOptions(enrich=enrich)

    if stream:
        ok = asyncio.run(_print_stream(config, options))
        if not ok:
            raise typer.Exit(1)
        return

    result = _run_with_progress(config, options)

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(orjson.dumps(result.to_dict(), option=orjson.OPT_INDENT_2))
        console.print(f"[green]Wrote {result.total_found} grants to {output}[/green]")
    else:
        _show_records(result)

    _show_summary(result)


async def _print_stream(config: AppConfig, options: ScrapeOptions) -> bool:
    """Print wire events. Returns False if the stream ended in an error."""
    ok = True
    async for wire_event in stream_scrape(config, options):
        typer.echo(encode_event(wire_event))
        if wire_event["event"] == "error":
            ok = False
    return ok


def _run_with_progress(config: AppConfig, options: ScrapeOptions) -> ScrapeResult:
    """Run a blocking scrape behind a spinner fed by phase events."""
    from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=err_console,
        transient=True,
    ) as progress:
        task = progress.add_task("[cyan]Starting...[/cyan]", total=None)

        def on_progress(event: ProgressEvent) -> None:
            if event.kind in (EventKind.PHASE, EventKind.PROGRESS):
                description = event.payload.get("message") or (
                    f"Enriching {event.payload['current']}/{event.payload['total']}: "
                    f"{event.payload['title']}"
                )
                progress.update(task, description=f"[cyan]{description}[/cyan]")
            elif event.kind is EventKind.PAGE:
                progress.update(
                    task,
                    description=f"[cyan]Page {event.payload['page']}: "
                    f"{event.payload['totalSoFar']} grants so far[/cyan]",
                )

        try:
            return asyncio.run(run_scrape_streaming(config, options, on_progress))
        except ScrapeError as e:
            progress.stop()
            err_console.print(f"[red]{e.kind}:[/red] {e.message}")
            raise typer.Exit(1)


def _show_records(result: ScrapeResult) -> None:
    """Display found grants as a table."""
    if not result.records:
        console.print("[dim]No grants found.[/dim]")
        return

    table = Table(title="Grants", show_header=True, header_style="bold magenta")
    table.add_column("Title", style="cyan", max_width=50)
    table.add_column("Funder", max_width=30)
    table.add_column("Max Amount", justify="right")
    table.add_column("Deadline")
    table.add_column("Status")

    for record in result.records:
        table.add_row(
            record.title,
            record.funder,
            record.max_amount,
            record.deadline,
            record.status,
        )

    console.print(table)


def _show_summary(result: ScrapeResult) -> None:
    """Show scrape summary."""
    table = Table(title="Scrape Summary", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Grants found", str(result.total_found))
    table.add_row("Enriched", "yes" if result.enriched else "no")
    if result.enriched:
        table.add_row("With details", str(sum(1 for record in result.records if record.is_enriched)))
    table.add_row("Duration", f"{result.duration_ms / 1000:.1f}s")
    table.add_row("Timestamp", result.timestamp)

    console.print(table)
