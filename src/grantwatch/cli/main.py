"""
GrantWatch CLI - Main entry point.

Runs funding portal scrapes from the terminal, inspects configuration
and sets up a working directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.traceback import install as install_rich_traceback

from grantwatch import __app_name__, __version__

# Load IDOX_USERNAME / IDOX_PASSWORD from .env (if present)
load_dotenv()

# Install rich traceback for better error display
install_rich_traceback(show_locals=False, width=120)

console = Console()

# Create main app
app = typer.Typer(
    name=__app_name__,
    help="Funding opportunity scraper for the Idox Open4Community portal",
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """GrantWatch - Funding opportunity scraper."""
    pass


# =============================================================================
# Import and register subcommand modules
# =============================================================================

from .commands import config, scrape  # noqa: E402

app.add_typer(scrape.app, name="scrape", help="Run scrape jobs")
app.add_typer(config.app, name="config", help="Inspect and validate configuration")


# =============================================================================
# Init Command
# =============================================================================


DEFAULT_CONFIG_TEMPLATE = """\
# GrantWatch Configuration
# Credentials are read from IDOX_USERNAME / IDOX_PASSWORD (or .env), never from here.

portal:
  name: idox_bca
  base_url: ${IDOX_BASE_URL:-https://funding.idoxopen4community.co.uk}
  entry_path: /bca

pagination:
  hard_cap: 60

playwright:
  browser: chromium
  headless: true
  screenshots_on_error: false
  screenshots_path: snapshots

logging:
  level: INFO
  file: logs/grantwatch.log
  json_format: true
  rich_console: true
"""

ENV_TEMPLATE = "IDOX_USERNAME=\nIDOX_PASSWORD=\n"


@app.command()
def init(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite an existing configuration file",
    ),
) -> None:
    """Create the default configuration, a .env template and working directories."""
    created = []

    for directory in (Path("configs"), Path("logs"), Path("snapshots")):
        if not directory.exists():
            directory.mkdir(parents=True)
            created.append(f"{directory}/")

    config_path = Path("configs/grantwatch.yaml")
    if force or not config_path.exists():
        config_path.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
        created.append(str(config_path))

    # Never overwrite real credentials
    env_path = Path(".env")
    if not env_path.exists():
        env_path.write_text(ENV_TEMPLATE, encoding="utf-8")
        created.append(str(env_path))

    if not created:
        console.print("[dim]Nothing to do, already initialized.[/dim]")
        return

    console.print(Panel.fit(
        "[bold green]OK - GrantWatch initialized[/bold green]\n\n"
        "Created:\n"
        + "".join(f"  - [cyan]{item}[/cyan]\n" for item in created)
        + "\nNext steps:\n"
        "  1. Fill in [yellow]IDOX_USERNAME[/yellow] and [yellow]IDOX_PASSWORD[/yellow] in .env\n"
        "  2. Check them: [yellow]grantwatch config show[/yellow]\n"
        "  3. Run a scrape: [yellow]grantwatch scrape run --enrich[/yellow]",
        title="[bold]Initialization Complete[/bold]",
        border_style="green",
    ))


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    run()
