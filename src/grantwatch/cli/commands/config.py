"""
Configuration commands.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.syntax import Syntax

from grantwatch.core.config import AppConfig, validate_config_file
from grantwatch.core.config.loader import PASSWORD_ENV, USERNAME_ENV

from .scrape import load_config_or_exit

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Inspect and validate configuration",
    no_args_is_help=True,
)


def effective_config(config: AppConfig) -> dict:
    """Config as plain data, with credentials masked."""
    data = config.model_dump(mode="json", exclude={"credentials"})
    if config.credentials is None:
        data["credentials"] = None
    else:
        data["credentials"] = {
            "username": config.credentials.masked_username,
            "password": "********",
        }
    return data


@app.command("show")
def show(
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file (default: configs/grantwatch.yaml if present)",
    ),
) -> None:
    """Print the effective configuration and check credentials."""
    config = load_config_or_exit(config_path)

    rendered = yaml.safe_dump(effective_config(config), sort_keys=False, allow_unicode=True)
    console.print(Syntax(rendered, "yaml", theme="ansi_dark", background_color="default"))

    if config.credentials is None:
        err_console.print(f"[red]Credentials missing:[/red] set {USERNAME_ENV} and {PASSWORD_ENV}")
        raise typer.Exit(1)

    console.print(f"[green]Credentials found for {config.credentials.masked_username}[/green]")


@app.command("validate")
def validate(
    path: Path = typer.Argument(..., help="Configuration file to validate"),
) -> None:
    """Validate a configuration file."""
    errors = validate_config_file(path)

    if errors:
        err_console.print(f"[red]Invalid configuration:[/red] {path}")
        for error in errors:
            err_console.print(f"  - {error}")
        raise typer.Exit(1)

    console.print(f"[green]OK - {path} is valid[/green]")
