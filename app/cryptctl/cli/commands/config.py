"""Config command implementation.

Shows the effective configuration or writes a default config file.
"""

import json
from pathlib import Path
from typing import Annotated

import typer

from cryptctl.cli.types import exit_with_error, get_config
from cryptctl.core.config import CryptctlConfig, save_config
from cryptctl.core.errors import ConfigError
from cryptctl.core.paths import get_config_path
from cryptctl.utils.formatting import console, print_info, print_success, print_warning

app = typer.Typer(
    help="Show or initialize the cryptctl configuration.",
    no_args_is_help=True,
)


@app.command()
def show(ctx: typer.Context) -> None:
    """Show the effective configuration."""
    config = get_config(ctx)
    path = get_config_path()
    if path.exists():
        print_info(f"Config file: {path}")
    else:
        print_info(f"No config file at {path}, using defaults")
    console.print_json(json.dumps(config.model_dump(mode="json")))


@app.command()
def init(
    path: Annotated[
        Path | None,
        typer.Option(
            "--path",
            "-p",
            help="Write to this file instead of the default location.",
        ),
    ] = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            help="Overwrite an existing config file.",
        ),
    ] = False,
) -> None:
    """Write a config file with default settings."""
    target = path or get_config_path()
    if target.exists() and not force:
        print_warning(f"Config file already exists: {target} (use --force to overwrite)")
        raise typer.Exit(code=1)

    try:
        written = save_config(CryptctlConfig(), path)
    except ConfigError as e:
        exit_with_error(e)
    print_success(f"Config written to {written}")
