"""Main CLI application entry point.

Defines the Typer application and global options.
"""

import logging
from typing import Annotated

import typer

from cryptctl import __version__
from cryptctl.cli.commands import config, create, listing, mount, password, resize, unmount
from cryptctl.core.config import load_config
from cryptctl.core.errors import ConfigError
from cryptctl.utils.formatting import print_error
from cryptctl.utils.log import level_for, setup_logging

logger = logging.getLogger(__name__)

# Create main Typer app
app = typer.Typer(
    name="cryptctl",
    help="Manage LUKS-encrypted container files.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"cryptctl version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress non-essential output.",
        ),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option(
            "--debug",
            help="Log every external command (secrets redacted).",
        ),
    ] = False,
) -> None:
    """cryptctl - Manage LUKS-encrypted container files.

    Create, mount, list, resize and re-key encrypted containers backed
    by regular files. State is always read from the running system.
    """
    setup_logging(level_for(verbose=verbose, quiet=quiet, debug=debug), show_path=debug)

    try:
        settings = load_config()
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    # Store options in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["config"] = settings
    logger.debug("Loaded configuration: %s", settings)


# Register commands
app.command(name="create")(create.create_container)
app.command(name="mount")(mount.mount_container)
app.command(name="unmount")(unmount.unmount_container)
app.command(name="list")(listing.list_containers)
app.command(name="resize")(resize.resize_container)
app.command(name="password")(password.change_password)
app.add_typer(config.app, name="config")


if __name__ == "__main__":
    app()
