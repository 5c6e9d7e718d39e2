"""Create command implementation.

Creates a new LUKS container file with a filesystem inside.
"""

from typing import Annotated

import typer

from cryptctl.cli.auth import obtain_auth
from cryptctl.cli.types import check_dependencies, exit_with_error, get_config, get_manager
from cryptctl.core.errors import CryptctlError
from cryptctl.utils.formatting import format_size, parse_size, print_error, print_info, print_success
from cryptctl.utils.system import require_root


def create_container(
    ctx: typer.Context,
    path: Annotated[
        str,
        typer.Argument(help="Path of the container file to create."),
    ],
    size: Annotated[
        str,
        typer.Option(
            "--size",
            "-s",
            help="Container size (e.g. 500M, 10G).",
        ),
    ],
    filesystem: Annotated[
        str | None,
        typer.Option(
            "--filesystem",
            "-f",
            help="Filesystem type: ext4, xfs or btrfs (default from config).",
        ),
    ] = None,
    keyfile: Annotated[
        str | None,
        typer.Option(
            "--keyfile",
            "-k",
            help="Use a keyfile instead of a passphrase.",
        ),
    ] = None,
    password_stdin: Annotated[
        bool,
        typer.Option(
            "--password-stdin",
            help="Read the passphrase and its confirmation from stdin.",
        ),
    ] = False,
) -> None:
    """Create a new encrypted container."""
    config = get_config(ctx)

    try:
        size_bytes = parse_size(size)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    fs_type = filesystem or config.default_filesystem

    try:
        require_root()
        check_dependencies()
        manager = get_manager(config)
        with obtain_auth(
            keyfile,
            password_stdin=password_stdin,
            confirm=True,
            warn_permissions=config.keyfile_permission_warning,
        ) as auth:
            created = manager.create(path, size_bytes, fs_type, auth)
    except CryptctlError as e:
        exit_with_error(e)

    print_success(f"Container created successfully: {created}")
    print_info(f"Size: {format_size(size_bytes)}, Filesystem: {fs_type}")
