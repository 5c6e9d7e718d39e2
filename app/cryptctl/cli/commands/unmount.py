"""Unmount command implementation.

Unmounts the filesystem, closes the mapper and detaches the loop device.
"""

from typing import Annotated

import typer

from cryptctl.cli.types import check_dependencies, exit_with_error, get_config, get_manager
from cryptctl.core.errors import CryptctlError
from cryptctl.utils.formatting import print_info, print_success
from cryptctl.utils.system import require_root


def unmount_container(
    ctx: typer.Context,
    identifier: Annotated[
        str,
        typer.Argument(help="Container path, mount point or mapper name."),
    ],
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Retry with forced and lazy unmount if the filesystem is busy.",
        ),
    ] = False,
) -> None:
    """Unmount and close an encrypted container."""
    config = get_config(ctx)

    try:
        require_root()
        check_dependencies()
        manager = get_manager(config)
        container = manager.resolve(identifier)
        manager.unmount(container, force=force)
    except CryptctlError as e:
        exit_with_error(e)

    print_success("Container closed successfully")
    if container.path:
        print_info(f"Container: {container.path}")
