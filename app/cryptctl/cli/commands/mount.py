"""Mount command implementation.

Opens a LUKS container and mounts its filesystem.
"""

from typing import Annotated

import typer

from cryptctl.cli.auth import obtain_auth
from cryptctl.cli.types import check_dependencies, exit_with_error, get_config, get_manager
from cryptctl.core.errors import CryptctlError
from cryptctl.utils.formatting import print_info, print_success
from cryptctl.utils.system import require_root


def mount_container(
    ctx: typer.Context,
    path: Annotated[
        str,
        typer.Argument(help="Container file to open."),
    ],
    mount_point: Annotated[
        str,
        typer.Argument(help="Directory to mount on (created if missing)."),
    ],
    keyfile: Annotated[
        str | None,
        typer.Option(
            "--keyfile",
            "-k",
            help="Unlock with a keyfile instead of a passphrase.",
        ),
    ] = None,
    readonly: Annotated[
        bool,
        typer.Option(
            "--readonly",
            "-r",
            help="Mount read-only.",
        ),
    ] = False,
    password_stdin: Annotated[
        bool,
        typer.Option(
            "--password-stdin",
            help="Read the passphrase from stdin.",
        ),
    ] = False,
) -> None:
    """Open and mount an encrypted container."""
    config = get_config(ctx)

    try:
        require_root()
        check_dependencies()
        manager = get_manager(config)
        with obtain_auth(
            keyfile,
            password_stdin=password_stdin,
            warn_permissions=config.keyfile_permission_warning,
        ) as auth:
            container = manager.mount(path, mount_point, auth, readonly=readonly)
    except CryptctlError as e:
        exit_with_error(e)

    print_success(f"Container mounted at {container.mount_point}")
    print_info(f"Mapper: {container.mapper_device}")
