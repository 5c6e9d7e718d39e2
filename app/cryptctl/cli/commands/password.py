"""Password command implementation.

Changes the passphrase or keyfile of a closed container.
"""

from typing import Annotated

import typer

from cryptctl.cli.auth import obtain_auth
from cryptctl.cli.types import check_dependencies, exit_with_error, get_config, get_discovery
from cryptctl.core.credentials import change_key, check_closed_container
from cryptctl.core.errors import CryptctlError
from cryptctl.operators.luks import LuksOperator
from cryptctl.utils.formatting import print_info, print_success
from cryptctl.utils.system import require_root


def change_password(
    ctx: typer.Context,
    path: Annotated[
        str,
        typer.Argument(help="Container file (must not be mounted)."),
    ],
    keyfile: Annotated[
        str | None,
        typer.Option(
            "--keyfile",
            "-k",
            help="Current keyfile (prompts for the current passphrase if omitted).",
        ),
    ] = None,
    new_keyfile: Annotated[
        str | None,
        typer.Option(
            "--new-keyfile",
            help="New keyfile (prompts for a new passphrase if omitted).",
        ),
    ] = None,
    password_stdin: Annotated[
        bool,
        typer.Option(
            "--password-stdin",
            help="Read passphrases from stdin: current, then new and its confirmation.",
        ),
    ] = False,
) -> None:
    """Change the passphrase or keyfile of a container.

    Supports password to password, password to keyfile, keyfile to
    password and keyfile to keyfile. Key slot 0 is rewritten.
    """
    config = get_config(ctx)
    warn = config.keyfile_permission_warning

    try:
        require_root()
        check_dependencies()
        discovery = get_discovery(config)
        luks = LuksOperator(timeout=config.command_timeout)
        check_closed_container(path, discovery=discovery, luks=luks)

        print_info("Enter current authentication credentials:")
        with obtain_auth(keyfile, password_stdin=password_stdin, warn_permissions=warn) as current:
            print_info("Enter new authentication credentials:")
            with obtain_auth(
                new_keyfile,
                password_stdin=password_stdin,
                confirm=True,
                prompt="Enter new passphrase",
                confirm_prompt="Confirm new passphrase",
                warn_permissions=warn,
            ) as new:
                changed = change_key(
                    path,
                    current,
                    new,
                    discovery=discovery,
                    luks=luks,
                )
    except CryptctlError as e:
        exit_with_error(e)

    print_success("Container credentials changed successfully")
    print_info(f"Container: {changed}")
