"""Resize command implementation.

Grows a mounted container online: backing file, LUKS mapping and
filesystem.
"""

from typing import Annotated

import typer
from rich.table import Table

from cryptctl.cli.auth import obtain_auth
from cryptctl.cli.types import check_dependencies, exit_with_error, get_config, get_discovery
from cryptctl.core.errors import CryptctlError
from cryptctl.core.resize import ResizeOrchestrator, ResizePlan, ResizeResult
from cryptctl.operators.loop import LoopOperator
from cryptctl.operators.luks import LuksOperator
from cryptctl.operators.mount import MountOperator
from cryptctl.utils.formatting import console, format_size, parse_size, print_error, print_info, print_success
from cryptctl.utils.system import require_root


def resize_container(
    ctx: typer.Context,
    path: Annotated[
        str,
        typer.Argument(help="Container file to grow."),
    ],
    new_size: Annotated[
        str | None,
        typer.Argument(help="New total size (e.g. 20G). Alternative to --size."),
    ] = None,
    size: Annotated[
        str | None,
        typer.Option(
            "--size",
            "-s",
            help="New total size (e.g. 20G, 500M).",
        ),
    ] = None,
    keyfile: Annotated[
        str | None,
        typer.Option(
            "--keyfile",
            "-k",
            help="Authenticate with a keyfile instead of a passphrase.",
        ),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Skip confirmation prompt.",
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
    """Grow a mounted encrypted container."""
    config = get_config(ctx)

    requested = new_size or size
    if not requested:
        print_error("New size is required (positional argument or --size)")
        raise typer.Exit(code=1)
    if password_stdin and not yes:
        # The confirmation prompt would consume the piped passphrase.
        print_error("--password-stdin requires --yes")
        raise typer.Exit(code=1)
    try:
        size_bytes = parse_size(requested)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    orchestrator = ResizeOrchestrator(
        get_discovery(config),
        LoopOperator(timeout=config.command_timeout),
        LuksOperator(timeout=config.command_timeout, luks_type=config.luks_type),
        MountOperator(timeout=config.command_timeout),
    )

    try:
        require_root()
        check_dependencies()
        with orchestrator.plan(path, size_bytes) as plan:
            _print_plan(plan)
            if not yes and not typer.confirm("\nProceed with resize?", default=False):
                print_info("Resize cancelled.")
                raise typer.Exit(code=0)
            with obtain_auth(
                keyfile,
                password_stdin=password_stdin,
                warn_permissions=config.keyfile_permission_warning,
            ) as auth:
                result = orchestrator.execute(plan, auth)
    except CryptctlError as e:
        exit_with_error(e)

    _print_result(result)


def _print_plan(plan: ResizePlan) -> None:
    """Show what the resize will do."""
    table = Table(title="Resize Plan", show_header=False, border_style="border")
    table.add_column("Field", style="muted")
    table.add_column("Value")
    table.add_row("Container", plan.path)
    table.add_row("Mount point", plan.container.mount_point)
    table.add_row("Filesystem", plan.container.filesystem)
    table.add_row("Current size", format_size(plan.current_size))
    table.add_row("New size", format_size(plan.new_size))
    table.add_row("Expansion", format_size(plan.expansion))
    table.add_row("Filesystem used", f"{format_size(plan.fs_used)} of {format_size(plan.fs_size)}")
    console.print(table)


def _print_result(result: ResizeResult) -> None:
    print_success("Container resized successfully!")
    if result.fs_size_after:
        print_info(f"Old size: {format_size(result.fs_size_before)} -> New size: {format_size(result.fs_size_after)}")
        available = max(result.fs_size_after - result.fs_used_after, 0)
        print_info(f"Used: {format_size(result.fs_used_after)}, Available: {format_size(available)}")
