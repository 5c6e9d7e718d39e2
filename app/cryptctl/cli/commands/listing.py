"""List command implementation.

Shows the active containers reconstructed from live system state.
"""

import json
from enum import Enum
from typing import Annotated

import typer

from cryptctl.cli.types import check_dependencies, exit_with_error, get_config, get_discovery
from cryptctl.core.errors import CryptctlError
from cryptctl.models.container import Container
from cryptctl.utils.formatting import (
    console,
    create_container_table,
    format_container_row,
    format_size,
    print_info,
)
from cryptctl.utils.system import require_root


class OutputFormat(str, Enum):
    """Output format options."""

    TABLE = "table"
    JSON = "json"


def list_containers(
    ctx: typer.Context,
    output_format: Annotated[
        OutputFormat,
        typer.Option(
            "--format",
            "-f",
            help="Output format.",
            case_sensitive=False,
        ),
    ] = OutputFormat.TABLE,
    details: Annotated[
        bool,
        typer.Option(
            "--details",
            "-d",
            help="Show loop device, usage percentage and free space per container.",
        ),
    ] = False,
) -> None:
    """List active encrypted containers."""
    config = get_config(ctx)

    try:
        require_root()
        check_dependencies()
        containers = get_discovery(config).discover_active()
    except CryptctlError as e:
        exit_with_error(e)

    if output_format == OutputFormat.JSON:
        console.print_json(json.dumps([c.to_dict() for c in containers]))
        return

    if not containers:
        print_info("No active containers found")
        return

    if details:
        _print_details(containers)
        return

    table = create_container_table()
    for container in containers:
        table.add_row(*format_container_row(container))
    console.print(table)
    console.print(f"\n[dim]{len(containers)} active container(s)[/dim]")


def _print_details(containers: list[Container]) -> None:
    """Print one block per container."""
    for index, container in enumerate(containers):
        if index:
            console.print()
        console.print(f"[bold_header]Container:[/] {container.path or '<unknown>'}", highlight=False)
        console.print(f"  Mapper: {container.mapper_name}", highlight=False)
        if container.mount_point:
            console.print(f"  Mount Point: {container.mount_point}", highlight=False)
        if container.loop_device:
            console.print(f"  Loop Device: {container.loop_device}", highlight=False)
        if container.filesystem:
            console.print(f"  Filesystem: {container.filesystem}", highlight=False)
        if container.size > 0:
            console.print(f"  Size: {format_size(container.size)}", highlight=False)
            console.print(
                f"  Used: {format_size(container.used)} ({container.usage_percent:.1f}%)",
                highlight=False,
            )
            console.print(f"  Available: {format_size(container.available)}", highlight=False)
