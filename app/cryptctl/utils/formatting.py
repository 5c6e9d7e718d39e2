"""Rich console formatting utilities.

Provides consistent formatting for CLI output using Rich, plus the
size-string helpers shared by the commands.
"""

from __future__ import annotations

import re
import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cryptctl.core.theme import get_theme

if TYPE_CHECKING:
    from cryptctl.models.container import Container


def _detect_color_system() -> str | None:
    """Detect the best color system for the current terminal.

    Returns "truecolor" for interactive terminals to enable full hex color support,
    None otherwise to let Rich auto-detect.
    """
    if sys.stdout.isatty():
        return "truecolor"
    return None


# Shared console instances (theme loaded once at import)
console = Console(theme=get_theme(), color_system=_detect_color_system())
err_console = Console(theme=get_theme(), stderr=True, color_system=_detect_color_system())

_SIZE_PATTERN = re.compile(r"^(\d+)([KMGT]?)(?:I?B)?$")
_MULTIPLIERS = {
    "": 1,
    "K": 1024,
    "M": 1024**2,
    "G": 1024**3,
    "T": 1024**4,
}


def parse_size(value: str) -> int:
    """Convert a size string such as ``1G``, ``100M`` or ``4096`` to bytes.

    Units are binary multiples; a trailing ``B``/``iB`` is accepted.

    Raises:
        ValueError: If the string is not a valid size.
    """
    match = _SIZE_PATTERN.match(value.strip().upper())
    if match is None:
        msg = f"Invalid size format: {value} (use format like 1G, 100M, 500K)"
        raise ValueError(msg)
    return int(match.group(1)) * _MULTIPLIERS[match.group(2)]


def format_size(num_bytes: int) -> str:
    """Return a human-readable binary size (``1.5 GB``)."""
    if num_bytes < 1024:
        return f"{num_bytes} B"
    size = float(num_bytes)
    for unit in ("KB", "MB", "GB", "TB"):
        size /= 1024
        if size < 1024 or unit == "TB":
            return f"{size:.1f} {unit}"
    return f"{size:.1f} TB"


def create_container_table(title: str = "Active Containers") -> Table:
    """Create a pre-configured table for displaying containers.

    Args:
        title: Table title.

    Returns:
        Rich Table configured for container display.
    """
    table = Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
        row_styles=["", "on grey7"],
    )
    table.add_column("", width=2, justify="center")
    table.add_column("Container", no_wrap=True)
    table.add_column("Mapper", style="muted")
    table.add_column("Mount Point")
    table.add_column("FS", style="muted")
    table.add_column("Size", style="info", justify="right")
    table.add_column("Used", justify="right")
    return table


def format_container_row(container: Container) -> tuple[str, str, str, str, str, str, str]:
    """Format a container as a table row with proper styling.

    Args:
        container: The discovered container.

    Returns:
        Tuple of (icon, path, mapper, mount point, filesystem, size, used).
    """
    if container.is_mounted:
        icon = "[mounted]●[/]"
        mount_point = f"[mounted]{container.mount_point}[/]"
    else:
        icon = "[unmounted]○[/]"
        mount_point = "[unmounted]-[/]"

    path = container.path or "[muted]<unknown>[/]"
    size = format_size(container.size) if container.size else "-"
    used = f"[{_usage_style(container)}]{format_size(container.used)}[/]" if container.size else "-"

    return (icon, path, container.mapper_name, mount_point, container.filesystem or "-", size, used)


def _usage_style(container: Container) -> str:
    percent = container.usage_percent or 0.0
    if percent >= 90:
        return "usage_high"
    if percent >= 70:
        return "usage_medium"
    return "usage_low"


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]{message}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]Warning:[/] {escape(message)}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]Error:[/] {escape(message)}", highlight=False)


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]{message}[/]")
