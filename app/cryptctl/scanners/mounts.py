"""Mount table scanner.

Parses the live mount table for mapper devices and attaches the
total/used byte counts reported by ``df``.
"""

import logging
import re
from collections.abc import Iterator
from pathlib import Path

from cryptctl.core.errors import DiscoveryError, ExternalToolError
from cryptctl.models.container import MAPPER_DIR, MountInfo
from cryptctl.scanners.base import Scanner
from cryptctl.utils.shell import run_command

logger = logging.getLogger(__name__)

DEFAULT_MOUNT_TABLE = Path("/proc/mounts")

# /proc/mounts escapes space, tab, newline and backslash as \ooo
_OCTAL_ESCAPE = re.compile(r"\\([0-7]{3})")


class MountScanner(Scanner[MountInfo]):
    """Scanner for mounted mapper devices.

    Attributes:
        mount_table: Path of the mount table to parse.
    """

    required_commands = ("df",)

    def __init__(self, mount_table: Path = DEFAULT_MOUNT_TABLE) -> None:
        self.mount_table = mount_table

    @property
    def name(self) -> str:
        return "mount table"

    def scan(self) -> Iterator[MountInfo]:
        """Yield a MountInfo for every mounted ``/dev/mapper/*`` device.

        A failing usage query records zero sizes instead of aborting.

        Raises:
            DiscoveryError: If the mount table cannot be read.
        """
        try:
            content = self.mount_table.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            msg = f"Cannot read mount table {self.mount_table}: {e}"
            raise DiscoveryError(msg) from e

        for device, mount_point, filesystem in parse_mount_table(content):
            if not device.startswith(MAPPER_DIR + "/"):
                continue

            size = used = 0
            try:
                size, used = query_usage(mount_point)
            except (ExternalToolError, OSError) as e:
                logger.debug("Usage query failed for %s: %s", mount_point, e)

            yield MountInfo(
                device=device,
                mount_point=mount_point,
                filesystem=filesystem,
                size=size,
                used=used,
            )

    def by_device(self) -> dict[str, MountInfo]:
        """Index the scan by device path (last mount of a device wins)."""
        return {info.device: info for info in self.scan()}


def parse_mount_table(content: str) -> list[tuple[str, str, str]]:
    """Split mount-table text into (device, mount point, filesystem) rows."""
    rows: list[tuple[str, str, str]] = []
    for line in content.splitlines():
        fields = line.split()
        if len(fields) < 3:
            continue
        rows.append((_unescape(fields[0]), _unescape(fields[1]), fields[2]))
    return rows


def _unescape(value: str) -> str:
    return _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), value)


def query_usage(mount_point: str) -> tuple[int, int]:
    """Return (total bytes, used bytes) of a mounted filesystem.

    Args:
        mount_point: Mount point to query.

    Returns:
        Tuple of (size, used).

    Raises:
        ExternalToolError: If df fails or prints something unexpected.
    """
    result = run_command(["df", "--block-size=1", mount_point])
    if not result.success:
        msg = f"df failed for {mount_point}"
        raise ExternalToolError(msg, command="df", returncode=result.returncode, stderr=result.stderr.strip())

    usage = parse_df_output(result.stdout)
    if usage is None:
        msg = f"Invalid df output for {mount_point}"
        raise ExternalToolError(msg, command="df", returncode=0, stderr=result.stdout.strip())
    return usage


def parse_df_output(output: str) -> tuple[int, int] | None:
    """Parse ``df --block-size=1`` output.

    Header: ``Filesystem 1B-blocks Used Available Use% Mounted on``.
    Long device names make df wrap a row, so the data fields are taken
    from everything after the header.

    Returns:
        (size, used), or None if the output is malformed.
    """
    lines = output.strip().splitlines()
    if len(lines) < 2:
        return None

    fields = " ".join(lines[1:]).split()
    if len(fields) < 3 or not fields[1].isdigit() or not fields[2].isdigit():
        return None
    return int(fields[1]), int(fields[2])
