"""Device-mapper scanner.

Lists crypt-target mappers with ``dmsetup ls --target crypt`` and
resolves each mapper's backing device from ``dmsetup table``.
"""

import logging
from collections.abc import Iterator

from cryptctl.scanners.base import Scanner
from cryptctl.utils.shell import run_command

logger = logging.getLogger(__name__)

# Loop devices always use block major 7
LOOP_MAJOR = "7"

# dmsetup table: "0 <sectors> crypt <cipher> <key> <iv_offset> <major:minor> <offset> ..."
_TABLE_DEVICE_FIELD = 6

_NO_DEVICES = "No devices found"


class MapperScanner(Scanner[str]):
    """Scanner for open dm-crypt mappers."""

    required_commands = ("dmsetup",)

    @property
    def name(self) -> str:
        return "device-mapper"

    def scan(self) -> Iterator[str]:
        """Yield the name of every crypt-target mapper.

        dmsetup exits non-zero when no devices exist, so a failed listing
        is treated as an empty inventory.

        Yields:
            Mapper names in dmsetup order.
        """
        result = run_command(["dmsetup", "ls", "--target", "crypt"])
        if not result.success:
            logger.debug("dmsetup ls returned %d, assuming no mappers: %s", result.returncode, result.diagnostic)
            return

        yield from parse_dmsetup_ls(result.stdout)

    def backing_device(self, mapper: str) -> str:
        """Resolve the block device underneath a mapper.

        Args:
            mapper: Mapper name.

        Returns:
            ``/dev/loopN`` for loop-backed mappers, the raw ``major:minor``
            for anything else, or '' if the table cannot be read.
        """
        result = run_command(["dmsetup", "table", mapper])
        if not result.success:
            logger.warning("Cannot read dmsetup table for %s: %s", mapper, result.diagnostic)
            return ""

        device = parse_dmsetup_table(result.stdout)
        if device is None:
            logger.warning("Unexpected dmsetup table format for %s: %r", mapper, result.stdout[:100])
            return ""

        return device_from_major_minor(device)


def parse_dmsetup_ls(output: str) -> list[str]:
    """Parse ``dmsetup ls`` rows of the form ``name  (major, minor)``.

    Args:
        output: Raw stdout of dmsetup ls.

    Returns:
        Mapper names, in order, without duplicates.
    """
    mappers: list[str] = []
    for line in output.splitlines():
        line = line.strip()
        if not line or line.startswith(_NO_DEVICES):
            continue
        name = line.split()[0]
        if name not in mappers:
            mappers.append(name)
    return mappers


def parse_dmsetup_table(output: str) -> str | None:
    """Extract the backing device field from a ``dmsetup table`` row.

    Args:
        output: Raw stdout of dmsetup table.

    Returns:
        The 7th whitespace-delimited field, or None if the row is too short.
    """
    first_line = output.strip().splitlines()[0] if output.strip() else ""
    fields = first_line.split()
    if len(fields) <= _TABLE_DEVICE_FIELD:
        return None
    return fields[_TABLE_DEVICE_FIELD]


def device_from_major_minor(device: str) -> str:
    """Translate ``7:N`` into ``/dev/loopN``; leave other values untouched."""
    major, sep, minor = device.partition(":")
    if sep and major == LOOP_MAJOR and minor.isdigit():
        return f"/dev/loop{minor}"
    return device
