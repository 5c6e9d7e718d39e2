"""Loop device scanner.

Reads the full loop-device table once via ``losetup -l -J``.
"""

import json
import logging
from collections.abc import Iterator

from cryptctl.core.errors import DiscoveryError
from cryptctl.models.container import LoopDevice
from cryptctl.scanners.base import Scanner
from cryptctl.utils.shell import run_command

logger = logging.getLogger(__name__)


class LoopScanner(Scanner[LoopDevice]):
    """Scanner for attached loop devices and their backing files."""

    required_commands = ("losetup",)

    @property
    def name(self) -> str:
        return "loop devices"

    def scan(self) -> Iterator[LoopDevice]:
        """Yield every loop device that has a backing file.

        Raises:
            DiscoveryError: If losetup fails or its JSON cannot be parsed.
        """
        try:
            result = run_command(["losetup", "-l", "-J"])
        except OSError as e:
            msg = f"Failed to list loop devices: {e}"
            raise DiscoveryError(msg) from e

        if not result.success:
            msg = f"Failed to list loop devices: {result.diagnostic}"
            raise DiscoveryError(msg)

        yield from parse_losetup_json(result.stdout)

    def backing_files(self) -> dict[str, str]:
        """Build a lookup from loop device path to backing file path."""
        return {loop.name: loop.back_file for loop in self.scan()}


def parse_losetup_json(output: str) -> list[LoopDevice]:
    """Parse the structured ``losetup -l -J`` listing.

    losetup prints nothing at all when no loop device is attached.

    Args:
        output: Raw stdout of losetup.

    Returns:
        LoopDevice entries with a non-empty backing file.

    Raises:
        DiscoveryError: If the output is not the expected JSON document.
    """
    if not output.strip():
        return []

    try:
        data = json.loads(output)
    except json.JSONDecodeError as e:
        msg = f"Failed to parse losetup output: {e}"
        raise DiscoveryError(msg) from e

    entries = data.get("loopdevices", []) if isinstance(data, dict) else None
    if not isinstance(entries, list):
        msg = "Failed to parse losetup output: missing 'loopdevices' list"
        raise DiscoveryError(msg)

    devices: list[LoopDevice] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name") or ""
        back_file = entry.get("back-file") or ""
        if not name or not back_file:
            logger.debug("Skipping loop entry without backing file: %r", entry)
            continue
        # Kernel marks files unlinked after attach with a suffix
        devices.append(LoopDevice(name=name, back_file=back_file.removesuffix(" (deleted)")))
    return devices
