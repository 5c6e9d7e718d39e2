"""Loop device operator.

Attaches, detaches and refreshes loop devices with losetup.
"""

import logging

from cryptctl.operators.base import Operator

logger = logging.getLogger(__name__)


class LoopOperator(Operator):
    """Operator for loop devices."""

    required_commands = ("losetup",)

    def attach(self, path: str) -> str:
        """Attach a file to the first free loop device.

        Args:
            path: Backing file.

        Returns:
            The loop device path (e.g., '/dev/loop0').

        Raises:
            ExternalToolError: If losetup fails.
        """
        result = self._run(["losetup", "-f", "--show", path], "attach loop device")
        device = result.stdout.strip()
        logger.info("Attached %s to %s", path, device)
        return device

    def detach(self, device: str) -> None:
        """Detach a loop device.

        Raises:
            ExternalToolError: If losetup fails.
        """
        self._run(["losetup", "-d", device], f"detach loop device {device}")
        logger.info("Detached %s", device)

    def refresh_size(self, device: str) -> None:
        """Make the kernel re-read the backing file size.

        Raises:
            ExternalToolError: If losetup fails.
        """
        self._run(["losetup", "-c", device], f"refresh loop device {device}")

