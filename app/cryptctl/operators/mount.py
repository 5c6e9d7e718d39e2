"""Filesystem operator.

Creates, mounts, unmounts and grows the filesystem inside an open
container.
"""

import logging
import os

from cryptctl.core.errors import ExternalToolError, PreconditionError
from cryptctl.models.container import SUPPORTED_FILESYSTEMS
from cryptctl.operators.base import Operator
from cryptctl.scanners.mounts import query_usage

logger = logging.getLogger(__name__)

FILESYSTEM_LABEL = "encrypted"

# Tool that grows each filesystem online, and the package shipping it
GROW_TOOLS: dict[str, tuple[str, str]] = {
    "ext4": ("resize2fs", "e2fsprogs"),
    "xfs": ("xfs_growfs", "xfsprogs"),
    "btrfs": ("btrfs", "btrfs-progs"),
}


class MountOperator(Operator):
    """Operator for filesystems on mapper devices."""

    required_commands = ("mount", "umount", "df")

    def mount(self, device: str, mount_point: str, readonly: bool = False, options: list[str] | None = None) -> None:
        """Mount ``device`` on ``mount_point``, creating the directory if needed.

        Raises:
            ExternalToolError: If the directory cannot be created or mount fails.
        """
        try:
            os.makedirs(mount_point, mode=0o755, exist_ok=True)
        except OSError as e:
            msg = f"Failed to create mount point {mount_point}: {e}"
            raise ExternalToolError(msg, command="mkdir") from e

        opts = list(options or [])
        if readonly:
            opts.append("ro")

        args = ["mount"]
        if opts:
            args.extend(["-o", ",".join(opts)])
        args.extend([device, mount_point])
        self._run(args, f"mount {device} on {mount_point}")
        logger.info("Mounted %s on %s", device, mount_point)

    def unmount(self, mount_point: str, force: bool = False) -> None:
        """Unmount a filesystem.

        With ``force`` a failing plain umount is retried with ``-f`` and
        finally ``-l`` (lazy).

        Raises:
            ExternalToolError: If every attempt fails.
        """
        attempts = [["umount", mount_point]]
        if force:
            attempts.append(["umount", "-f", mount_point])
            attempts.append(["umount", "-l", mount_point])

        *retried, final = attempts
        for args in retried:
            try:
                self._run(args, f"unmount {mount_point}")
            except ExternalToolError as e:
                logger.debug("%s failed: %s", " ".join(args), e)
                continue
            logger.info("Unmounted %s", mount_point)
            return

        self._run(final, f"unmount {mount_point}")
        logger.info("Unmounted %s", mount_point)

    def make_filesystem(self, device: str, filesystem: str) -> None:
        """Create a labelled filesystem on ``device``.

        Raises:
            PreconditionError: If the filesystem type is not supported.
            ExternalToolError: If mkfs fails.
        """
        if filesystem == "ext4":
            args = ["mkfs.ext4", "-q", "-L", FILESYSTEM_LABEL, device]
        elif filesystem == "xfs":
            args = ["mkfs.xfs", "-L", FILESYSTEM_LABEL, device]
        elif filesystem == "btrfs":
            args = ["mkfs.btrfs", "-L", FILESYSTEM_LABEL, device]
        else:
            msg = f"Unsupported filesystem: {filesystem} (use {', '.join(SUPPORTED_FILESYSTEMS)})"
            raise PreconditionError(msg)
        self._run(args, f"create {filesystem} filesystem")

    def resize_filesystem(self, device: str, filesystem: str, mount_point: str) -> None:
        """Grow a mounted filesystem to fill its device.

        Raises:
            PreconditionError: If the filesystem cannot be grown online.
            ExternalToolError: If the grow tool fails.
        """
        args = grow_command(device, filesystem, mount_point)
        self._run(args, f"resize {filesystem} filesystem")

    def usage(self, mount_point: str) -> tuple[int, int]:
        """Return (size, used) bytes of a mounted filesystem."""
        return query_usage(mount_point)


def grow_command(device: str, filesystem: str, mount_point: str) -> list[str]:
    """Return the online-grow command for a filesystem.

    ext4 grows through the device, xfs and btrfs through the mount point.

    Raises:
        PreconditionError: If the filesystem is not in the supported set.
    """
    if filesystem == "ext4":
        return ["resize2fs", device]
    if filesystem == "xfs":
        return ["xfs_growfs", mount_point]
    if filesystem == "btrfs":
        return ["btrfs", "filesystem", "resize", "max", mount_point]
    msg = f"Filesystem {filesystem or 'unknown'} does not support online resize"
    raise PreconditionError(msg)
