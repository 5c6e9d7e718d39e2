"""Create, mount and unmount containers.

Every acquisition (file, loop attachment, mapper, mount) registers its
inverse on a CleanupStack, so a failure part-way leaves nothing behind.
"""

import logging
import os
from dataclasses import dataclass

from cryptctl.core.cleanup import CleanupStack
from cryptctl.core.discovery import Discovery
from cryptctl.core.errors import (
    AlreadyActiveError,
    ContainerNotFoundError,
    CryptctlError,
    PreconditionError,
)
from cryptctl.models.auth import AuthMethod
from cryptctl.models.container import SUPPORTED_FILESYSTEMS, Container, generate_mapper_name, mapper_device
from cryptctl.operators.loop import LoopOperator
from cryptctl.operators.luks import LuksOperator
from cryptctl.operators.mount import MountOperator
from cryptctl.utils.formatting import format_size
from cryptctl.utils.shell import command_exists
from cryptctl.utils.system import resolve_container_path

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ContainerManager:
    """Runs the multi-step lifecycle commands against live OS state.

    Attributes:
        discovery: Discovery engine for activity checks.
        loops: Loop device operator.
        luks: LUKS operator.
        mounts: Filesystem operator.
        mount_options: Extra options applied on every mount.
    """

    discovery: Discovery
    loops: LoopOperator
    luks: LuksOperator
    mounts: MountOperator
    mount_options: list[str]

    @classmethod
    def default(
        cls,
        *,
        timeout: float | None = None,
        luks_type: str = "luks2",
        mount_options: list[str] | None = None,
        discovery: Discovery | None = None,
    ) -> "ContainerManager":
        """Build a manager with real operators."""
        return cls(
            discovery=discovery or Discovery(),
            loops=LoopOperator(timeout=timeout),
            luks=LuksOperator(timeout=timeout, luks_type=luks_type),
            mounts=MountOperator(timeout=timeout),
            mount_options=list(mount_options or []),
        )

    def create(self, path: str, size: int, filesystem: str, auth: AuthMethod) -> str:
        """Create a new encrypted container file.

        The file is created exclusively with mode 0600 and stays sparse.
        On success the mapper and loop device are released again; the
        container is left closed.

        Args:
            path: Path of the file to create (must not exist).
            size: Container size in bytes.
            filesystem: Filesystem to create inside.
            auth: Initial credential.

        Returns:
            Absolute path of the new container.

        Raises:
            PreconditionError: If the file exists, the size or filesystem
                is invalid, or mkfs is missing.
            AuthenticationError, ExternalToolError: If a tool fails.
        """
        target = os.path.abspath(path)
        if size <= 0:
            msg = "Container size must be greater than zero"
            raise PreconditionError(msg)
        if filesystem not in SUPPORTED_FILESYSTEMS:
            msg = f"Unsupported filesystem: {filesystem} (use {', '.join(SUPPORTED_FILESYSTEMS)})"
            raise PreconditionError(msg)
        mkfs = f"mkfs.{filesystem}"
        if not command_exists(mkfs):
            msg = f"Filesystem tool not found: {mkfs} (please install it)"
            raise PreconditionError(msg)

        logger.info("Creating %s encrypted container: %s", format_size(size), target)
        with CleanupStack() as cleanup:
            _create_sparse_file(target, size)
            cleanup.add(lambda: os.remove(target))

            logger.info("Formatting as %s encrypted container", self.luks.luks_type)
            self.luks.format(target, auth)

            loop_device = self.loops.attach(target)
            cleanup.add(lambda: self.loops.detach(loop_device))

            mapper = generate_mapper_name(target)
            self.luks.open(loop_device, mapper, auth)
            cleanup.add(lambda: self.luks.close(mapper))

            logger.info("Creating %s filesystem", filesystem)
            self.mounts.make_filesystem(mapper_device(mapper), filesystem)

            # Keep the file; release the mapper and loop device in order.
            cleanup.clear()
            self._release(mapper, loop_device)

        return target

    def mount(self, path: str, mount_point: str, auth: AuthMethod, *, readonly: bool = False) -> Container:
        """Open a container and mount its filesystem.

        Args:
            path: Container file path.
            mount_point: Directory to mount on (created if missing).
            auth: Credential that unlocks the container.
            readonly: Mount read-only.

        Returns:
            The container as discovered after mounting.

        Raises:
            ContainerNotFoundError: If the container file does not exist.
            PreconditionError: If it is not a LUKS container.
            AlreadyActiveError: If it, or its mapper name, is already open.
            AuthenticationError, ExternalToolError: If a tool fails.
        """
        canonical = resolve_container_path(path)
        target = os.path.abspath(mount_point)

        if not self.luks.is_luks(canonical):
            msg = f"Not a LUKS container: {canonical}"
            raise PreconditionError(msg)

        existing = self.discovery.find_by_path(canonical)
        if existing is not None:
            where = existing.mount_point or f"/dev/mapper/{existing.mapper_name} (not mounted)"
            msg = f"Container already mounted at: {where}"
            raise AlreadyActiveError(msg)

        mapper = generate_mapper_name(canonical)
        if self.discovery.find_by_mapper(mapper) is not None:
            msg = f"Mapper name {mapper} is already in use by another container"
            raise AlreadyActiveError(msg)

        with CleanupStack() as cleanup:
            loop_device = self.loops.attach(canonical)
            cleanup.add(lambda: self.loops.detach(loop_device))

            self.luks.open(loop_device, mapper, auth)
            cleanup.add(lambda: self.luks.close(mapper))

            self.mounts.mount(mapper_device(mapper), target, readonly=readonly, options=self.mount_options)
            cleanup.clear()

        mounted = self.discovery.find_by_mapper(mapper)
        if mounted is None:
            # Mount succeeded; report what we know.
            return Container(mapper_name=mapper, path=canonical, mount_point=target, loop_device=loop_device)
        return mounted

    def unmount(self, container: Container, *, force: bool = False) -> None:
        """Unmount, close and detach an active container.

        A failing loop detach is only a warning: the kernel may already
        have auto-cleared the device.

        Raises:
            ExternalToolError: If unmounting or closing fails.
        """
        if container.mount_point:
            logger.info("Unmounting filesystem from %s", container.mount_point)
            self.mounts.unmount(container.mount_point, force=force)

        logger.info("Closing LUKS container %s", container.mapper_name)
        self.luks.close(container.mapper_name)

        if container.loop_device:
            try:
                self.loops.detach(container.loop_device)
            except CryptctlError as e:
                logger.warning("Failed to detach loop device %s: %s", container.loop_device, e)

    def resolve(self, identifier: str) -> Container:
        """Find an active container by path, mount point or mapper name.

        Raises:
            ContainerNotFoundError: If nothing matches.
        """
        container = (
            self.discovery.find_by_path(identifier)
            or self.discovery.find_by_mount(identifier)
            or self.discovery.find_by_mapper(identifier)
        )
        if container is None:
            msg = f"No active container found matching: {identifier}"
            raise ContainerNotFoundError(msg)
        return container

    def _release(self, mapper: str, loop_device: str) -> None:
        try:
            self.luks.close(mapper)
        except CryptctlError as e:
            logger.warning("Failed to close %s: %s", mapper, e)
        try:
            self.loops.detach(loop_device)
        except CryptctlError as e:
            logger.warning("Failed to detach %s: %s", loop_device, e)


def _create_sparse_file(path: str, size: int) -> None:
    try:
        fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o600)
    except FileExistsError as e:
        msg = f"File already exists: {path}"
        raise PreconditionError(msg) from e
    except OSError as e:
        msg = f"Failed to create file {path}: {e}"
        raise PreconditionError(msg) from e

    try:
        os.ftruncate(fd, size)
    except OSError as e:
        os.close(fd)
        os.remove(path)
        msg = f"Failed to set file size: {e}"
        raise PreconditionError(msg) from e
    os.close(fd)
