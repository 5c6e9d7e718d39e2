"""Online container expansion.

Growing a mounted container is a forward-only sequence:

1. extend the backing file (truncate on the held descriptor, fsync),
2. refresh the loop device size (non-fatal),
3. grow the LUKS mapping (needs re-authentication),
4. grow the filesystem online.

There is no rollback. Extending the file and the mapping cannot be undone
without risking data, so a failure in step 3 or 4 reports what already
happened and the command that finishes the job. Shrinking is never done.
"""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass
from types import TracebackType

from cryptctl.core.discovery import Discovery
from cryptctl.core.errors import (
    ContainerNotFoundError,
    CryptctlError,
    ExternalToolError,
    PartialMutationError,
    PreconditionError,
)
from cryptctl.models.auth import AuthMethod, KeyfileAuth
from cryptctl.models.container import Container
from cryptctl.operators.loop import LoopOperator
from cryptctl.operators.luks import LuksOperator
from cryptctl.operators.mount import GROW_TOOLS, MountOperator, grow_command
from cryptctl.utils.formatting import format_size
from cryptctl.utils.shell import command_exists
from cryptctl.utils.system import available_space

logger = logging.getLogger(__name__)

STEP_EXTEND_FILE = "container file extended"
STEP_REFRESH_LOOP = "loop device refreshed"
STEP_RESIZE_LUKS = "LUKS mapping expanded"


class ResizeError(CryptctlError):
    """Raised when the first resize step fails (nothing committed)."""


@dataclass(slots=True)
class ResizePlan:
    """A validated resize request holding the open backing file.

    The descriptor was opened before any check ran and every later
    truncate goes through it, never through the path again.

    Attributes:
        path: Canonical container path.
        fd: Write descriptor of the backing file.
        container: Active, mounted container backed by ``path``.
        current_size: Backing file length when the plan was made.
        new_size: Requested backing file length.
        fs_size: Filesystem size before resizing.
        fs_used: Filesystem usage before resizing.
    """

    path: str
    fd: int
    container: Container
    current_size: int
    new_size: int
    fs_size: int
    fs_used: int

    @property
    def expansion(self) -> int:
        """Bytes added to the backing file."""
        return self.new_size - self.current_size

    def close(self) -> None:
        """Release the backing file descriptor."""
        if self.fd >= 0:
            os.close(self.fd)
            self.fd = -1

    def __enter__(self) -> ResizePlan:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


@dataclass(frozen=True, slots=True)
class ResizeResult:
    """Outcome of a completed resize.

    Attributes:
        path: Container path.
        file_size: Backing file length after resizing.
        fs_size_before: Filesystem size before resizing.
        fs_size_after: Filesystem size after resizing (0 if unverifiable).
        fs_used_after: Filesystem usage after resizing.
        loop_refreshed: Whether ``losetup -c`` succeeded.
    """

    path: str
    file_size: int
    fs_size_before: int
    fs_size_after: int
    fs_used_after: int
    loop_refreshed: bool

    @property
    def grew(self) -> bool:
        """Whether the filesystem reports a larger size than before."""
        return self.fs_size_after > self.fs_size_before


class ResizeOrchestrator:
    """Validates and runs online container expansion.

    Example:
        >>> orchestrator = ResizeOrchestrator(Discovery())
        >>> with orchestrator.plan("/srv/vault.img", 200 * 1024**2) as plan:
        ...     with SecretBuffer.from_str(passphrase) as secret:
        ...         result = orchestrator.execute(plan, PasswordAuth(secret))
    """

    def __init__(
        self,
        discovery: Discovery,
        loops: LoopOperator | None = None,
        luks: LuksOperator | None = None,
        mounts: MountOperator | None = None,
        *,
        program: str = "cryptctl",
    ) -> None:
        self._discovery = discovery
        self._loops = loops or LoopOperator()
        self._luks = luks or LuksOperator()
        self._mounts = mounts or MountOperator()
        self._program = program

    def plan(self, path: str, new_size: int) -> ResizePlan:
        """Open the backing file and validate every precondition.

        Checks run in order: regular file, active and mounted container,
        supported filesystem with its grow tool installed, size strictly
        larger, enough free space on the host filesystem. Nothing is
        modified.

        Args:
            path: Container file path.
            new_size: Requested size in bytes.

        Returns:
            ResizePlan owning the open descriptor; close it when done.

        Raises:
            ContainerNotFoundError: If the container file does not exist.
            PreconditionError: If any check fails.
        """
        canonical = os.path.realpath(path)
        try:
            fd = os.open(canonical, os.O_WRONLY)
        except FileNotFoundError as e:
            msg = f"Container not found: {canonical}"
            raise ContainerNotFoundError(msg) from e
        except OSError as e:
            msg = f"Failed to open container {canonical}: {e}"
            raise PreconditionError(msg) from e

        try:
            return self._validate(canonical, fd, new_size)
        except BaseException:
            os.close(fd)
            raise

    def _validate(self, path: str, fd: int, new_size: int) -> ResizePlan:
        info = os.fstat(fd)
        if not stat.S_ISREG(info.st_mode):
            msg = f"Container must be a regular file, not a directory or device: {path}"
            raise PreconditionError(msg)

        container = self._discovery.find_by_path(path)
        if container is None:
            msg = f"Container must be mounted for resize. Use '{self._program} mount {path} <mount-point>' first"
            raise PreconditionError(msg)
        if not container.is_mounted:
            msg = f"Container is open as {container.mapper_name} but not mounted. Please mount it first"
            raise PreconditionError(msg)
        if not container.filesystem:
            msg = "Cannot detect filesystem type"
            raise PreconditionError(msg)

        self._check_tools(container.filesystem)

        current_size = info.st_size
        if new_size <= current_size:
            msg = (
                f"New size ({format_size(new_size)}) must be larger than "
                f"current size ({format_size(current_size)})"
            )
            raise PreconditionError(msg)

        expansion = new_size - current_size
        try:
            free = available_space(path)
        except OSError as e:
            logger.warning("Failed to check available disk space: %s", e)
        else:
            if expansion > free:
                msg = f"Insufficient disk space: need {format_size(expansion)}, available {format_size(free)}"
                raise PreconditionError(msg)

        fs_size, fs_used = self._mounts.usage(container.mount_point)

        return ResizePlan(
            path=path,
            fd=fd,
            container=container,
            current_size=current_size,
            new_size=new_size,
            fs_size=fs_size,
            fs_used=fs_used,
        )

    @staticmethod
    def _check_tools(filesystem: str) -> None:
        if filesystem not in GROW_TOOLS:
            msg = f"Filesystem {filesystem} does not support online resize"
            raise PreconditionError(msg)
        tool, package = GROW_TOOLS[filesystem]
        for command, provider in (("blockdev", "util-linux"), (tool, package)):
            if not command_exists(command):
                msg = f"{command} not found (install {provider})"
                raise PreconditionError(msg)

    def execute(self, plan: ResizePlan, auth: AuthMethod) -> ResizeResult:
        """Run the four expansion steps for a validated plan.

        Args:
            plan: Plan returned by :meth:`plan`, still open.
            auth: Credential for the LUKS resize. The caller owns and wipes it.

        Returns:
            ResizeResult with before/after sizes.

        Raises:
            ResizeError: If extending the file fails (nothing committed).
            PartialMutationError: If the LUKS or filesystem step fails.
        """
        if plan.fd < 0:
            msg = "Resize plan has already been closed"
            raise ValueError(msg)

        container = plan.container
        committed: list[str] = []

        logger.info("Expanding container file to %s", format_size(plan.new_size))
        try:
            os.ftruncate(plan.fd, plan.new_size)
            os.fsync(plan.fd)
        except OSError as e:
            msg = f"Failed to expand container file: {e}"
            raise ResizeError(msg) from e
        committed.append(STEP_EXTEND_FILE)

        loop_refreshed = False
        if container.loop_device:
            logger.info("Refreshing loop device size")
            try:
                self._loops.refresh_size(container.loop_device)
                loop_refreshed = True
                committed.append(STEP_REFRESH_LOOP)
            except ExternalToolError as e:
                logger.warning("Failed to refresh loop device (may auto-update): %s", e)
        else:
            logger.warning("No loop device recorded for %s; skipping refresh", container.mapper_name)

        logger.info("Resizing LUKS container")
        try:
            self._luks.resize(container.mapper_name, auth)
        except CryptctlError as e:
            raise PartialMutationError(
                "Failed to resize LUKS container. The container file has been expanded but LUKS has not.",
                committed=committed,
                remedy=_resume_remedy(container, auth, refresh_loop=not loop_refreshed),
                cause=str(e),
            ) from e
        committed.append(STEP_RESIZE_LUKS)

        logger.info("Resizing %s filesystem", container.filesystem)
        try:
            self._mounts.resize_filesystem(container.mapper_device, container.filesystem, container.mount_point)
        except CryptctlError as e:
            remedy = "  sudo " + " ".join(
                grow_command(container.mapper_device, container.filesystem, container.mount_point)
            )
            raise PartialMutationError(
                "Failed to resize filesystem. The LUKS container has been expanded but the filesystem has not.",
                committed=committed,
                remedy=remedy,
                cause=str(e),
            ) from e

        fs_size_after = fs_used_after = 0
        try:
            fs_size_after, fs_used_after = self._mounts.usage(container.mount_point)
        except CryptctlError as e:
            logger.warning("Failed to verify new filesystem size: %s", e)
        else:
            if fs_size_after <= plan.fs_size:
                logger.warning(
                    "Filesystem size did not increase (%s -> %s)",
                    format_size(plan.fs_size),
                    format_size(fs_size_after),
                )

        return ResizeResult(
            path=plan.path,
            file_size=os.fstat(plan.fd).st_size,
            fs_size_before=plan.fs_size,
            fs_size_after=fs_size_after,
            fs_used_after=fs_used_after,
            loop_refreshed=loop_refreshed,
        )


def _resume_remedy(container: Container, auth: AuthMethod, *, refresh_loop: bool) -> str:
    """Commands that finish a resize whose backing file already grew."""
    steps: list[list[str]] = []
    if refresh_loop and container.loop_device:
        steps.append(["losetup", "-c", container.loop_device])
    luks_resize = ["cryptsetup", "resize", container.mapper_name]
    if isinstance(auth, KeyfileAuth):
        luks_resize.extend(["--key-file", auth.path])
    steps.append(luks_resize)
    steps.append(grow_command(container.mapper_device, container.filesystem, container.mount_point))
    return "\n".join("  sudo " + " ".join(args) for args in steps)
