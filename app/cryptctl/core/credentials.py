"""Credential rotation for closed containers.

Rewrites key slot 0 with cryptsetup luksChangeKey. Any combination of
passphrase and keyfile is accepted on either side; the request layout is
composed by the auth methods themselves.
"""

import logging
import os
import stat

from cryptctl.core.discovery import Discovery
from cryptctl.core.errors import AlreadyActiveError, PreconditionError
from cryptctl.models.auth import AuthMethod
from cryptctl.operators.luks import LuksOperator
from cryptctl.utils.system import resolve_container_path

logger = logging.getLogger(__name__)


def check_closed_container(path: str, *, discovery: Discovery, luks: LuksOperator) -> str:
    """Verify ``path`` is an existing, closed LUKS container file.

    Returns:
        Canonical container path.

    Raises:
        ContainerNotFoundError: If the container file does not exist.
        PreconditionError: If it is not a regular LUKS file.
        AlreadyActiveError: If an active mapper is backed by it.
    """
    canonical = resolve_container_path(path)
    try:
        mode = os.stat(canonical).st_mode
    except OSError as e:
        msg = f"Failed to access container {canonical}: {e}"
        raise PreconditionError(msg) from e
    if not stat.S_ISREG(mode):
        msg = f"Container must be a regular file, not a directory or device: {canonical}"
        raise PreconditionError(msg)
    if not luks.is_luks(canonical):
        msg = f"Not a LUKS container: {canonical}"
        raise PreconditionError(msg)

    active = discovery.find_by_path(canonical)
    if active is not None:
        where = active.mount_point or f"/dev/mapper/{active.mapper_name}"
        msg = (
            "Container must be unmounted before changing credentials\n"
            f"Currently open at: {where}\n"
            f"Run 'cryptctl unmount {canonical}' first"
        )
        raise AlreadyActiveError(msg)
    return canonical


def change_key(
    path: str,
    current: AuthMethod,
    new: AuthMethod,
    *,
    discovery: Discovery | None = None,
    luks: LuksOperator | None = None,
) -> str:
    """Replace the credential of a closed container.

    All checks of :func:`check_closed_container` run again right before
    cryptsetup is invoked. Both auth methods stay owned by the caller,
    which wipes them.

    Args:
        path: Container file path.
        current: Credential that unlocks the container now.
        new: Replacement credential.
        discovery: Discovery engine used for the activity check.
        luks: LUKS operator.

    Returns:
        Canonical container path.

    Raises:
        ContainerNotFoundError: If the container file does not exist.
        PreconditionError: If it is not a regular LUKS file.
        AlreadyActiveError: If the container is currently open.
        AuthenticationError: If cryptsetup rejects the current credential.
        ExternalToolError: If luksChangeKey fails otherwise.
    """
    discovery = discovery or Discovery()
    luks = luks or LuksOperator()

    canonical = check_closed_container(path, discovery=discovery, luks=luks)
    logger.info("Changing credential of %s (%s -> %s)", canonical, current.kind, new.kind)
    luks.change_key(canonical, current, new)
    return canonical
