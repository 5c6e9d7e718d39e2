"""Host system helpers.

Privilege checks, keyfile validation and free-space queries.
"""

import logging
import os
import stat
from pathlib import Path

from cryptctl.core.errors import ContainerNotFoundError, PreconditionError

logger = logging.getLogger(__name__)


def is_root() -> bool:
    """Check if running with effective UID 0."""
    return os.geteuid() == 0


def require_root() -> None:
    """Ensure the process runs as root.

    Raises:
        PreconditionError: If not running as root.
    """
    if not is_root():
        msg = "This command must be run as root (try with sudo)"
        raise PreconditionError(msg)


def validate_keyfile_path(path: str, *, warn_permissions: bool = True) -> str:
    """Resolve and validate a keyfile path.

    Symlinks are resolved so the canonical file is what reaches
    cryptsetup. Keyfiles readable by group or others trigger a warning.

    Args:
        path: User-supplied keyfile path.
        warn_permissions: Whether to warn about group/other read bits.

    Returns:
        Canonical absolute path of the keyfile.

    Raises:
        ContainerNotFoundError: If the keyfile does not exist.
        PreconditionError: If it is not a regular file.
    """
    try:
        resolved = Path(path).resolve(strict=True)
    except FileNotFoundError as e:
        msg = f"Keyfile not found: {path}"
        raise ContainerNotFoundError(msg) from e
    except (OSError, RuntimeError) as e:
        msg = f"Failed to resolve keyfile path {path}: {e}"
        raise PreconditionError(msg) from e

    info = resolved.stat()
    if not stat.S_ISREG(info.st_mode):
        msg = f"Keyfile must be a regular file, not a directory or device: {resolved}"
        raise PreconditionError(msg)

    mode = stat.S_IMODE(info.st_mode)
    if warn_permissions and mode & 0o044:
        logger.warning(
            "Keyfile %s has insecure permissions (%04o); consider: chmod 600 %s",
            resolved,
            mode,
            resolved,
        )

    return str(resolved)


def resolve_container_path(path: str) -> str:
    """Return the canonical absolute path of an existing container file.

    Raises:
        ContainerNotFoundError: If the file does not exist.
        PreconditionError: If the path cannot be resolved.
    """
    try:
        return str(Path(path).resolve(strict=True))
    except FileNotFoundError as e:
        msg = f"Container not found: {os.path.abspath(path)}"
        raise ContainerNotFoundError(msg) from e
    except (OSError, RuntimeError) as e:
        msg = f"Failed to resolve container path {path}: {e}"
        raise PreconditionError(msg) from e


def available_space(path: str) -> int:
    """Free bytes available to unprivileged users on the filesystem holding ``path``.

    Raises:
        OSError: If the filesystem cannot be queried.
    """
    st = os.statvfs(os.path.dirname(os.path.abspath(path)))
    return st.f_bavail * st.f_frsize
