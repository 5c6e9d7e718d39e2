"""Container models for discovery results.

This module defines the data structures produced while correlating
device-mapper, loop-device and mount-table state. None of them are
persisted; every discovery pass builds them anew.
"""

import re
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any

# Filesystems that can be grown while mounted
SUPPORTED_FILESYSTEMS: tuple[str, ...] = ("ext4", "xfs", "btrfs")

MAPPER_DIR = "/dev/mapper"

_INVALID_MAPPER_CHARS = re.compile(r"[^a-zA-Z0-9_]")


@dataclass(frozen=True, slots=True)
class MountInfo:
    """A mount-table row for a mapper device joined with its usage.

    Attributes:
        device: Mapper device path (e.g., '/dev/mapper/c_img').
        mount_point: Directory the filesystem is mounted on.
        filesystem: Filesystem type from the mount table.
        size: Total bytes reported by df (0 if unavailable).
        used: Used bytes reported by df (0 if unavailable).
    """

    device: str
    mount_point: str
    filesystem: str
    size: int = 0
    used: int = 0


@dataclass(frozen=True, slots=True)
class LoopDevice:
    """A loop device and the regular file behind it.

    Attributes:
        name: Loop device path (e.g., '/dev/loop7').
        back_file: Backing file path as reported by losetup.
    """

    name: str
    back_file: str


@dataclass(frozen=True, slots=True)
class Container:
    """An active encrypted container reconstructed from live OS state.

    Empty strings and zero sizes mean "could not be resolved"; a record is
    never dropped because one of its joins failed.

    Attributes:
        mapper_name: Device-mapper name; unique within one discovery pass.
        path: Absolute path of the backing file ('' if unresolvable).
        mount_point: Mount point ('' if the mapper is open but not mounted).
        loop_device: Backing loop device ('' if unresolvable).
        filesystem: Filesystem type ('' if not mounted).
        size: Filesystem size in bytes (0 if unavailable).
        used: Used bytes (0 if unavailable).
        active: Whether the mapper is open. Always True for discovered records.
    """

    mapper_name: str
    path: str = field(default="")
    mount_point: str = field(default="")
    loop_device: str = field(default="")
    filesystem: str = field(default="")
    size: int = field(default=0)
    used: int = field(default=0)
    active: bool = field(default=True)

    def __post_init__(self) -> None:
        """Validate container data after initialization."""
        if not self.mapper_name:
            msg = "Mapper name cannot be empty"
            raise ValueError(msg)

    @property
    def mapper_device(self) -> str:
        """Path of the decrypted block device."""
        return mapper_device(self.mapper_name)

    @property
    def is_mounted(self) -> bool:
        """Check if the decrypted filesystem is mounted."""
        return bool(self.mount_point)

    @property
    def available(self) -> int:
        """Free bytes on the mounted filesystem."""
        return max(self.size - self.used, 0)

    @property
    def usage_percent(self) -> float | None:
        """Used space as a percentage, or None when size is unknown."""
        if self.size <= 0:
            return None
        return self.used / self.size * 100

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "path": self.path,
            "mapper_name": self.mapper_name,
            "mount_point": self.mount_point,
            "loop_device": self.loop_device,
            "filesystem": self.filesystem,
            "size": self.size,
            "used": self.used,
            "active": self.active,
        }


def mapper_device(name: str) -> str:
    """Return the /dev/mapper path for a mapper name."""
    return f"{MAPPER_DIR}/{name}"


def generate_mapper_name(container_path: str) -> str:
    """Derive a valid dm-crypt mapper name from a container path.

    ``/path/to/container.img`` becomes ``container_img``; dots and dashes
    turn into underscores, other special characters are dropped and a
    leading digit gets a ``crypt_`` prefix.

    Args:
        container_path: Path of the container file.

    Returns:
        Mapper name usable with ``cryptsetup open``.
    """
    name = PurePath(container_path).name.replace(".", "_").replace("-", "_")
    name = _INVALID_MAPPER_CHARS.sub("", name)
    if name and name[0].isdigit():
        name = "crypt_" + name
    return name
