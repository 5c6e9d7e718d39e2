"""Stateless container discovery.

Rebuilds the inventory of active containers from three independent OS
queries (device-mapper, loop devices, mount table) on every call. There
is deliberately no cache: other tools can change this state at any time,
so every lookup must reflect ground truth.
"""

import logging
import os
from pathlib import Path

from cryptctl.core.errors import DiscoveryError
from cryptctl.models.container import Container, mapper_device
from cryptctl.scanners.loop import LoopScanner
from cryptctl.scanners.mapper import MapperScanner
from cryptctl.scanners.mounts import DEFAULT_MOUNT_TABLE, MountScanner

logger = logging.getLogger(__name__)


class Discovery:
    """Correlates mapper, loop and mount state into Container records.

    Example:
        >>> discovery = Discovery()
        >>> for container in discovery.discover_active():
        ...     print(container.mapper_name, container.mount_point or "-")
    """

    def __init__(
        self,
        mapper_scanner: MapperScanner | None = None,
        loop_scanner: LoopScanner | None = None,
        mount_scanner: MountScanner | None = None,
        *,
        mount_table: Path = DEFAULT_MOUNT_TABLE,
    ) -> None:
        """Initialize discovery.

        Args:
            mapper_scanner: Device-mapper scanner (default: MapperScanner()).
            loop_scanner: Loop device scanner (default: LoopScanner()).
            mount_scanner: Mount scanner (default: MountScanner(mount_table)).
            mount_table: Mount table path used when no mount scanner is given.
        """
        self._mappers = mapper_scanner or MapperScanner()
        self._loops = loop_scanner or LoopScanner()
        self._mounts = mount_scanner or MountScanner(mount_table)

    def discover_active(self) -> list[Container]:
        """Discover every open crypt mapper and correlate its resources.

        Joins never drop a record: a mapper whose loop device, backing
        file or mount cannot be resolved is returned with those fields
        empty.

        Returns:
            Containers in device-mapper listing order.

        Raises:
            DiscoveryError: If mappers, loop devices or the mount table
                cannot be queried at all.
        """
        try:
            mappers = list(self._mappers.scan())
        except OSError as e:
            msg = f"Failed to list device-mapper devices: {e}"
            raise DiscoveryError(msg) from e

        if not mappers:
            return []

        backing_files = self._loops.backing_files()
        mounts = self._mounts.by_device()

        containers: list[Container] = []
        for mapper in mappers:
            try:
                loop_device = self._mappers.backing_device(mapper)
            except OSError as e:
                logger.warning("Cannot resolve backing device of %s: %s", mapper, e)
                loop_device = ""

            path = ""
            back_file = backing_files.get(loop_device) if loop_device else None
            if back_file:
                path = os.path.abspath(back_file)

            mount = mounts.get(mapper_device(mapper))
            containers.append(
                Container(
                    mapper_name=mapper,
                    path=path,
                    loop_device=loop_device,
                    mount_point=mount.mount_point if mount else "",
                    filesystem=mount.filesystem if mount else "",
                    size=mount.size if mount else 0,
                    used=mount.used if mount else 0,
                    active=True,
                )
            )

        _warn_on_shared_paths(containers)
        return containers

    def find_by_path(self, path: str) -> Container | None:
        """Find the active container backed by ``path``.

        When two mappers resolve to the same file the first one in
        device-mapper order is returned.
        """
        target = os.path.abspath(path)
        for container in self.discover_active():
            if container.path and container.path == target:
                return container
        return None

    def find_by_mapper(self, mapper: str) -> Container | None:
        """Find the active container with mapper name ``mapper``."""
        for container in self.discover_active():
            if container.mapper_name == mapper:
                return container
        return None

    def find_by_mount(self, mount_point: str) -> Container | None:
        """Find the active container mounted at ``mount_point``."""
        target = os.path.abspath(mount_point)
        for container in self.discover_active():
            if container.mount_point and container.mount_point == target:
                return container
        return None


def _warn_on_shared_paths(containers: list[Container]) -> None:
    seen: dict[str, str] = {}
    for container in containers:
        if not container.path:
            continue
        other = seen.setdefault(container.path, container.mapper_name)
        if other != container.mapper_name:
            logger.warning(
                "Mappers %s and %s are both backed by %s (stale mapper?)",
                other,
                container.mapper_name,
                container.path,
            )
