"""Abstract base class for OS state scanners.

This module defines the Scanner interface that every live-state query
(device-mapper, loop devices, mount table) implements.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from typing import Generic, TypeVar

from cryptctl.utils.shell import command_exists

T = TypeVar("T")


class Scanner(ABC, Generic[T]):
    """Abstract base class for all OS state scanners.

    Scanners query one external source and yield parsed rows. They never
    cache: every call to :meth:`scan` re-reads the source.

    Example:
        >>> scanner = LoopScanner()
        >>> if scanner.is_available():
        ...     for loop in scanner.scan():
        ...         print(f"{loop.name}: {loop.back_file}")
    """

    #: External programs this scanner shells out to
    required_commands: tuple[str, ...] = ()

    @property
    @abstractmethod
    def name(self) -> str:
        """Return a short label for log and error messages."""

    @abstractmethod
    def scan(self) -> Iterator[T]:
        """Query the source and yield one item per row.

        Raises:
            DiscoveryError: If the source cannot be read at all.
        """

    def is_available(self) -> bool:
        """Check if every required command is installed.

        Returns:
            True if the scanner can be used, False otherwise.
        """
        return all(command_exists(cmd) for cmd in self.required_commands)
