"""Transactional release stack for OS resources.

Loop attachments, mapper opens, mounts and freshly created files have no
common transaction primitive. Each acquisition registers its inverse here;
on failure the stack unwinds everything acquired so far, on success the
caller clears it.
"""

import logging
import threading
from collections.abc import Callable
from types import TracebackType

from cryptctl.core.errors import CleanupError

logger = logging.getLogger(__name__)

ReleaseAction = Callable[[], object]


class CleanupStack:
    """LIFO register of zero-argument release actions.

    Example:
        >>> with CleanupStack() as cleanup:
        ...     loop = loops.attach(path)
        ...     cleanup.add(lambda: loops.detach(loop))
        ...     luks.open(loop, name, auth)
        ...     cleanup.add(lambda: luks.close(name))
        ...     cleanup.clear()  # keep everything
    """

    def __init__(self) -> None:
        self._actions: list[ReleaseAction] = []
        self._lock = threading.Lock()

    def add(self, release: ReleaseAction) -> None:
        """Register the inverse of a resource that was just acquired."""
        with self._lock:
            self._actions.append(release)

    def execute(self) -> None:
        """Run every pending action in reverse registration order.

        Each action runs at most once. Failures do not stop the unwind.

        Raises:
            CleanupError: If any action raised, carrying all failures.
        """
        with self._lock:
            actions = self._actions
            self._actions = []

        errors: list[Exception] = []
        for release in reversed(actions):
            try:
                release()
            except Exception as e:  # noqa: BLE001 - every failure is collected
                logger.debug("Release action failed: %s", e)
                errors.append(e)

        if errors:
            raise CleanupError(errors)

    def clear(self) -> None:
        """Discard pending actions without running them."""
        with self._lock:
            self._actions = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._actions)

    def __enter__(self) -> "CleanupStack":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            self.execute()
        except CleanupError as cleanup_error:
            if exc is None:
                raise
            # The original failure wins; the unwind problems are only logged.
            logger.warning("Cleanup errors occurred: %s", cleanup_error)
