"""Abstract base class for storage operators.

Operators acquire and release OS resources (loop attachments, LUKS
mappers, mounts) by running external tools.
"""

import logging
from abc import ABC

from cryptctl.core.errors import ExternalToolError
from cryptctl.utils.shell import CommandResult, command_exists, run_command

logger = logging.getLogger(__name__)


class Operator(ABC):
    """Abstract base class for all storage operators.

    Attributes:
        timeout: Optional per-command timeout in seconds (None = no limit).

    Example:
        >>> loops = LoopOperator()
        >>> if loops.is_available():
        ...     device = loops.attach("/srv/vault.img")
    """

    #: External programs this operator shells out to
    required_commands: tuple[str, ...] = ()

    def __init__(self, timeout: float | None = None) -> None:
        """Initialize the operator.

        Args:
            timeout: Per-command timeout in seconds, or None for no limit.
        """
        self._timeout = timeout

    @property
    def timeout(self) -> float | None:
        """Per-command timeout in seconds."""
        return self._timeout

    def is_available(self) -> bool:
        """Check if every required command is installed.

        Returns:
            True if the operator can be used, False otherwise.
        """
        return all(command_exists(cmd) for cmd in self.required_commands)

    def _run(
        self,
        args: list[str],
        description: str,
        *,
        input: bytes | bytearray | None = None,  # noqa: A002
    ) -> CommandResult:
        """Run a command and raise on non-zero exit.

        Args:
            args: Command and arguments.
            description: What the command does, used in the error message.
            input: Optional stdin bytes.

        Returns:
            The successful CommandResult.

        Raises:
            ExternalToolError: If the command exits non-zero or cannot start.
        """
        try:
            result = run_command(args, timeout=self._timeout, input=input)
        except OSError as e:
            msg = f"Failed to {description}: {e}"
            raise ExternalToolError(msg, command=args[0], returncode=-1) from e

        if not result.success:
            logger.debug("%s exited with %d", args[0], result.returncode)
            msg = f"Failed to {description}: {args[0]} exited with status {result.returncode}"
            raise ExternalToolError(
                msg,
                command=args[0],
                returncode=result.returncode,
                stderr=result.diagnostic,
            )
        return result
