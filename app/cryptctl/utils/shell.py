"""Shell execution utilities.

Provides subprocess execution for the external storage tools
(cryptsetup, dmsetup, losetup, mount, df, ...) with captured output,
optional secret stdin and redacted debug logging.
"""

import logging
import shutil
import subprocess
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Flags whose following argument must never reach a log line
_SENSITIVE_FLAGS = frozenset({"--key-file", "-k"})

REDACTED = "[REDACTED]"


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Result of a shell command execution.

    Attributes:
        stdout: Standard output from the command.
        stderr: Standard error from the command.
        returncode: Exit code of the command.
    """

    stdout: str
    stderr: str
    returncode: int

    @property
    def success(self) -> bool:
        """Check if command executed successfully."""
        return self.returncode == 0

    @property
    def diagnostic(self) -> str:
        """Best available failure text (stderr, then stdout)."""
        return self.stderr.strip() or self.stdout.strip() or f"exit status {self.returncode}"


def sanitize_command(args: list[str], *, has_input: bool = False) -> str:
    """Render a command line for logging with key material redacted.

    Values following ``--key-file``/``-k`` are replaced, as is the
    positional new keyfile of ``cryptsetup luksChangeKey``.

    Args:
        args: Command and arguments.
        has_input: Whether data is piped to the command's stdin.

    Returns:
        Printable command string.
    """
    shown = list(args)
    for i in range(len(shown) - 1):
        if shown[i] in _SENSITIVE_FLAGS:
            shown[i + 1] = REDACTED

    # cryptsetup luksChangeKey --key-slot 0 <device> [<new keyfile>]
    if len(shown) > 5 and shown[1] == "luksChangeKey":
        shown[-1] = REDACTED

    rendered = " ".join(shown)
    if has_input:
        rendered += " < [STDIN]"
    return rendered


def run_command(
    args: list[str],
    *,
    check: bool = False,
    timeout: float | None = None,
    cwd: str | None = None,
    input: bytes | bytearray | None = None,  # noqa: A002
) -> CommandResult:
    """Execute a shell command and return the result.

    No timeout is applied by default; the storage tools enforce their own.

    Args:
        args: Command and arguments to execute.
        check: If True, raise CalledProcessError on non-zero exit.
        timeout: Maximum time in seconds to wait for command.
        cwd: Working directory for the command. If None, uses current directory.
        input: Bytes written to the command's stdin. The caller keeps
            ownership and is responsible for wiping secret material.

    Returns:
        CommandResult with stdout, stderr, and returncode.

    Raises:
        subprocess.CalledProcessError: If check=True and command fails.
        subprocess.TimeoutExpired: If command exceeds timeout.
        FileNotFoundError: If command executable is not found.
    """
    logger.debug("Executing: %s", sanitize_command(args, has_input=input is not None))

    result = subprocess.run(
        args,
        capture_output=True,
        check=check,
        timeout=timeout,
        cwd=cwd,
        input=input,
    )
    return CommandResult(
        stdout=_decode(result.stdout),
        stderr=_decode(result.stderr),
        returncode=result.returncode,
    )


def _decode(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, str):
        return data
    return data.decode("utf-8", "replace")


def command_exists(name: str) -> bool:
    """Check if a command exists in the system PATH.

    Args:
        name: Command name to check.

    Returns:
        True if command exists, False otherwise.
    """
    return shutil.which(name) is not None


def missing_commands(names: list[str]) -> list[str]:
    """Return the subset of ``names`` not found in PATH, in order."""
    return [name for name in names if not command_exists(name)]
