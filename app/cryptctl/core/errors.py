"""Exception hierarchy for cryptctl.

Every failure surfaced to callers derives from :class:`CryptctlError` so
the CLI can report it uniformly.
"""


class CryptctlError(Exception):
    """Base exception for cryptctl errors."""


class ContainerNotFoundError(CryptctlError):
    """Raised when a container, mount or credential file is absent."""


class AlreadyActiveError(CryptctlError):
    """Raised when a container is already open or mounted."""


class PreconditionError(CryptctlError):
    """Raised when a request is rejected before any mutation runs."""


class AuthenticationError(CryptctlError):
    """Raised when cryptsetup rejects the supplied passphrase or keyfile."""


class ExternalToolError(CryptctlError):
    """Raised when an external command exits non-zero.

    Attributes:
        command: Program name that failed.
        returncode: Exit status.
        stderr: Raw diagnostic text captured from the tool.
    """

    def __init__(self, message: str, *, command: str = "", returncode: int = 1, stderr: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        if stderr:
            message = f"{message}\n{stderr}"
        super().__init__(message)


class DiscoveryError(CryptctlError):
    """Raised when the OS state needed for discovery cannot be read at all."""


class PartialMutationError(CryptctlError):
    """Raised when a later step fails after earlier steps committed.

    Attributes:
        committed: Human-readable names of the steps that already took effect.
        remedy: Command(s) to run to finish the operation by hand.
    """

    def __init__(self, message: str, *, committed: list[str], remedy: str, cause: str = "") -> None:
        self.committed = list(committed)
        self.remedy = remedy
        lines = [message]
        if cause:
            lines.append(cause)
        lines.append("Already completed: " + ", ".join(self.committed))
        lines.append(f"To finish manually run:\n{remedy}")
        super().__init__("\n".join(lines))


class CleanupError(CryptctlError):
    """Raised when one or more release actions fail.

    Attributes:
        errors: Failures in the order the release actions ran.
    """

    def __init__(self, errors: list[Exception]) -> None:
        self.errors = list(errors)
        details = "; ".join(str(e) for e in self.errors)
        super().__init__(f"cleanup errors: {details}")


class ConfigError(CryptctlError):
    """Raised when the configuration file is unreadable or invalid."""
