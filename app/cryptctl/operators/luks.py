"""LUKS operator.

Wraps cryptsetup for formatting, opening, closing, resizing and
rewriting key slots. Secrets reach cryptsetup only through stdin buffers
that are zero-filled as soon as the command returns.
"""

import logging

from cryptctl.core.errors import AuthenticationError, ExternalToolError
from cryptctl.models.auth import AuthMethod, CryptsetupRequest
from cryptctl.operators.base import Operator
from cryptctl.utils.shell import CommandResult, run_command

logger = logging.getLogger(__name__)

# cryptsetup's message when no key slot accepts the credential
KEY_REJECTED = "No key available"

# luksChangeKey always rewrites this slot
KEY_SLOT = "0"


class LuksOperator(Operator):
    """Operator for LUKS containers.

    Attributes:
        luks_type: On-disk format passed to luksFormat.
    """

    required_commands = ("cryptsetup",)

    def __init__(self, timeout: float | None = None, luks_type: str = "luks2") -> None:
        super().__init__(timeout=timeout)
        self.luks_type = luks_type

    def is_luks(self, path: str) -> bool:
        """Check whether ``path`` carries a LUKS header."""
        result = run_command(["cryptsetup", "isLuks", path], timeout=self.timeout)
        return result.success

    def format(self, path: str, auth: AuthMethod) -> None:
        """Write a new LUKS header to ``path``."""
        request = CryptsetupRequest(["cryptsetup", "luksFormat", "--batch-mode", "--type", self.luks_type, path])
        auth.apply_current(request)
        self.submit(request, "format LUKS container")
        logger.info("Formatted %s as %s", path, self.luks_type)

    def open(self, device: str, mapper_name: str, auth: AuthMethod) -> None:
        """Open ``device`` as ``/dev/mapper/<mapper_name>``."""
        request = CryptsetupRequest(["cryptsetup", "luksOpen", device, mapper_name])
        auth.apply_current(request)
        self.submit(request, "open LUKS container")
        logger.info("Opened %s as %s", device, mapper_name)

    def close(self, mapper_name: str) -> None:
        """Close an open mapper."""
        self._run(["cryptsetup", "luksClose", mapper_name], f"close LUKS container {mapper_name}")
        logger.info("Closed %s", mapper_name)

    def resize(self, mapper_name: str, auth: AuthMethod) -> None:
        """Grow an open mapper to the full size of its backing device.

        Re-authentication is required because this rewrites metadata.
        """
        request = CryptsetupRequest(["cryptsetup", "resize", mapper_name])
        auth.apply_current(request)
        self.submit(request, "resize LUKS container")

    def change_key(self, path: str, current: AuthMethod, new: AuthMethod) -> None:
        """Replace the credential in key slot 0.

        The current credential is applied before the new one: cryptsetup
        consumes one stdin line per prompt, current passphrase first.
        """
        request = build_change_key_request(path, current, new)
        self.submit(request, "change LUKS credentials")

    def submit(self, request: CryptsetupRequest, description: str) -> CommandResult:
        """Run a prepared request and wipe its input stream afterwards.

        Raises:
            AuthenticationError: If cryptsetup rejected the credential.
            ExternalToolError: For any other failure.
        """
        try:
            try:
                result = run_command(request.args, timeout=self.timeout, input=request.stdin)
            except OSError as e:
                msg = f"Failed to {description}: {e}"
                raise ExternalToolError(msg, command="cryptsetup", returncode=-1) from e
        finally:
            request.wipe()

        if not result.success:
            if is_key_rejection(result):
                msg = f"Failed to {description}: incorrect passphrase or keyfile"
                raise AuthenticationError(msg)
            msg = f"Failed to {description}: cryptsetup exited with status {result.returncode}"
            raise ExternalToolError(
                msg,
                command="cryptsetup",
                returncode=result.returncode,
                stderr=result.diagnostic,
            )
        return result


def build_change_key_request(path: str, current: AuthMethod, new: AuthMethod) -> CryptsetupRequest:
    """Compose ``cryptsetup luksChangeKey --key-slot 0 <path>`` for an auth pair."""
    request = CryptsetupRequest(["cryptsetup", "luksChangeKey", "--key-slot", KEY_SLOT, path])
    try:
        current.apply_current(request)
        new.apply_new(request)
    except Exception:
        request.wipe()
        raise
    return request


def is_key_rejection(result: CommandResult) -> bool:
    """Detect cryptsetup's wrong-credential signal."""
    return KEY_REJECTED in result.stderr or KEY_REJECTED in result.stdout
