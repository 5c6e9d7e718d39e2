"""Authentication methods for LUKS operations.

A container is unlocked either with a passphrase or with a keyfile.
Each method knows two ways of attaching itself to a cryptsetup request:

* ``apply_current`` - the credential that unlocks the container now
  (open, format, resize, and the first half of luksChangeKey);
* ``apply_new`` - the replacement credential of luksChangeKey.

The split exists because cryptsetup reads one stdin line per pending
prompt: the current passphrase line must precede the new one in a single
stream, and a new keyfile is positional rather than ``--key-file``.
"""

from dataclasses import dataclass, field

from cryptctl.core.secret import SecretBuffer, wipe_bytearray


@dataclass(slots=True)
class CryptsetupRequest:
    """A cryptsetup invocation under construction.

    Attributes:
        args: Full argument vector, starting with "cryptsetup".
        stdin: Shared input stream, or None when nothing is piped.
    """

    args: list[str]
    stdin: bytearray | None = field(default=None)

    def add_line(self, secret: SecretBuffer) -> None:
        """Append one newline-terminated secret to the shared stream."""
        if self.stdin is None:
            self.stdin = bytearray()
        secret.write_to(self.stdin)
        self.stdin.append(ord("\n"))

    def wipe(self) -> None:
        """Zero-fill the input stream once the command has run."""
        wipe_bytearray(self.stdin)
        self.stdin = None


@dataclass(frozen=True, slots=True)
class PasswordAuth:
    """Passphrase authentication.

    The secret is owned by whoever built this object; that owner wipes it.
    """

    secret: SecretBuffer

    @property
    def kind(self) -> str:
        return "password"

    def apply_current(self, request: CryptsetupRequest) -> None:
        if self.secret.wiped:
            msg = "Passphrase has already been wiped"
            raise ValueError(msg)
        request.add_line(self.secret)

    def apply_new(self, request: CryptsetupRequest) -> None:
        # Goes after the current passphrase line when one exists.
        self.apply_current(request)

    def wipe(self) -> None:
        self.secret.wipe()


@dataclass(frozen=True, slots=True)
class KeyfileAuth:
    """Keyfile authentication.

    Attributes:
        path: Canonical path of the keyfile.
    """

    path: str

    def __post_init__(self) -> None:
        if not self.path:
            msg = "Keyfile path cannot be empty"
            raise ValueError(msg)

    @property
    def kind(self) -> str:
        return "keyfile"

    def apply_current(self, request: CryptsetupRequest) -> None:
        request.args.extend(["--key-file", self.path])

    def apply_new(self, request: CryptsetupRequest) -> None:
        # cryptsetup luksChangeKey <device> [<new key file>]
        request.args.append(self.path)

    def wipe(self) -> None:
        """Keyfiles hold no in-process secret."""


AuthMethod = PasswordAuth | KeyfileAuth
