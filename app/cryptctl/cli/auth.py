"""Credential input for CLI commands.

Passphrases are read either from a hidden prompt or, for automation,
one line at a time from stdin. Every secret read here is wiped when the
``with`` block that obtained it exits.
"""

import sys
from collections.abc import Iterator
from contextlib import contextmanager

import typer

from cryptctl.core.errors import PreconditionError
from cryptctl.core.secret import SecretBuffer
from cryptctl.models.auth import AuthMethod, KeyfileAuth, PasswordAuth
from cryptctl.utils.system import validate_keyfile_path


def read_stdin_secret() -> SecretBuffer:
    """Read one passphrase line from stdin.

    Raises:
        PreconditionError: If stdin is exhausted or the line is empty.
    """
    raw = bytearray(sys.stdin.buffer.readline())
    if raw.endswith(b"\n"):
        raw.pop()
    if raw.endswith(b"\r"):
        raw.pop()
    if not raw:
        msg = "Failed to read passphrase from stdin: no input"
        raise PreconditionError(msg)
    return SecretBuffer(raw)


def prompt_secret(prompt: str) -> SecretBuffer:
    """Prompt for a passphrase without echo.

    Raises:
        PreconditionError: If the passphrase is empty.
    """
    value = typer.prompt(prompt, hide_input=True, err=True, default="", show_default=False)
    if not value:
        msg = "Passphrase cannot be empty"
        raise PreconditionError(msg)
    data = bytearray(value.encode("utf-8"))
    return SecretBuffer(data)


def read_secret(prompt: str, *, from_stdin: bool) -> SecretBuffer:
    if from_stdin:
        return read_stdin_secret()
    return prompt_secret(prompt)


@contextmanager
def obtain_auth(
    keyfile: str | None,
    *,
    password_stdin: bool = False,
    confirm: bool = False,
    prompt: str = "Enter passphrase",
    confirm_prompt: str = "Confirm passphrase",
    warn_permissions: bool = True,
) -> Iterator[AuthMethod]:
    """Yield the auth method selected by the command-line flags.

    A keyfile wins over a passphrase. With ``confirm`` the passphrase is
    read twice and both copies must match.

    Raises:
        ContainerNotFoundError: If the keyfile does not exist.
        PreconditionError: If the input is invalid or passphrases differ.
    """
    if keyfile:
        yield KeyfileAuth(validate_keyfile_path(keyfile, warn_permissions=warn_permissions))
        return

    with read_secret(prompt, from_stdin=password_stdin) as secret:
        if confirm:
            with read_secret(confirm_prompt, from_stdin=password_stdin) as again:
                if not secret.equals(again):
                    msg = "Passphrases don't match"
                    raise PreconditionError(msg)
        yield PasswordAuth(secret)

