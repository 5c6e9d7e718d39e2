"""Shared helpers for CLI commands.

Builds the discovery engine and operators from the loaded configuration
and turns library errors into a uniform exit.
"""

from typing import NoReturn

import typer

from cryptctl.core.config import CryptctlConfig
from cryptctl.core.discovery import Discovery
from cryptctl.core.errors import CryptctlError, PreconditionError
from cryptctl.core.lifecycle import ContainerManager
from cryptctl.scanners.mounts import MountScanner
from cryptctl.utils.formatting import print_error
from cryptctl.utils.shell import missing_commands

# Tools every container command shells out to
BASE_COMMANDS = ["cryptsetup", "losetup", "mount", "umount", "dmsetup", "df"]


def get_config(ctx: typer.Context) -> CryptctlConfig:
    """Return the configuration loaded by the main callback."""
    obj = ctx.find_root().obj
    if isinstance(obj, dict) and isinstance(obj.get("config"), CryptctlConfig):
        return obj["config"]
    return CryptctlConfig()


def get_discovery(config: CryptctlConfig) -> Discovery:
    """Create a discovery engine reading the configured mount table."""
    return Discovery(mount_scanner=MountScanner(config.mount_table))


def get_manager(config: CryptctlConfig) -> ContainerManager:
    """Create a lifecycle manager from configuration."""
    return ContainerManager.default(
        timeout=config.command_timeout,
        luks_type=config.luks_type,
        mount_options=config.mount_options,
        discovery=get_discovery(config),
    )


def check_dependencies(extra: list[str] | None = None) -> None:
    """Ensure the external tools are installed.

    Raises:
        PreconditionError: Naming every missing command.
    """
    missing = missing_commands(BASE_COMMANDS + list(extra or []))
    if missing:
        msg = f"Missing required commands: {', '.join(missing)}"
        raise PreconditionError(msg)


def exit_with_error(error: CryptctlError) -> NoReturn:
    """Print a library error and exit with status 1."""
    print_error(str(error))
    raise typer.Exit(code=1) from error
