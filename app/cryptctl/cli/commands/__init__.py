"""CLI commands for cryptctl.

This package contains all subcommand implementations.
"""

from cryptctl.cli.commands import config, create, listing, mount, password, resize, unmount

__all__ = ["config", "create", "listing", "mount", "password", "resize", "unmount"]
