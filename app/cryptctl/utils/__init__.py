"""Utility modules for cryptctl.

This module exports commonly used utility functions.
"""

from cryptctl.utils.formatting import (
    console,
    err_console,
    format_size,
    parse_size,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from cryptctl.utils.shell import CommandResult, command_exists, run_command

__all__ = [
    "CommandResult",
    "command_exists",
    "console",
    "err_console",
    "format_size",
    "parse_size",
    "print_error",
    "print_info",
    "print_success",
    "print_warning",
    "run_command",
]
