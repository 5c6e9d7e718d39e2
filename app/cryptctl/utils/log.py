"""Logging setup for the command line.

Modules log through ``logging.getLogger(__name__)``; the CLI attaches a
single Rich handler on stderr to the ``cryptctl`` logger.
"""

import logging

from rich.logging import RichHandler

from cryptctl.utils.formatting import err_console

LOGGER_NAME = "cryptctl"


def level_for(*, verbose: bool = False, quiet: bool = False, debug: bool = False) -> int:
    """Map the global CLI flags to a log level. Debug output wins over quiet."""
    if debug or verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def setup_logging(level: int = logging.INFO, *, show_path: bool = False) -> logging.Logger:
    """Configure the package logger with a Rich handler.

    Calling it again only adjusts the level.

    Args:
        level: Minimum level emitted.
        show_path: Include the source location (used with --debug).

    Returns:
        The configured ``cryptctl`` logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=err_console, show_path=show_path, show_time=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)

    return logger
