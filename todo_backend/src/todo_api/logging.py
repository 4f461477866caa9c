"""Console logging setup for the Todo Server.

The application logs through module-level loggers under the ``todo_api``
namespace. ``configure_logging`` applies the configured level to that
namespace and attaches a Rich console handler to the root logger unless the
host process has already installed one.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

PROJECT_LOGGER = "todo_api"


def config_console_handler(level: int | str = logging.INFO) -> RichHandler:
    """Return a RichHandler writing to stderr at the given level."""
    handler = RichHandler(
        level=level,
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter(fmt="%(name)s: %(message)s"))
    return handler


def configure_logging(level: int | str = logging.INFO) -> logging.Logger:
    """
    Set the project logger level and make sure its records reach a handler.

    Args:
        level: Level name or number, e.g. "DEBUG".

    Returns:
        The ``todo_api`` logger.
    """
    root = logging.getLogger()
    if not root.handlers:
        root.addHandler(config_console_handler(level))

    logger = logging.getLogger(PROJECT_LOGGER)
    logger.setLevel(level)
    return logger
