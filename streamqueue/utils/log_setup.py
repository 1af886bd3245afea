"""
Console logging setup using Rich.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "streamqueue"


def configure_logging(
    level: str | int = "INFO", console: Console | None = None
) -> logging.Logger:
    """
    Attaches a RichHandler to the library's logger and sets its level.

    Calling it again replaces the previously installed handler instead of
    stacking a second one. The root logger is left alone.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
        show_level=False,
        markup=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger
