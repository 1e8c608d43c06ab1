"""Opt-in logging configuration backed by Rich.

The library itself only creates module loggers under the
``stream_assembler`` namespace and never configures handlers on import.
Applications that want readable console output call
:func:`configure_logging` once at start-up.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER: str = "stream_assembler"


def configure_logging(
    level: int | str = logging.INFO,
    *,
    console: Console | None = None,
    show_path: bool = False,
) -> logging.Logger:
    """Attach a single :class:`~rich.logging.RichHandler` to the package logger.

    Calling this more than once replaces the previously installed handler
    rather than stacking duplicates.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console if console is not None else Console(stderr=True),
        show_path=show_path,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger
