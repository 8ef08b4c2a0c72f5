"""
Logging setup shared by the controller and the worker process.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


BASE_LOGGER = "embedspace"


def configure_logging(level: str = "INFO", *, console: Console | None = None) -> logging.Logger:
    """
    Attach a rich handler to the package logger.

    Calling it again only updates the level, so the worker process and
    repeated CLI invocations never stack handlers.
    """
    logger = logging.getLogger(BASE_LOGGER)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logger.addHandler(handler)
        logger.propagate = False
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger
