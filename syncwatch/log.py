from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


LOGGER_NAME = "syncwatch"

LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _parse_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    return LEVEL_MAP.get(str(level).upper(), logging.INFO)


def setup_logging(level: str | int = logging.INFO, console: Console | None = None) -> logging.Logger:
    """Route the ``syncwatch`` logger hierarchy to a Rich console handler.

    Calling it again replaces the previous handler instead of stacking another.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()
    level_int = _parse_level(level)
    logger.setLevel(level_int)
    logger.propagate = False

    handler = RichHandler(
        console=console,
        level=level_int,
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
        log_time_format="[%X]",
    )
    logger.addHandler(handler)

    # botocore is chatty at INFO.
    logging.getLogger("botocore").setLevel(max(level_int, logging.WARNING))
    logging.getLogger("watchfiles").setLevel(max(level_int, logging.WARNING))
    return logger
