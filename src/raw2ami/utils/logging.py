"""Rich console logging for raw2ami.

Every module logs through get_logger(__name__), which gives each `raw2ami.*`
logger its own RichHandler at INFO. The CLI raises or lowers all of them at
once with set_log_level().
"""

from __future__ import annotations

import logging

from rich.logging import RichHandler

ROOT_LOGGER = "raw2ami"


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a raw2ami module, attaching a RichHandler once."""
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = RichHandler(
            show_time=True,
            show_path=False,
            markup=True,
            rich_tracebacks=True,
        )
        handler.setLevel(logging.DEBUG)
        formatter = logging.Formatter("%(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)

    return logger


def set_log_level(level: str) -> None:
    """Set log level (DEBUG, INFO, WARNING, ERROR) for every raw2ami logger."""
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.getLogger(ROOT_LOGGER).setLevel(numeric)
    # Module loggers carry their own level once get_logger() has run
    for name, logger in logging.Logger.manager.loggerDict.items():
        if name.startswith(ROOT_LOGGER + ".") and isinstance(logger, logging.Logger):
            logger.setLevel(numeric)
