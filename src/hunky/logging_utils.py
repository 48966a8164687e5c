"""Logging helpers for hunky.

configure_logging installs handlers on the package logger from an explicit
Settings value. Nothing is configured implicitly at import time.
"""

from __future__ import annotations

import logging

from hunky.config import Settings

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": TRACE,
}

PACKAGE_LOGGER = "hunky"
_HANDLER_MARK = "_hunky_handler"


def level_for(settings: Settings) -> int:
    return _LEVELS[settings.log_level]


def configure_logging(settings: Settings) -> logging.Logger:
    """Configure the hunky logger.

    When logging is disabled a NullHandler is installed so library records are
    discarded. Calling this again replaces the handler it installed earlier
    instead of stacking a second one.
    """

    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            logger.removeHandler(handler)
            handler.close()

    handler: logging.Handler
    if settings.log:
        handler = logging.FileHandler(settings.log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s %(name)s: %(message)s"))
        logger.setLevel(level_for(settings))
    else:
        handler = logging.NullHandler()
    setattr(handler, _HANDLER_MARK, True)
    logger.addHandler(handler)
    logger.propagate = not settings.log
    return logger


def filtered_events_enabled(settings: Settings) -> bool:
    return settings.log and settings.log_filtered_events
