"""Logging for the zap logger hierarchy.

Every module logs to a child of the "zap" logger (zap.issues.store,
zap.services.git.history, ...). configure_logging() attaches one stream
handler to "zap" and stops propagation, so an embedding application keeps
control of the root logger and its own handlers.

What each level shows:
- ERROR: failures that abort an operation
- WARNING: unparseable files, per-file repair and migration failures
- INFO: state transitions, renumbers, migrations
- DEBUG: single file reads and writes, git lookups

Set logging.level and logging.format in .zap.yaml, or LOGGING_LEVEL and
LOGGING_FORMAT in the environment.
"""

import logging
from typing import TextIO

from zap.config import LoggingConfig

ROOT_LOGGER = "zap"

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class _ZapHandler(logging.StreamHandler):
    """Marker type so reconfiguring replaces our handler and leaves others alone."""


def level_from_name(name: str) -> int | None:
    """Logging constant for a level name (case and surrounding blanks ignored); None if unsupported."""
    return LEVELS.get(name.strip().upper())


def configure_logging(config: LoggingConfig, stream: TextIO | None = None) -> logging.Logger:
    """Apply config to the "zap" logger and return it.

    Safe to call repeatedly: the previous zap handler is removed first.
    An unsupported level falls back to INFO with a warning.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in [h for h in logger.handlers if isinstance(h, _ZapHandler)]:
        logger.removeHandler(handler)
        handler.close()

    handler = _ZapHandler(stream)
    handler.setFormatter(logging.Formatter(config.format or DEFAULT_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False

    level = level_from_name(config.level)
    logger.setLevel(logging.INFO if level is None else level)
    if level is None:
        logger.warning("Unknown log level %r, using INFO", config.level)
    return logger
