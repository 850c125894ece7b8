"""Logging setup for the ``paleostress`` logger namespace."""

import logging
import os
import sys

LOGGER_NAME = "paleostress"
LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"
DATE_FORMAT = "%H:%M:%S"
LEVEL_ENV_VAR = "PALEOSTRESS_LOG_LEVEL"


def _resolve_level(level) -> int:
    if level is None:
        level = os.environ.get(LEVEL_ENV_VAR, "INFO")
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def setup_logging(level=None, log_file: str | None = None) -> logging.Logger:
    """Route package logs to stdout and, optionally, to ``log_file``.

    ``level`` is a logging constant or a name such as ``"debug"``; when
    omitted it is read from ``PALEOSTRESS_LOG_LEVEL`` (default INFO).
    Calling it again replaces the previous handlers, so the app can be
    reloaded without doubling every line.
    """
    level = _resolve_level(level)
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(level)

    logger.debug("Logging configured at %s", logging.getLevelName(level))
    return logger
