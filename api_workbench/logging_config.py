"""
Logging setup for API Workbench.

The terminal belongs to the interface, so records go to a log file inside the
configuration directory. When the directory is unusable they go to stderr.
"""

import logging
import sys

from .config import Settings


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(settings: Settings, to_file: bool = True) -> logging.Logger:
    """Configure the package logger and return it."""
    logger = logging.getLogger("api_workbench")
    logger.setLevel(settings.log_level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handler: logging.Handler
    if to_file:
        try:
            handler = logging.FileHandler(settings.log_file, encoding="utf-8")
        except OSError:
            handler = logging.StreamHandler(sys.stderr)
    else:
        handler = logging.StreamHandler(sys.stderr)

    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
