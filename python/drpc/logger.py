"""Logging setup for applications embedding drpc.

The library itself only logs through module loggers under "drpc"; nothing
is printed until the application calls configure_logging() or attaches
its own handlers.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional, Union


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logging.getLogger("drpc").addHandler(logging.NullHandler())


class SafeStreamHandler(logging.StreamHandler):
    """A StreamHandler that drops records when the stream would block.

    A congested stdout/stderr must not fill the console with logging
    error tracebacks.
    """

    def handleError(self, record):
        if isinstance(sys.exc_info()[1], BlockingIOError):
            return
        super().handleError(record)


def configure_logging(level: Union[int, str] = "INFO",
                      console: bool = True,
                      log_file: Optional[str] = None) -> logging.Logger:
    """Attach handlers to the "drpc" logger and set its level.

    Calling it again only updates the level; handlers are added once.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("drpc")
    logger.setLevel(level)

    # NullHandler doesn't count as configured
    configured = [h for h in logger.handlers if not isinstance(h, logging.NullHandler)]
    if not configured:
        if console:
            handler = SafeStreamHandler(sys.stderr)
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(handler)
        if log_file:
            # ~1MB per file, 3 backups
            file_handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(file_handler)

    return logger
