"""Console logging setup for the player backend."""

from __future__ import annotations

from datetime import datetime
import logging
import sys

ROOT_LOGGER = "protectedplayer"


class PrefixedFormatter(logging.Formatter):
    """Format records as `[area] HH:MM:SS LEVEL message`."""

    def format(self, record: logging.LogRecord) -> str:
        area = record.name.removeprefix(f"{ROOT_LOGGER}.").removeprefix("backend.")
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"[{area}] {timestamp} {record.levelname:<8} {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(level: str | int = logging.INFO) -> logging.Logger:
    """Attach a single console handler to the package logger."""
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(PrefixedFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger
