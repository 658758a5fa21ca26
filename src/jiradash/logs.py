from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from jiradash.config import AppConfig
from jiradash.errors import FatalStartupError

LOGGER_NAME = "jiradash"


def setup_logging(config: AppConfig) -> logging.Logger:
    """Send package logs to a rotating file; the terminal belongs to the UI."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    path = Path(config.log_path).expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(path, maxBytes=2_000_000, backupCount=2, encoding="utf-8")
    except OSError as e:
        raise FatalStartupError(f"cannot open log file {path}: {e}") from e
    handler.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    return logger
