"""Logging configuration for applications built on sqlsession."""

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Session and transaction activity gets its own file
FILE_LOGGERS = ["sqlsession.session", "sqlsession.commands"]


def get_log_level() -> str:
    """Return the level name from SQLSESSION_LOG_LEVEL (default INFO)."""
    return os.environ.get("SQLSESSION_LOG_LEVEL", "INFO").upper()


def setup_logging(level: Optional[Union[int, str]] = None, log_dir: str = "logs") -> None:
    """Attach a console handler to the root logger and rotating files per FILE_LOGGERS.

    Files are 5 MB max with 3 backups under `log_dir/`. Does nothing if the
    root logger already has handlers.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    if level is None:
        level = get_log_level()
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)
    root.addHandler(console)

    os.makedirs(log_dir, exist_ok=True)
    for name in FILE_LOGGERS:
        handler = RotatingFileHandler(
            os.path.join(log_dir, f"{name.replace('.', '_')}.log"),
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
        )
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logging.getLogger(name).addHandler(handler)
