"""
Logging configuration: console output plus one log file per day.
"""

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

import config

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"


def configure_logging(log_dir: Optional[Path] = None, level: Optional[str] = None) -> None:
    root = logging.getLogger()
    if getattr(root, "_musify_configured", False):
        return

    root.setLevel(level or config.LOG_LEVEL)
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    directory = log_dir or config.LOG_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            directory / "musify.log", when="midnight", encoding="utf-8"
        )
        file_handler.suffix = "%Y-%m-%d"
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
    except OSError as e:
        root.warning("File logging disabled (%s): %s", directory, e)

    root._musify_configured = True
