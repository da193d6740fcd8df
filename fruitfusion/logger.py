# fruitfusion/logger.py
from __future__ import annotations

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

from fruitfusion.config import Settings, load_settings

LOGGER_NAME = "fruitfusion"


def setup_logger(settings: Optional[Settings] = None) -> logging.Logger:
    """
    Configure the package logger.

    - Daily rotating log file under settings.log_dir
    - Console + file output with one shared format
    - Safe to call repeatedly; handlers are only attached once

    Module loggers (logging.getLogger(__name__)) propagate here.
    """
    settings = settings or load_settings()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, settings.log_level, logging.INFO))

    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    file_handler = TimedRotatingFileHandler(
        filename=log_dir / "fruitfusion.log",
        when="midnight",
        interval=1,
        backupCount=7,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    logger.info("Logger initialized (daily rotation enabled)")
    return logger
