"""Logging helpers."""
from __future__ import annotations

import logging
import os
from logging import Logger

LOG_FORMAT = "%(asctime)s | %(levelname)8s | %(name)s | %(message)s"

# Client libraries that log every upstream request at INFO.
NOISY_LOGGERS = ("httpx", "httpcore")


def debug_enabled() -> bool:
    return os.getenv("DEBUG_LOGS", "").strip().lower() == "true"


def configure_logging(level: int = logging.INFO) -> None:
    debug = debug_enabled()
    logging.basicConfig(level=logging.DEBUG if debug else level, format=LOG_FORMAT)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO if debug else logging.WARNING)


def get_logger(name: str) -> Logger:
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)
