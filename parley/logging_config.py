"""Shared logging configuration helpers."""

from __future__ import annotations

import logging
import sys
from logging import Handler
from pathlib import Path
from typing import List

from parley.config import Config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Transport libraries that log every frame or request at INFO/DEBUG.
NOISY_LOGGERS = ("websockets", "aiohttp.access", "httpx", "httpcore", "openai")


def _handler(handler: Handler, level: int) -> Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def configure_logging(config: Config, *, verbose: bool = False) -> None:
    """Configure application logging outputs from config."""
    log_level_name = str(config.logging.log_level).upper()
    log_level = getattr(logging, log_level_name, logging.INFO)
    debug = bool(config.developer.debug_mode)

    log_file = Path(config.logging.log_file).expanduser()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    handlers: List[Handler] = [_handler(logging.FileHandler(log_file, encoding="utf-8"), log_level)]
    if verbose or debug:
        handlers.append(_handler(logging.StreamHandler(sys.stderr), log_level))

    logging.basicConfig(level=log_level, handlers=handlers, force=True)
    if not debug:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(max(log_level, logging.WARNING))
    logging.getLogger(__name__).info("Logging initialized level=%s file=%s", log_level_name, log_file)
