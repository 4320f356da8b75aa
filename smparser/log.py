"""Logging helpers."""

from __future__ import annotations
from typing import Callable
import logging

LogFunction = Callable[[str, str], None]

ENGINE_LOGGER_NAME = "smparser.engine"

# Categories emitted by the engine; anything else is an ad hoc diagnostic.
_CATEGORY_LEVELS = {
    "visit": logging.DEBUG,
    "trace": logging.DEBUG,
    "validation": logging.WARNING,
    "unhandled": logging.WARNING,
}


def engine_logger(name: str = ENGINE_LOGGER_NAME) -> LogFunction:
    """Build a logger sink that forwards engine categories to `logging`."""
    logger = logging.getLogger(name)

    def log(category: str, message: str) -> None:
        level = _CATEGORY_LEVELS.get(category, logging.DEBUG)
        if logger.isEnabledFor(level):
            logger.log(level, "[%s] %s", category, message)

    return log


def collecting_logger(entries: list[tuple[str, str]], forward: LogFunction | None = None) -> LogFunction:
    """Logger sink that records (category, message) pairs, e.g. for traces."""

    def log(category: str, message: str) -> None:
        entries.append((category, message))
        if forward is not None:
            forward(category, message)

    return log


def configure_logging(level: str = "INFO") -> None:
    """Setup Python logging for the CLI and the API server."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setLevel(log_level)
    handler.setFormatter(_build_formatter())
    logging.basicConfig(level=log_level, handlers=[handler], force=True)


def _build_formatter() -> logging.Formatter:
    fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    return logging.Formatter(fmt=fmt, datefmt=datefmt)
