"""Logging utilities for repolens commands and library code."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

_LOGGER_NAME = "repolens"

_CONSOLE_FORMAT = "[repolens] %(levelname)s %(message)s"
# Verbose runs show which stage (matcher, processor, scoring...) logged the line.
_VERBOSE_CONSOLE_FORMAT = "[repolens] %(levelname)s %(name)s: %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s]: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the repolens hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Send repolens logs to stderr (and optionally a file).

    Rendered output goes to stdout, so console logging never shares that
    stream. Calling this again replaces the handlers from the previous call.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter(_VERBOSE_CONSOLE_FORMAT if verbose else _CONSOLE_FORMAT))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


@dataclass
class StageTiming:
    """Wall-clock duration of one pipeline stage, filled in when the stage ends."""

    stage: str
    elapsed_ms: float = 0.0


@contextmanager
def log_duration(
    logger: logging.Logger, stage: str, *, level: int = logging.DEBUG
) -> Iterator[StageTiming]:
    """Time the enclosed block and log ``<stage> finished in <n>ms``.

    The duration is recorded even when the block raises, and the exception
    propagates unchanged.
    """
    timing = StageTiming(stage)
    started = time.perf_counter()
    try:
        yield timing
    finally:
        timing.elapsed_ms = (time.perf_counter() - started) * 1000
        logger.log(level, "%s finished in %.1fms", stage, timing.elapsed_ms)


__all__ = ["StageTiming", "configure_logging", "get_logger", "log_duration"]
