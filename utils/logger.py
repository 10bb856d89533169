"""Logging helpers for the reader; the library itself only emits through module loggers."""

from __future__ import annotations

import logging
import sys
from typing import Any

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given module/component. No side effects."""
    return logging.getLogger(name)


def setup_logging(
    level: str = "INFO",
    format_string: str | None = None,
    stream: Any = None,
) -> None:
    """
    Configure root logger for applications embedding the reader. Safe to call from tests.
    Unknown level names fall back to INFO.
    """
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format=format_string or LOG_FORMAT,
        datefmt="%Y-%m-%dT%H:%M:%S",
        stream=stream or sys.stderr,
        force=True,
    )


def log_structured(logger: logging.Logger, level: int, msg: str, **kwargs: Any) -> None:
    """Emit a log record with extra keys (document, pages, strategy...) for structured aggregation."""
    logger.log(level, msg, extra={f"pdf_{k}": v for k, v in kwargs.items()})


PACKAGE_LOGGERS = ("core", "extraction", "pipeline", "providers", "utils")


def apply_log_level(level: str) -> None:
    """Set the level of this library's loggers only; root handlers stay with the application."""
    resolved = getattr(logging, (level or "INFO").upper(), None)
    if not isinstance(resolved, int):
        logging.getLogger(__name__).warning("Unknown log level %r; keeping current levels", level)
        return
    for name in PACKAGE_LOGGERS:
        logging.getLogger(name).setLevel(resolved)
