"""Shared utilities: config, logger, lazy backend initialization."""

from utils.config import ReaderConfig, load_config
from utils.logger import get_logger, setup_logging, log_structured, apply_log_level
from utils.lazy import LazyBackend, LazyBackendPool

__all__ = [
    "ReaderConfig",
    "load_config",
    "get_logger",
    "setup_logging",
    "log_structured",
    "apply_log_level",
    "LazyBackend",
    "LazyBackendPool",
]
