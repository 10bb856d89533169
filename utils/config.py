"""
Configuration loader: built-in defaults < YAML < env < explicit call-site options.
Invalid env values are ignored (default kept); invalid explicit values raise ConfigError.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from core.exceptions import ConfigError

try:
    from dotenv import load_dotenv
    load_dotenv()
except ImportError:
    pass  # optional: run with env vars only

try:
    import yaml
    YAML_AVAILABLE = True
except ImportError:
    YAML_AVAILABLE = False

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024

# env var -> (config field, type)
ENV_VARS: dict[str, tuple[str, type]] = {
    "PDF_PROVIDER": ("provider", str),
    "PDF_ENABLE_OCR": ("enable_ocr", bool),
    "PDF_TIMEOUT_SEC": ("timeout_sec", float),
    "PDF_MAX_FILE_SIZE": ("max_file_size", int),
    "OCR_LANGUAGE": ("ocr_language", str),
    "OCR_DPI": ("ocr_dpi", int),
    "LOG_LEVEL": ("log_level", str),
}

# older names, read when the primary var is unset: alias -> (primary var, scale)
# HAVE_PDF_TIMEOUT is in milliseconds
ENV_ALIASES: dict[str, tuple[str, float]] = {
    "HAVE_PDF_PROVIDER": ("PDF_PROVIDER", 1.0),
    "HAVE_PDF_ENABLE_OCR": ("PDF_ENABLE_OCR", 1.0),
    "HAVE_PDF_TIMEOUT": ("PDF_TIMEOUT_SEC", 0.001),
    "HAVE_PDF_MAX_FILE_SIZE": ("PDF_MAX_FILE_SIZE", 1.0),
}


def _coerce_bool(s: Any) -> bool:
    if isinstance(s, bool):
        return s
    return (str(s).strip().lower() in ("1", "true", "yes", "on")) if s else False


def _coerce(value: Any, kind: type) -> Any:
    """Coerce value to kind; raise ValueError when it cannot be parsed."""
    if value is None:
        return None
    if kind is bool:
        return _coerce_bool(value)
    if kind is int:
        if isinstance(value, bool):
            raise ValueError(f"expected integer, got {value!r}")
        return int(str(value).strip())
    if kind is float:
        return float(str(value).strip())
    return str(value).strip()


@dataclass(frozen=True)
class ReaderConfig:
    """Immutable reader configuration."""

    provider: str = "auto"
    enable_ocr: bool = True
    timeout_sec: float | None = None
    max_file_size: int | None = DEFAULT_MAX_FILE_SIZE
    ocr_language: str = "eng"
    ocr_dpi: int = 300
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.timeout_sec is not None and self.timeout_sec <= 0:
            raise ConfigError(f"timeout_sec must be positive, got {self.timeout_sec}")
        if self.max_file_size is not None and self.max_file_size <= 0:
            raise ConfigError(f"max_file_size must be positive, got {self.max_file_size}")
        if self.ocr_dpi <= 0:
            raise ConfigError(f"ocr_dpi must be positive, got {self.ocr_dpi}")

    def with_overrides(self, **overrides: Any) -> ReaderConfig:
        """Return new config with replaced keys. None values keep the current value."""
        known = {f.name: f for f in fields(self)}
        changes: dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in known:
                raise ConfigError(f"Unknown reader option: {key}")
            if value is None:
                continue
            kind = _FIELD_TYPES[key]
            try:
                changes[key] = _coerce(value, kind)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid value for {key}: {value!r}") from e
        return replace(self, **changes) if changes else self


_FIELD_TYPES: dict[str, type] = {
    "provider": str,
    "enable_ocr": bool,
    "timeout_sec": float,
    "max_file_size": int,
    "ocr_language": str,
    "ocr_dpi": int,
    "log_level": str,
}


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    if not YAML_AVAILABLE:
        logger.warning("PyYAML not installed; ignoring %s", path)
        return {}
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        return {}
    # Accept either a flat mapping or one nested under "reader"
    section = data.get("reader", data)
    return section if isinstance(section, dict) else {}


def _env_lookup(var: str) -> tuple[str, str | None, float]:
    """(name actually read, raw value, scale). Falls back to an alias when var is unset."""
    raw = os.getenv(var)
    if raw is not None and raw.strip():
        return var, raw, 1.0
    for alias, (primary, scale) in ENV_ALIASES.items():
        if primary != var:
            continue
        raw = os.getenv(alias)
        if raw is not None and raw.strip():
            return alias, raw, scale
    return var, None, 1.0


def _env_overrides() -> dict[str, Any]:
    out: dict[str, Any] = {}
    for var, (key, kind) in ENV_VARS.items():
        name, raw, scale = _env_lookup(var)
        if raw is None:
            continue
        try:
            value = _coerce(raw, kind)
        except ValueError:
            logger.warning("Ignoring %s=%r: not a valid %s", name, raw, kind.__name__)
            continue
        out[key] = value * scale if scale != 1.0 else value
    return out


def load_config(config_path: str | Path | None = None, **overrides: Any) -> ReaderConfig:
    """
    Load config from YAML file, then env, then explicit overrides.
    Env vars: PDF_PROVIDER, PDF_ENABLE_OCR, PDF_TIMEOUT_SEC, PDF_MAX_FILE_SIZE, OCR_LANGUAGE, OCR_DPI, LOG_LEVEL.
    HAVE_PDF_PROVIDER, HAVE_PDF_ENABLE_OCR, HAVE_PDF_TIMEOUT (ms), HAVE_PDF_MAX_FILE_SIZE are read when unset.
    """
    path = Path(config_path) if config_path else Path(os.getenv("PDF_READER_CONFIG", "config.yaml"))
    cfg = ReaderConfig()
    file_values = {k: v for k, v in _load_yaml(path).items() if k in _FIELD_TYPES}
    if file_values:
        cfg = cfg.with_overrides(**file_values)
    for key, value in _env_overrides().items():
        try:
            cfg = cfg.with_overrides(**{key: value})
        except ConfigError as e:
            logger.warning("Ignoring environment value for %s: %s", key, e)
    if overrides:
        cfg = cfg.with_overrides(**overrides)
    return cfg
