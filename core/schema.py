"""
Pydantic schemas for caller-supplied options. Used by the reader facade and OCR providers.
"""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.exceptions import ConfigError

DEFAULT_OCR_LANGUAGE = "eng"


# ---------------------------------------------------------------------------
# Text extraction
# ---------------------------------------------------------------------------


class ExtractTextOptions(BaseModel):
    """Options for extract_text. Page numbers are 1-based; invalid ones are dropped later."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    pages: list[int] | None = None
    merge_pages: bool = False
    skip_ocr_fallback: bool = False
    preserve_formatting: bool = False
    ocr_language: str | None = None

    @field_validator("pages", mode="before")
    @classmethod
    def drop_non_integer_pages(cls, v: Any) -> Any:
        # bool is an int subclass and "2" would be coerced; neither names a page
        if isinstance(v, (list, tuple)):
            return [p for p in v if isinstance(p, int) and not isinstance(p, bool)]
        return v

    @field_validator("ocr_language")
    @classmethod
    def language_stripped(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


# ---------------------------------------------------------------------------
# OCR
# ---------------------------------------------------------------------------


class OCROptions(BaseModel):
    """Options for perform_ocr. confidence_threshold only filters returned detections."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    language: str = DEFAULT_OCR_LANGUAGE
    confidence_threshold: float = Field(default=0.0, ge=0.0, le=100.0)
    output_format: Literal["text", "detailed"] = "detailed"
    enhance_resolution: bool = False

    @field_validator("language")
    @classmethod
    def language_non_empty(cls, v: str) -> str:
        v = (v or "").strip()
        return v or DEFAULT_OCR_LANGUAGE


def coerce_options(model: type[BaseModel], options: Any) -> Any:
    """Accept a model instance, a dict or None; raise ConfigError on invalid values."""
    if options is None:
        return model()
    if isinstance(options, model):
        return options
    try:
        if isinstance(options, dict):
            return model(**options)
        return model.model_validate(options)
    except ValidationError as e:
        raise ConfigError(f"Invalid {model.__name__}: {e}") from e
    except TypeError as e:
        raise ConfigError(f"Invalid {model.__name__}: {e}") from e
