"""
Data models for the PDF reader.
Uses frozen dataclasses for value records; pydantic option schemas live in core.schema.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any


class Strategy(str, Enum):
    """Extraction path(s) recommended for a document."""

    TEXT = "text"
    OCR = "ocr"
    HYBRID = "hybrid"


class Capability(str, Enum):
    """Operations a provider may declare."""

    TEXT = "text"
    IMAGES = "images"
    METADATA = "metadata"
    OCR = "ocr"
    RASTERIZE = "rasterize"


@dataclass(frozen=True)
class ProviderSpec:
    """A provider is a declared capability set plus the OCR engine that backs its OCR capability."""

    name: str
    capabilities: frozenset[Capability]
    ocr_engine: str | None = None
    description: str = ""

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities


@dataclass(frozen=True)
class DocumentHandle:
    """A loaded PDF. Reader operations given a handle reparse its bytes, so the parsed document is never shared."""

    source: str
    data: bytes = field(repr=False)
    page_count: int
    encrypted: bool
    size: int
    document: Any = field(default=None, repr=False, compare=False)

    @property
    def is_file(self) -> bool:
        return self.source != "<bytes>" and Path(self.source).exists()

    def has_page(self, page_number: int) -> bool:
        return 1 <= page_number <= self.page_count


@dataclass(frozen=True)
class PageSample:
    """Per-page signals used for the strategy decision."""

    page_number: int
    has_text: bool
    text_length: int
    image_count: int


@dataclass(frozen=True)
class ProcessingEstimate:
    """Indicative processing time in seconds per strategy."""

    text: float
    ocr: float
    hybrid: float

    def for_strategy(self, strategy: Strategy) -> float:
        return getattr(self, strategy.value)


@dataclass(frozen=True)
class PDFInfo:
    """Analysis snapshot. ocr_required implies recommended_strategy != TEXT."""

    page_count: int
    has_embedded_text: bool
    has_images: bool
    ocr_required: bool
    recommended_strategy: Strategy
    estimated_text_length: int
    estimated_processing_time: ProcessingEstimate
    title: str | None = None
    author: str | None = None
    encrypted: bool = False
    samples: tuple[PageSample, ...] = ()

    def __post_init__(self) -> None:
        if self.ocr_required and self.recommended_strategy is Strategy.TEXT:
            raise ValueError("ocr_required documents cannot use the text strategy")


@dataclass(frozen=True)
class ExtractedImage:
    """Raw raster image pulled from a page (or rendered from it)."""

    data: bytes = field(repr=False)
    width: int
    height: int
    channels: int
    page_number: int
    name: str = ""

    @property
    def mode(self) -> str:
        return {1: "L", 3: "RGB", 4: "RGBA"}.get(self.channels, "RGB")


@dataclass(frozen=True)
class PDFMetadata:
    """Document information; unknown fields stay None."""

    page_count: int
    encrypted: bool = False
    title: str | None = None
    author: str | None = None
    subject: str | None = None
    creator: str | None = None
    producer: str | None = None
    creation_date: datetime | None = None
    modification_date: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Export for logging/serialization; absent fields are omitted."""
        out: dict[str, Any] = {"page_count": self.page_count, "encrypted": self.encrypted}
        for key in ("title", "author", "subject", "creator", "producer"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        for key in ("creation_date", "modification_date"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value.isoformat()
        return out


@dataclass(frozen=True)
class BoundingBox:
    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True)
class OCRDetection:
    """One recognized word or line."""

    text: str
    confidence: float  # 0-100
    bbox: BoundingBox
    image_index: int = 0


@dataclass(frozen=True)
class OCRResult:
    """Result of one recognition pass (possibly over several images)."""

    text: str
    confidence: float  # 0-100, mean of detection confidences
    detections: tuple[OCRDetection, ...] = ()
    language: str = ""
    engine: str = ""


@dataclass(frozen=True)
class Capabilities:
    """What a provider can do; a False flag comes with an explanation in reasons."""

    can_extract_text: bool
    can_extract_images: bool
    can_extract_metadata: bool
    can_perform_ocr: bool
    can_rasterize: bool
    reasons: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DependencyStatus:
    """Backend availability. error holds the first blocking problem."""

    available: bool
    pdf_backend: bool
    ocr_backend: bool
    rasterizer: bool
    details: dict[str, str] = field(default_factory=dict)
    error: str | None = None


@dataclass(frozen=True)
class ProviderInfo:
    provider: str
    available: bool
    capabilities: Capabilities | None = None
    dependencies: DependencyStatus | None = None
    error: str | None = None
