"""
Abstract interfaces for the PDF reader.
Every external backend is behind an interface; the analyzer and orchestrator never import pypdf or an OCR engine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Protocol, Sequence

from core.exceptions import UnsupportedOperationError
from core.models import ExtractedImage, OCRResult, PDFMetadata
from core.schema import OCROptions

if TYPE_CHECKING:
    from PIL import Image


class ICapabilityProvider(ABC):
    """Abstract PDF parser: raw bytes -> document proxy -> page text, images, metadata."""

    name: str = "base"

    @abstractmethod
    def load(self, data: bytes) -> Any:
        """Parse bytes into a backend document. Raises InvalidPDFError for non-PDF or corrupt input."""
        ...

    @abstractmethod
    def get_page_count(self, document: Any) -> int:
        ...

    @abstractmethod
    def get_page_text(self, document: Any, page_number: int, *, preserve_formatting: bool = False) -> str:
        """Text layer of one page (1-based)."""
        ...

    @abstractmethod
    def get_images(self, document: Any, page_number: int) -> list[ExtractedImage]:
        """Embedded raster images of one page (1-based), in content order."""
        ...

    @abstractmethod
    def get_metadata(self, document: Any) -> PDFMetadata:
        ...

    def is_encrypted(self, document: Any) -> bool:
        return False

    def check_available(self) -> tuple[bool, str]:
        """(available, explanation). Never raises."""
        return True, self.name

    def rasterize(self, data: bytes, page_number: int, dpi: int | None = None) -> list[Image.Image]:
        """Render one page to an image. Default: not available for this parser."""
        raise UnsupportedOperationError("rasterize", provider=self.name)

    def check_rasterizer(self) -> tuple[bool, str]:
        return False, f"{self.name} cannot render pages"


class IOCRProvider(ABC):
    """Abstract OCR engine: raster images -> text + per-detection confidence (0-100)."""

    name: str = "base"

    @abstractmethod
    def recognize(
        self,
        images: Sequence[Image.Image],
        language: str,
        options: OCROptions | None = None,
    ) -> OCRResult:
        """Recognize all images in one pass. Raises DependencyError if the engine is unavailable."""
        ...

    @abstractmethod
    def check_available(self) -> tuple[bool, str]:
        """(available, explanation). Never raises."""
        ...


class IFallbackStrategy(Protocol):
    """Strategy: when direct extraction yields nothing useful, switch to OCR."""

    def should_fallback(self, text: str | None) -> bool:
        """True if OCR should be attempted."""
        ...

    def get_fallback_source(self) -> str:
        """Label for log records when fallback was used (e.g. 'ocr_fallback')."""
        ...
