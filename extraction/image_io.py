"""
Image reader strategies and raster conversion helpers.
Pages with no embedded raster are rendered through pdf2image (poppler); embedded images travel as ExtractedImage.
"""
from __future__ import annotations

import shutil
from abc import ABC, abstractmethod

from PIL import Image

from core.exceptions import DependencyError
from core.models import ExtractedImage

try:
    from pdf2image import convert_from_bytes
    from pdf2image.exceptions import PDFInfoNotInstalledError
    PDF2IMAGE_AVAILABLE = True
except ImportError:
    PDF2IMAGE_AVAILABLE = False
    convert_from_bytes = None  # type: ignore
    PDFInfoNotInstalledError = OSError  # type: ignore

DEFAULT_DPI = 300
_CHANNEL_MODES = {"L": 1, "RGB": 3, "RGBA": 4}


# ---------------------------------------------------------------------------
# PIL <-> ExtractedImage
# ---------------------------------------------------------------------------


def normalize_mode(image: Image.Image) -> Image.Image:
    """Return image in L, RGB or RGBA (the modes ExtractedImage can describe)."""
    if image.mode in _CHANNEL_MODES:
        return image
    if image.mode in ("LA", "PA") or (image.mode == "P" and "transparency" in image.info):
        return image.convert("RGBA")
    if image.mode in ("1", "I", "I;16", "F"):
        return image.convert("L")
    return image.convert("RGB")


def to_extracted_image(image: Image.Image, page_number: int, name: str = "") -> ExtractedImage:
    image = normalize_mode(image)
    return ExtractedImage(
        data=image.tobytes(),
        width=image.width,
        height=image.height,
        channels=_CHANNEL_MODES[image.mode],
        page_number=page_number,
        name=name,
    )


def to_pil_image(image: ExtractedImage | Image.Image) -> Image.Image:
    """Rebuild a PIL image from an ExtractedImage (PIL images pass through)."""
    if isinstance(image, Image.Image):
        return image
    return Image.frombytes(image.mode, (image.width, image.height), image.data)


# ---------------------------------------------------------------------------
# Reader strategies
# ---------------------------------------------------------------------------


class IImageReader(ABC):
    """Strategy to read one or more page images from a source."""

    @abstractmethod
    def read(self) -> list[Image.Image]:
        """Load images; caller must close or discard them."""
        ...


class BytesPageImageReader(IImageReader):
    """Render one PDF page (1-based) from in-memory bytes."""

    def __init__(self, data: bytes, page_number: int, *, dpi: int = DEFAULT_DPI) -> None:
        self.data = data
        self.page_number = page_number
        self.dpi = dpi

    def read(self) -> list[Image.Image]:
        if not PDF2IMAGE_AVAILABLE or convert_from_bytes is None:
            raise DependencyError(
                "pdf2image is not installed; install it and poppler",
                backend="pdf2image",
                reason=DependencyError.NOT_INSTALLED,
            )
        try:
            pages = convert_from_bytes(
                self.data,
                dpi=self.dpi,
                first_page=self.page_number,
                last_page=self.page_number,
            )
        except PDFInfoNotInstalledError as e:
            raise DependencyError(
                f"poppler is not installed: {e}",
                backend="poppler",
                reason=DependencyError.NOT_INSTALLED,
            ) from e
        return [p.convert("RGB") if p.mode != "RGB" else p for p in pages]


def rasterizer_status() -> tuple[bool, str]:
    """(available, explanation) for page rendering. Never raises."""
    if not PDF2IMAGE_AVAILABLE:
        return False, "pdf2image is not installed"
    if shutil.which("pdftoppm") is None:
        return False, "poppler (pdftoppm) not found on PATH"
    return True, "pdf2image with poppler"
