"""
Capability provider backed by pypdf: embedded text, embedded images and document information.
For image-only (scanned) PDFs the text layer is empty; the orchestrator decides whether to fall back to OCR.
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from PIL import Image

from core.exceptions import DependencyError, EncryptedPDFError, InvalidPDFError
from core.interfaces import ICapabilityProvider
from core.models import ExtractedImage, PDFMetadata
from extraction.image_io import DEFAULT_DPI, BytesPageImageReader, rasterizer_status, to_extracted_image

try:
    from pypdf import PasswordType, PdfReader
    from pypdf.errors import PyPdfError
    PYPDF_AVAILABLE = True
except ImportError:
    PYPDF_AVAILABLE = False
    PdfReader = None  # type: ignore
    PasswordType = None  # type: ignore
    PyPdfError = Exception  # type: ignore

logger = logging.getLogger(__name__)

PDF_SIGNATURE = b"%PDF-"


def _metadata_field(info: Any, attr: str) -> Any:
    """Read one DocumentInformation attribute; malformed values count as absent."""
    try:
        value = getattr(info, attr)
    except (PyPdfError, ValueError, TypeError, KeyError) as e:
        logger.debug("PDF metadata field %s unreadable: %s", attr, e)
        return None
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class PypdfDocument:
    """A parsed PdfReader. locked: encrypted and not openable with an empty password."""

    reader: Any
    page_count: int
    locked: bool = False


def _locked_page_count(reader: Any) -> int:
    """/Root /Pages /Count of a document that could not be decrypted. Numbers are never encrypted."""
    reader._override_encryption = True
    try:
        count = reader.trailer["/Root"]["/Pages"]["/Count"]
    except (PyPdfError, KeyError, TypeError, ValueError) as e:
        logger.warning("Page count of encrypted PDF unreadable: %s", e)
        return 0
    finally:
        reader._override_encryption = False
    return int(count)


class PypdfCapabilityProvider(ICapabilityProvider):
    """pypdf-backed parser. Stateless: every load() returns an independent PypdfDocument."""

    name = "pypdf"

    def __init__(self, rasterize_dpi: int = DEFAULT_DPI) -> None:
        if not PYPDF_AVAILABLE:
            raise DependencyError(
                "pypdf is not installed",
                backend="pypdf",
                reason=DependencyError.NOT_INSTALLED,
            )
        self._dpi = rasterize_dpi

    def load(self, data: bytes) -> PypdfDocument:
        if not data.startswith(PDF_SIGNATURE):
            raise InvalidPDFError("Input does not start with the %PDF- signature", provider=self.name)
        try:
            reader = PdfReader(io.BytesIO(data))
            if reader.is_encrypted and not self._open_with_empty_password(reader):
                return PypdfDocument(reader, _locked_page_count(reader), locked=True)
            # Walk the page tree now so structural damage fails the load
            page_count = len(reader.pages)
        except Exception as e:
            raise InvalidPDFError(f"Unreadable PDF structure: {e}", provider=self.name) from e
        if not isinstance(page_count, int) or page_count < 0:
            raise InvalidPDFError(f"Invalid page count: {page_count!r}", provider=self.name)
        return PypdfDocument(reader, page_count)

    def _open_with_empty_password(self, reader: Any) -> bool:
        try:
            opened = reader.decrypt("") != PasswordType.NOT_DECRYPTED
        except PyPdfError as e:
            logger.warning("Encrypted PDF could not be opened with an empty password: %s", e)
            return False
        if not opened:
            logger.info("Encrypted PDF needs a password; only page count and metadata are available")
        return opened

    def get_page_count(self, document: PypdfDocument) -> int:
        return document.page_count

    def is_encrypted(self, document: PypdfDocument) -> bool:
        return bool(document.reader.is_encrypted)

    def _page(self, document: PypdfDocument, page_number: int) -> Any:
        if document.locked:
            raise EncryptedPDFError("PDF is encrypted and needs a password", provider=self.name)
        if not isinstance(page_number, int) or not 1 <= page_number <= document.page_count:
            raise ValueError(f"page_number out of range: {page_number!r}")
        return document.reader.pages[page_number - 1]

    def get_page_text(self, document: PypdfDocument, page_number: int, *, preserve_formatting: bool = False) -> str:
        page = self._page(document, page_number)
        if preserve_formatting:
            try:
                return page.extract_text(extraction_mode="layout") or ""
            except (TypeError, PyPdfError, ValueError) as e:
                logger.debug("Layout extraction failed on page %s, using plain mode: %s", page_number, e)
        return page.extract_text() or ""

    def get_images(self, document: PypdfDocument, page_number: int) -> list[ExtractedImage]:
        page = self._page(document, page_number)
        files = page.images
        out: list[ExtractedImage] = []
        for i in range(len(files)):
            try:
                image_file = files[i]
                pil = image_file.image
            except (PyPdfError, OSError, ValueError, KeyError, NotImplementedError) as e:
                logger.warning("Skipping undecodable image %s on page %s: %s", i, page_number, e)
                continue
            if pil is None:
                continue
            out.append(to_extracted_image(pil, page_number, name=str(image_file.name)))
        return out

    def get_metadata(self, document: PypdfDocument) -> PDFMetadata:
        page_count = document.page_count
        encrypted = self.is_encrypted(document)
        if document.locked:
            # Info strings are encrypted too
            return PDFMetadata(page_count=page_count, encrypted=True)
        try:
            info = document.reader.metadata
        except (PyPdfError, ValueError, KeyError) as e:
            logger.debug("PDF document information unreadable: %s", e)
            info = None
        if info is None:
            return PDFMetadata(page_count=page_count, encrypted=encrypted)
        return PDFMetadata(
            page_count=page_count,
            encrypted=encrypted,
            title=_metadata_field(info, "title"),
            author=_metadata_field(info, "author"),
            subject=_metadata_field(info, "subject"),
            creator=_metadata_field(info, "creator"),
            producer=_metadata_field(info, "producer"),
            creation_date=_metadata_field(info, "creation_date"),
            modification_date=_metadata_field(info, "modification_date"),
        )

    def check_available(self) -> tuple[bool, str]:
        if not PYPDF_AVAILABLE:
            return False, "pypdf is not installed"
        return True, "pypdf"

    def rasterize(self, data: bytes, page_number: int, dpi: int | None = None) -> list[Image.Image]:
        return BytesPageImageReader(data, page_number, dpi=dpi or self._dpi).read()

    def check_rasterizer(self) -> tuple[bool, str]:
        return rasterizer_status()
