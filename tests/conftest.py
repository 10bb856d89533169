"""
Shared fixtures: tiny PDFs built in-process, and fake providers (test doubles) for the reader.
"""

from __future__ import annotations

import io
import zlib
from typing import Any, Sequence

import pytest

from core.exceptions import DependencyError, InvalidPDFError
from core.interfaces import ICapabilityProvider, IOCRProvider
from core.models import ExtractedImage, OCRResult, PDFMetadata
from core.schema import OCROptions
from utils.config import ReaderConfig

# ---------------------------------------------------------------------------
# Minimal PDF writer (Helvetica text + Flate-encoded grayscale images)
# ---------------------------------------------------------------------------


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def _gray_pixels(width: int, height: int) -> bytes:
    return bytes((x * 255 // max(1, width - 1)) for _ in range(height) for x in range(width))


def build_pdf(pages: Sequence[dict[str, Any]], info: dict[str, str] | None = None) -> bytes:
    """
    pages: [{"lines": ["text", ...], "images": [(width, height), ...]}, ...]
    info: document information entries, e.g. {"Title": "Minutes"}.
    """
    objects: list[bytes] = []

    def add(body: bytes) -> int:
        objects.append(body)
        return len(objects)

    catalog = add(b"")  # placeholder, filled below
    pages_obj = add(b"")
    font = add(b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>")
    kids: list[int] = []
    for page in pages:
        xobjects: list[tuple[str, int]] = []
        ops: list[str] = []
        for i, (w, h) in enumerate(page.get("images", [])):
            pixels = zlib.compress(_gray_pixels(w, h))
            header = (
                f"<< /Type /XObject /Subtype /Image /Width {w} /Height {h} "
                f"/ColorSpace /DeviceGray /BitsPerComponent 8 /Filter /FlateDecode /Length {len(pixels)} >>"
            ).encode()
            ref = add(header + b"\nstream\n" + pixels + b"\nendstream")
            name = f"Im{i + 1}"
            xobjects.append((name, ref))
            ops.append(f"q {w} 0 0 {h} 72 {72 + i * (h + 10)} cm /{name} Do Q")
        lines = page.get("lines", [])
        if lines:
            ops.append("BT /F1 12 Tf 14 TL 72 720 Td")
            for j, line in enumerate(lines):
                ops.append(f"({_escape(line)}) Tj" if j == 0 else f"T* ({_escape(line)}) Tj")
            ops.append("ET")
        content = "\n".join(ops).encode("latin-1")
        contents = add(f"<< /Length {len(content)} >>".encode() + b"\nstream\n" + content + b"\nendstream")
        xobj_dict = " ".join(f"/{n} {r} 0 R" for n, r in xobjects)
        resources = f"<< /Font << /F1 {font} 0 R >> /XObject << {xobj_dict} >> >>"
        kids.append(
            add(
                f"<< /Type /Page /Parent {pages_obj} 0 R /MediaBox [0 0 612 792] "
                f"/Resources {resources} /Contents {contents} 0 R >>".encode()
            )
        )
    objects[catalog - 1] = f"<< /Type /Catalog /Pages {pages_obj} 0 R >>".encode()
    kid_refs = " ".join(f"{k} 0 R" for k in kids)
    objects[pages_obj - 1] = f"<< /Type /Pages /Kids [{kid_refs}] /Count {len(kids)} >>".encode()
    info_ref = None
    if info:
        entries = " ".join(f"/{k} ({_escape(v)})" for k, v in info.items())
        info_ref = add(f"<< {entries} >>".encode("latin-1"))

    out = bytearray(b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n")
    offsets: list[int] = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"
    xref_at = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for off in offsets:
        out += f"{off:010d} 00000 n \n".encode()
    trailer = f"/Size {len(objects) + 1} /Root {catalog} 0 R"
    if info_ref:
        trailer += f" /Info {info_ref} 0 R"
    out += f"trailer\n<< {trailer} >>\nstartxref\n{xref_at}\n%%EOF\n".encode()
    return bytes(out)


PAGE_LINES = [
    ["Town of Bentley regular council meeting", "Minutes of October 8 2024", "Call to order at 7 pm"],
    ["Council reviewed the road maintenance budget", "Motion carried unanimously"],
    ["Next meeting scheduled for November", "Meeting adjourned at 9 pm"],
]


@pytest.fixture
def text_pdf() -> bytes:
    return build_pdf(
        [{"lines": lines} for lines in PAGE_LINES],
        info={
            "Title": "Council Minutes",
            "Author": "Town Clerk",
            "Producer": "test-suite",
            "CreationDate": "D:20241008190000+00'00'",
        },
    )


@pytest.fixture
def scanned_pdf() -> bytes:
    """Three pages, one full-page-ish image each, no text layer."""
    return build_pdf([{"images": [(120, 160)]} for _ in range(3)])


@pytest.fixture
def blank_pdf() -> bytes:
    return build_pdf([{}, {}])


@pytest.fixture
def encrypted_pdf(text_pdf: bytes) -> bytes:
    """text_pdf locked with the user password 'secret'."""
    pypdf = pytest.importorskip("pypdf")
    writer = pypdf.PdfWriter(clone_from=pypdf.PdfReader(io.BytesIO(text_pdf)))
    writer.encrypt("secret")
    out = io.BytesIO()
    writer.write(out)
    return out.getvalue()


# ---------------------------------------------------------------------------
# Fake providers
# ---------------------------------------------------------------------------


class FakeDocument:
    def __init__(self, pages: list[dict[str, Any]], metadata: dict[str, Any] | None = None) -> None:
        self.pages = pages
        self.metadata = metadata or {}


class FakeCapabilityProvider(ICapabilityProvider):
    """
    In-memory parser. pages: [{"text": str, "images": [(w, h)], "fail": bool}].
    Any bytes starting with %PDF- load as the configured document.
    """

    name = "fake"

    def __init__(
        self,
        pages: list[dict[str, Any]],
        metadata: dict[str, Any] | None = None,
        metadata_error: Exception | None = None,
        raster: bool = False,
    ) -> None:
        self.pages = pages
        self.metadata = metadata
        self.metadata_error = metadata_error
        self.raster = raster
        self.text_calls: list[int] = []
        self.image_calls: list[int] = []
        self.load_calls = 0

    def load(self, data: bytes) -> Any:
        self.load_calls += 1
        if not data.startswith(b"%PDF-"):
            raise InvalidPDFError("not a PDF", provider=self.name)
        return FakeDocument(self.pages, self.metadata)

    def get_page_count(self, document: Any) -> int:
        return len(document.pages)

    def get_page_text(self, document: Any, page_number: int, *, preserve_formatting: bool = False) -> str:
        self.text_calls.append(page_number)
        page = document.pages[page_number - 1]
        if page.get("fail"):
            raise RuntimeError(f"page {page_number} is damaged")
        return page.get("text", "")

    def get_images(self, document: Any, page_number: int) -> list[ExtractedImage]:
        self.image_calls.append(page_number)
        page = document.pages[page_number - 1]
        if page.get("fail_images"):
            raise RuntimeError(f"page {page_number} images are damaged")
        return [
            ExtractedImage(data=bytes(w * h), width=w, height=h, channels=1, page_number=page_number, name=f"Im{i}")
            for i, (w, h) in enumerate(page.get("images", []))
        ]

    def get_metadata(self, document: Any) -> PDFMetadata:
        if self.metadata_error is not None:
            raise self.metadata_error
        return PDFMetadata(page_count=len(document.pages), **(document.metadata or {}))

    def rasterize(self, data: bytes, page_number: int, dpi: int | None = None) -> list[Any]:
        from PIL import Image

        if not self.raster:
            raise DependencyError("no renderer", backend="fake", reason=DependencyError.NOT_INSTALLED)
        return [Image.new("L", (100, 100), 255)]

    def check_rasterizer(self) -> tuple[bool, str]:
        return self.raster, "fake renderer" if self.raster else "no renderer"


class FakeOCRProvider(IOCRProvider):
    """Returns page text keyed by the page number of the first image; records every call."""

    name = "fake-ocr"

    def __init__(
        self,
        text_by_page: dict[int, str] | None = None,
        default_text: str = "recognized text",
        error: Exception | None = None,
        available: bool = True,
    ) -> None:
        self.text_by_page = text_by_page or {}
        self.default_text = default_text
        self.error = error
        self.available = available
        self.calls: list[tuple[int, str]] = []

    def recognize(self, images: Sequence[Any], language: str, options: OCROptions | None = None) -> OCRResult:
        self.calls.append((len(images), language))
        if self.error is not None:
            raise self.error
        page = getattr(images[0], "page_number", 0) if images else 0
        text = self.text_by_page.get(page, self.default_text)
        return OCRResult(text=text, confidence=90.0, language=language, engine=self.name)

    def check_available(self) -> tuple[bool, str]:
        return self.available, "fake engine" if self.available else "fake engine missing"


@pytest.fixture
def pdf_bytes() -> bytes:
    """Signature-valid bytes for fake providers (content is never parsed)."""
    return b"%PDF-1.4 fake"


@pytest.fixture
def reader_config() -> ReaderConfig:
    return ReaderConfig(provider="pypdf", timeout_sec=None)


@pytest.fixture
def make_capability():
    """Factory for FakeCapabilityProvider so tests describe pages inline."""

    def _make(pages: list[dict[str, Any]], **kwargs: Any) -> FakeCapabilityProvider:
        return FakeCapabilityProvider(pages, **kwargs)

    return _make


@pytest.fixture
def fake_ocr() -> FakeOCRProvider:
    return FakeOCRProvider()
