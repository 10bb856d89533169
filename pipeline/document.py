"""Load a source (path, bytes or handle) into a DocumentHandle through a capability provider."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from core.exceptions import FileTooLargeError, InvalidPDFError
from core.interfaces import ICapabilityProvider
from core.models import DocumentHandle

logger = logging.getLogger(__name__)

PDFSource = Union[str, Path, bytes, bytearray, memoryview, DocumentHandle]


def _read_source(source: PDFSource, max_file_size: int | None) -> tuple[str, bytes]:
    if isinstance(source, DocumentHandle):
        # Parsed documents are not shared between operations; reparse the bytes
        if max_file_size is not None and source.size > max_file_size:
            raise FileTooLargeError(source.size, max_file_size)
        return source.source, source.data
    if isinstance(source, (bytes, bytearray, memoryview)):
        data = bytes(source)
        if max_file_size is not None and len(data) > max_file_size:
            raise FileTooLargeError(len(data), max_file_size)
        return "<bytes>", data
    if not isinstance(source, (str, Path)):
        raise InvalidPDFError(f"Unsupported PDF source type: {type(source).__name__}")
    path = Path(source)
    if not path.is_file():
        raise InvalidPDFError(f"File not found: {path}")
    size = path.stat().st_size
    if max_file_size is not None and size > max_file_size:
        raise FileTooLargeError(size, max_file_size)
    return str(path), path.read_bytes()


def load_document(
    source: PDFSource,
    capability: ICapabilityProvider,
    *,
    max_file_size: int | None = None,
) -> DocumentHandle:
    """Read and parse source. Raises InvalidPDFError (or FileTooLargeError) for unusable input."""
    label, data = _read_source(source, max_file_size)
    document = capability.load(data)
    page_count = capability.get_page_count(document)
    if not isinstance(page_count, int) or page_count < 0:
        raise InvalidPDFError(f"Invalid page count from {capability.name}: {page_count!r}", provider=capability.name)
    handle = DocumentHandle(
        source=label,
        data=data,
        page_count=page_count,
        encrypted=capability.is_encrypted(document),
        size=len(data),
        document=document,
    )
    logger.debug("Loaded %s: %s pages, %s bytes, encrypted=%s", label, page_count, handle.size, handle.encrypted)
    return handle


def select_pages(requested: list[int] | None, page_count: int) -> list[int]:
    """1-based page numbers to process. None means all; out-of-range numbers are dropped, document order kept."""
    if requested is None:
        return list(range(1, page_count + 1))
    valid = {p for p in requested if isinstance(p, int) and not isinstance(p, bool) and 1 <= p <= page_count}
    dropped = [p for p in requested if p not in valid]
    if dropped:
        logger.debug("Ignoring out-of-range pages %s (document has %s)", dropped, page_count)
    return sorted(valid)
