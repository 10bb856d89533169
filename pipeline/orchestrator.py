"""
PDF reader facade: one public surface over a capability provider and an optional OCR provider.
Flow for extract_text: direct extraction per page -> if empty, images (embedded or rendered) -> OCR per page.
Fallback depends only on the direct output being empty, never on get_info.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Sequence, TypeVar

from PIL import Image

from core.exceptions import DependencyError, EncryptedPDFError, OperationTimeoutError, UnsupportedOperationError
from core.interfaces import ICapabilityProvider, IFallbackStrategy, IOCRProvider
from core.models import (
    Capabilities,
    Capability,
    DependencyStatus,
    DocumentHandle,
    ExtractedImage,
    OCRResult,
    PDFInfo,
    PDFMetadata,
    ProviderSpec,
)
from core.schema import ExtractTextOptions, OCROptions, coerce_options
from pipeline.analyzer import DocumentAnalyzer
from pipeline.document import PDFSource, load_document, select_pages
from pipeline.fallback import EmptyTextFallbackStrategy
from utils.config import ReaderConfig
from utils.logger import log_structured

logger = logging.getLogger(__name__)
T = TypeVar("T")

MERGED_SEPARATOR = "\n"
PAGE_SEPARATOR = "\n\n"

ALL_CAPABILITIES = frozenset(Capability)


class PDFReader:
    """
    Uniform text, metadata, image and OCR access for one provider set.
    Holds no document state: every call loads its own DocumentHandle.
    """

    def __init__(
        self,
        capability: ICapabilityProvider,
        ocr: IOCRProvider | None = None,
        *,
        spec: ProviderSpec | None = None,
        config: ReaderConfig | None = None,
        fallback: IFallbackStrategy | None = None,
        analyzer: DocumentAnalyzer | None = None,
    ) -> None:
        self._capability = capability
        self._ocr = ocr
        self._spec = spec or ProviderSpec(
            name=capability.name,
            capabilities=ALL_CAPABILITIES if ocr is not None else ALL_CAPABILITIES - {Capability.OCR},
            ocr_engine=ocr.name if ocr is not None else None,
        )
        self._config = config or ReaderConfig()
        self._fallback = fallback or EmptyTextFallbackStrategy()
        self._analyzer = analyzer or DocumentAnalyzer(capability)

    @property
    def provider(self) -> str:
        return self._spec.name

    @property
    def config(self) -> ReaderConfig:
        return self._config

    def __repr__(self) -> str:
        return f"PDFReader(provider={self._spec.name!r}, ocr={self._spec.ocr_engine!r})"

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _ocr_unavailable_reason(self) -> str | None:
        if not self._spec.supports(Capability.OCR) or self._ocr is None:
            return f"provider {self._spec.name} has no OCR engine"
        if not self._config.enable_ocr:
            return "OCR disabled by configuration"
        return None

    def _require(self, capability: Capability, operation: str) -> None:
        if capability is Capability.OCR:
            reason = self._ocr_unavailable_reason()
            if reason:
                raise UnsupportedOperationError(operation, provider=self._spec.name, detail=reason)
            return
        if not self._spec.supports(capability):
            raise UnsupportedOperationError(operation, provider=self._spec.name)

    def _run(self, operation: str, fn: Callable[..., T], *args: Any) -> T:
        """
        Run fn, abandoning the wait after config.timeout_sec.
        The worker thread is not cancelled; interpreter exit still waits for it to finish.
        """
        timeout = self._config.timeout_sec
        if not timeout:
            return fn(*args)
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"pdf-{operation}")
        future = executor.submit(fn, *args)
        try:
            return future.result(timeout=timeout)
        except FuturesTimeoutError as e:
            logger.warning("%s abandoned after %.1fs", operation, timeout)
            raise OperationTimeoutError(operation, timeout, provider=self._spec.name) from e
        finally:
            executor.shutdown(wait=False)

    def _load(self, source: PDFSource) -> DocumentHandle:
        return load_document(source, self._capability, max_file_size=self._config.max_file_size)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def get_info(self, source: PDFSource) -> PDFInfo:
        """Analyze structure and recommend a strategy. Recomputed on every call."""
        self._require(Capability.TEXT, "get_info")
        return self._run("get_info", lambda: self._analyzer.analyze(self._load(source)))

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def extract_text(
        self,
        source: PDFSource,
        options: ExtractTextOptions | dict[str, Any] | None = None,
    ) -> str | None:
        """
        Text of the requested pages, or None when no text is recoverable.
        Direct extraction first; OCR only when that yields nothing and fallback is allowed.
        Raises EncryptedPDFError when the document needs a password.
        """
        opts = coerce_options(ExtractTextOptions, options)
        self._require(Capability.TEXT, "extract_text")
        return self._run("extract_text", self._extract_text, source, opts)

    def _extract_text(self, source: PDFSource, opts: ExtractTextOptions) -> str | None:
        handle = self._load(source)
        pages = select_pages(opts.pages, handle.page_count)
        if not pages:
            logger.info("No valid pages requested for %s (document has %s)", handle.source, handle.page_count)
            return None
        separator = MERGED_SEPARATOR if opts.merge_pages else PAGE_SEPARATOR
        text = separator.join(self._page_text(handle, n, opts.preserve_formatting) for n in pages)
        if not self._fallback.should_fallback(text):
            return text
        if opts.skip_ocr_fallback:
            logger.info("No embedded text in %s; OCR fallback skipped by caller", handle.source)
            return None
        reason = self._ocr_unavailable_reason()
        if reason:
            logger.info("No embedded text in %s; no OCR fallback (%s)", handle.source, reason)
            return None
        language = opts.ocr_language or self._config.ocr_language
        return self._ocr_text(handle, pages, separator, language)

    def _page_text(self, handle: DocumentHandle, page_number: int, preserve_formatting: bool) -> str:
        try:
            text = self._capability.get_page_text(handle.document, page_number, preserve_formatting=preserve_formatting)
        except EncryptedPDFError:
            raise
        except Exception as e:
            logger.warning("Page %s of %s: text extraction failed, using empty placeholder: %s", page_number, handle.source, e)
            return ""
        if preserve_formatting:
            return (text or "").strip("\n")
        return (text or "").strip()

    def _ocr_images_for_page(self, handle: DocumentHandle, page_number: int) -> list[ExtractedImage | Image.Image]:
        """Embedded images of the page; if none, the rendered page when the provider can rasterize."""
        try:
            images: list[ExtractedImage | Image.Image] = list(self._capability.get_images(handle.document, page_number))
        except EncryptedPDFError:
            raise
        except Exception as e:
            logger.warning("Page %s of %s: image extraction failed: %s", page_number, handle.source, e)
            images = []
        if images or not self._spec.supports(Capability.RASTERIZE):
            return images
        try:
            return list(self._capability.rasterize(handle.data, page_number, self._config.ocr_dpi))
        except DependencyError as e:
            logger.debug("Page %s of %s: cannot render page: %s", page_number, handle.source, e)
        except Exception as e:
            logger.warning("Page %s of %s: rendering failed: %s", page_number, handle.source, e)
        return []

    def _ocr_text(self, handle: DocumentHandle, pages: list[int], separator: str, language: str) -> str | None:
        assert self._ocr is not None
        log_structured(
            logger,
            logging.INFO,
            f"No embedded text in {handle.source}; falling back to OCR over {len(pages)} page(s)",
            source=handle.source,
            pages=len(pages),
            fallback=self._fallback.get_fallback_source(),
            engine=self._ocr.name,
        )
        options = OCROptions(language=language, output_format="text")
        texts: list[str] = []
        for page_number in pages:
            images = self._ocr_images_for_page(handle, page_number)
            if not images:
                texts.append("")
                continue
            try:
                result = self._ocr.recognize(images, language, options)
            except DependencyError as e:
                logger.warning("OCR unavailable for %s; no recoverable text: %s", handle.source, e)
                return None
            except Exception as e:
                logger.warning("Page %s of %s: OCR failed, using empty placeholder: %s", page_number, handle.source, e)
                texts.append("")
                continue
            texts.append(result.text.strip())
        text = separator.join(texts)
        return text if text.strip() else None

    # ------------------------------------------------------------------
    # Metadata and images
    # ------------------------------------------------------------------

    def extract_metadata(self, source: PDFSource) -> PDFMetadata:
        """Always populated for a loadable PDF; unreadable fields are None."""
        self._require(Capability.METADATA, "extract_metadata")
        return self._run("extract_metadata", self._extract_metadata, source)

    def _extract_metadata(self, source: PDFSource) -> PDFMetadata:
        handle = self._load(source)
        try:
            meta = self._capability.get_metadata(handle.document)
        except Exception as e:
            logger.warning("Metadata unreadable for %s: %s", handle.source, e)
            return PDFMetadata(page_count=handle.page_count, encrypted=handle.encrypted)
        if meta.page_count != handle.page_count or (handle.encrypted and not meta.encrypted):
            meta = PDFMetadata(
                page_count=handle.page_count,
                encrypted=handle.encrypted or meta.encrypted,
                title=meta.title,
                author=meta.author,
                subject=meta.subject,
                creator=meta.creator,
                producer=meta.producer,
                creation_date=meta.creation_date,
                modification_date=meta.modification_date,
            )
        return meta

    def extract_images(self, source: PDFSource) -> list[ExtractedImage]:
        """Embedded raster images in page order; empty list when none."""
        self._require(Capability.IMAGES, "extract_images")
        return self._run("extract_images", self._extract_images, source)

    def _extract_images(self, source: PDFSource) -> list[ExtractedImage]:
        handle = self._load(source)
        out: list[ExtractedImage] = []
        for page_number in range(1, handle.page_count + 1):
            try:
                out.extend(self._capability.get_images(handle.document, page_number))
            except EncryptedPDFError:
                raise
            except Exception as e:
                logger.warning("Page %s of %s: image extraction failed: %s", page_number, handle.source, e)
        logger.debug("Extracted %s image(s) from %s", len(out), handle.source)
        return out

    # ------------------------------------------------------------------
    # OCR
    # ------------------------------------------------------------------

    def perform_ocr(
        self,
        images: ExtractedImage | Image.Image | Sequence[ExtractedImage | Image.Image],
        options: OCROptions | dict[str, Any] | None = None,
    ) -> OCRResult:
        """One recognition pass over all images (a single image is accepted too); detections keep input order."""
        opts = coerce_options(OCROptions, options)
        self._require(Capability.OCR, "perform_ocr")
        assert self._ocr is not None
        if isinstance(images, (ExtractedImage, Image.Image)):
            images = [images]
        batch = list(images)
        if not batch:
            return OCRResult(text="", confidence=0.0, language=opts.language, engine=self._ocr.name)
        return self._run("perform_ocr", self._ocr.recognize, batch, opts.language, opts)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def check_capabilities(self) -> Capabilities:
        """Declared capabilities of this reader. Never raises."""
        reasons: dict[str, str] = {}
        flags: dict[Capability, bool] = {}
        for cap in Capability:
            if cap is Capability.OCR:
                reason = self._ocr_unavailable_reason()
                flags[cap] = reason is None
                if reason:
                    reasons[cap.value] = reason
                continue
            flags[cap] = self._spec.supports(cap)
            if not flags[cap]:
                reasons[cap.value] = f"provider {self._spec.name} does not declare {cap.value}"
        return Capabilities(
            can_extract_text=flags[Capability.TEXT],
            can_extract_images=flags[Capability.IMAGES],
            can_extract_metadata=flags[Capability.METADATA],
            can_perform_ocr=flags[Capability.OCR],
            can_rasterize=flags[Capability.RASTERIZE],
            reasons=reasons,
        )

    def check_dependencies(self) -> DependencyStatus:
        """Installed/working state of every backend this reader needs. Never raises."""
        details: dict[str, str] = {}
        try:
            pdf_ok, details["pdf"] = self._capability.check_available()
        except Exception as e:
            pdf_ok, details["pdf"] = False, f"{self._capability.name} check failed: {e}"
        ocr_needed = self._ocr_unavailable_reason() is None
        if ocr_needed:
            try:
                ocr_ok, details["ocr"] = self._ocr.check_available()  # type: ignore[union-attr]
            except Exception as e:
                ocr_ok, details["ocr"] = False, f"OCR check failed: {e}"
        else:
            ocr_ok, details["ocr"] = False, self._ocr_unavailable_reason() or ""
        raster_ok = False
        if self._spec.supports(Capability.RASTERIZE):
            try:
                raster_ok, details["rasterizer"] = self._capability.check_rasterizer()
            except Exception as e:
                details["rasterizer"] = f"rasterizer check failed: {e}"
        error = None
        if not pdf_ok:
            error = details["pdf"]
        elif ocr_needed and not ocr_ok:
            error = details["ocr"]
        return DependencyStatus(
            available=pdf_ok and (ocr_ok or not ocr_needed),
            pdf_backend=pdf_ok,
            ocr_backend=ocr_ok,
            rasterizer=raster_ok,
            details=details,
            error=error,
        )
