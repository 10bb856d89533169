"""
Document analyzer: sample the first pages and recommend text, ocr or hybrid extraction.

Classification over the sampled pages:
  - no page has text, at least one has images      -> ocr (ocr_required)
  - every page has text, none has relevant images  -> text
  - no text and no images anywhere                 -> ocr (safety fallback for vector-drawn text)
  - anything else                                  -> hybrid
"""

from __future__ import annotations

import logging
from typing import Sequence

from core.exceptions import EncryptedPDFError
from core.interfaces import ICapabilityProvider
from core.models import DocumentHandle, PageSample, PDFInfo, PDFMetadata, ProcessingEstimate, Strategy

logger = logging.getLogger(__name__)

SAMPLE_PAGES = 3
# Stripped characters needed before a page counts as having a text layer
MIN_PAGE_TEXT_LEN = 10
# Images smaller than this on either side (bullets, rules, logos) are ignored
MIN_IMAGE_SIDE_PX = 50
TEXT_SEC_PER_PAGE = 0.1
OCR_SEC_PER_PAGE = 2.5


def classify_samples(samples: Sequence[PageSample]) -> tuple[Strategy, bool]:
    """Return (strategy, ocr_required). Deterministic over the sample."""
    any_text = any(s.has_text for s in samples)
    all_text = bool(samples) and all(s.has_text for s in samples)
    any_images = any(s.image_count > 0 for s in samples)
    if not any_text and any_images:
        return Strategy.OCR, True
    if all_text and not any_images:
        return Strategy.TEXT, False
    if not any_text and not any_images:
        # TODO: revisit once vector-path text detection exists; ocr here is a policy choice, not a measured one
        return Strategy.OCR, True
    return Strategy.HYBRID, False


def estimate_processing_time(page_count: int) -> ProcessingEstimate:
    text = round(TEXT_SEC_PER_PAGE * page_count, 2)
    ocr = round(OCR_SEC_PER_PAGE * page_count, 2)
    return ProcessingEstimate(text=text, ocr=ocr, hybrid=round(text + ocr, 2))


class DocumentAnalyzer:
    """Samples pages via the capability provider. Stateless; every analyze() recomputes."""

    def __init__(
        self,
        capability: ICapabilityProvider,
        *,
        sample_pages: int = SAMPLE_PAGES,
        min_text_len: int = MIN_PAGE_TEXT_LEN,
        min_image_side: int = MIN_IMAGE_SIDE_PX,
    ) -> None:
        self._capability = capability
        self._sample_pages = max(1, sample_pages)
        self._min_text_len = min_text_len
        self._min_image_side = min_image_side

    def sample_page(self, handle: DocumentHandle, page_number: int) -> PageSample:
        """Signals for one page. Read failures count as no text / no images; a locked document raises."""
        try:
            text = self._capability.get_page_text(handle.document, page_number).strip()
        except EncryptedPDFError:
            raise
        except Exception as e:
            logger.warning("Page %s of %s: text unreadable during analysis: %s", page_number, handle.source, e)
            text = ""
        try:
            images = self._capability.get_images(handle.document, page_number)
        except EncryptedPDFError:
            raise
        except Exception as e:
            logger.warning("Page %s of %s: images unreadable during analysis: %s", page_number, handle.source, e)
            images = []
        relevant = [i for i in images if min(i.width, i.height) >= self._min_image_side]
        return PageSample(
            page_number=page_number,
            has_text=len(text) >= self._min_text_len,
            text_length=len(text),
            image_count=len(relevant),
        )

    def sample(self, handle: DocumentHandle) -> list[PageSample]:
        count = max(0, min(self._sample_pages, handle.page_count))
        return [self.sample_page(handle, n) for n in range(1, count + 1)]

    def _metadata(self, handle: DocumentHandle) -> PDFMetadata:
        try:
            return self._capability.get_metadata(handle.document)
        except Exception as e:
            logger.warning("Metadata unreadable for %s: %s", handle.source, e)
            return PDFMetadata(page_count=handle.page_count, encrypted=handle.encrypted)

    def analyze(self, handle: DocumentHandle) -> PDFInfo:
        samples = self.sample(handle)
        strategy, ocr_required = classify_samples(samples)
        if samples:
            mean_len = sum(s.text_length for s in samples) / len(samples)
            estimated_text_length = round(mean_len * handle.page_count)
        else:
            estimated_text_length = 0
        meta = self._metadata(handle)
        info = PDFInfo(
            page_count=handle.page_count,
            has_embedded_text=any(s.has_text for s in samples),
            has_images=any(s.image_count > 0 for s in samples),
            ocr_required=ocr_required,
            recommended_strategy=strategy,
            estimated_text_length=estimated_text_length,
            estimated_processing_time=estimate_processing_time(handle.page_count),
            title=meta.title,
            author=meta.author,
            encrypted=handle.encrypted or meta.encrypted,
            samples=tuple(samples),
        )
        logger.info(
            "Analyzed %s: pages=%s sampled=%s strategy=%s ocr_required=%s",
            handle.source,
            handle.page_count,
            len(samples),
            strategy.value,
            ocr_required,
        )
        return info
