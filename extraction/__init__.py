"""Extraction: pypdf capability provider, OCR providers and preprocessing, page rendering."""

from extraction.image_io import (
    IImageReader,
    BytesPageImageReader,
    normalize_mode,
    to_extracted_image,
    to_pil_image,
    rasterizer_status,
)
from extraction.ocr import (
    create_ocr_provider,
    create_preprocessor,
    BaseOCRProvider,
    ImagePreprocessor,
    TesseractOCRProvider,
    EasyOCRProvider,
)
from extraction.pdf_text import PypdfCapabilityProvider, PDF_SIGNATURE

__all__ = [
    "IImageReader",
    "BytesPageImageReader",
    "normalize_mode",
    "to_extracted_image",
    "to_pil_image",
    "rasterizer_status",
    "create_ocr_provider",
    "create_preprocessor",
    "BaseOCRProvider",
    "ImagePreprocessor",
    "TesseractOCRProvider",
    "EasyOCRProvider",
    "PypdfCapabilityProvider",
    "PDF_SIGNATURE",
]
