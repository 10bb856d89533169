"""Pipeline: document loading, strategy analysis, OCR fallback and the reader facade."""

from pipeline.analyzer import DocumentAnalyzer, classify_samples, estimate_processing_time
from pipeline.document import load_document, select_pages
from pipeline.fallback import EmptyTextFallbackStrategy
from pipeline.orchestrator import PDFReader

__all__ = [
    "DocumentAnalyzer",
    "classify_samples",
    "estimate_processing_time",
    "load_document",
    "select_pages",
    "EmptyTextFallbackStrategy",
    "PDFReader",
]
