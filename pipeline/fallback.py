"""Fallback strategy: when direct extraction yields no text, use OCR."""

from __future__ import annotations


class EmptyTextFallbackStrategy:
    """should_fallback(text) is true for None or whitespace-only output. Never consults the analyzer."""

    def __init__(self, source_label: str = "ocr_fallback", min_chars: int = 1) -> None:
        self._source_label = source_label
        self._min_chars = max(1, min_chars)

    def should_fallback(self, text: str | None) -> bool:
        return text is None or len(text.strip()) < self._min_chars

    def get_fallback_source(self) -> str:
        return self._source_label
