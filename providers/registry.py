"""
Provider registry: static capability table keyed by runtime, provider selection, and the
process-wide lazily initialized backends (OCR engines) shared by every reader it builds.
"""

from __future__ import annotations

import logging
import sys
import threading

from core.exceptions import ProviderUnavailableError
from core.interfaces import ICapabilityProvider, IOCRProvider
from core.models import Capability, ProviderSpec
from extraction.ocr import create_ocr_provider
from extraction.pdf_text import PypdfCapabilityProvider
from utils.lazy import LazyBackendPool

logger = logging.getLogger(__name__)

AUTO = "auto"
NATIVE = "native"
BROWSER = "browser"

_PDF_CAPABILITIES = frozenset({Capability.TEXT, Capability.IMAGES, Capability.METADATA})

PROVIDERS: dict[str, ProviderSpec] = {
    "pypdf": ProviderSpec(
        name="pypdf",
        capabilities=_PDF_CAPABILITIES | {Capability.RASTERIZE, Capability.OCR},
        ocr_engine="tesseract",
        description="pypdf text/images/metadata, pdf2image rendering, Tesseract OCR",
    ),
    "easyocr": ProviderSpec(
        name="easyocr",
        capabilities=_PDF_CAPABILITIES | {Capability.RASTERIZE, Capability.OCR},
        ocr_engine="easyocr",
        description="pypdf text/images/metadata, pdf2image rendering, EasyOCR",
    ),
    "pypdf-text": ProviderSpec(
        name="pypdf-text",
        capabilities=_PDF_CAPABILITIES,
        description="pypdf only; pure Python, no OCR",
    ),
}

# First entry is the runtime default
RUNTIME_PROVIDERS: dict[str, tuple[str, ...]] = {
    NATIVE: ("pypdf", "easyocr", "pypdf-text"),
    BROWSER: ("pypdf-text",),
}


def detect_runtime() -> str:
    """'browser' under Pyodide (emscripten), 'native' otherwise."""
    return BROWSER if sys.platform == "emscripten" else NATIVE


def _normalize(provider: str | None) -> str:
    return (provider or "").strip().lower()


class ProviderRegistry:
    """Resolves provider names to capability sets and builds their backends."""

    def __init__(self, runtime: str | None = None) -> None:
        self._runtime = runtime or detect_runtime()
        self._pool = LazyBackendPool()
        self._lock = threading.Lock()
        self._logged: set[str] = set()

    @property
    def runtime(self) -> str:
        return self._runtime

    @property
    def pool(self) -> LazyBackendPool:
        return self._pool

    def list_available(self, runtime: str | None = None) -> list[str]:
        return list(RUNTIME_PROVIDERS.get(runtime or self._runtime, ()))

    def is_available(self, provider: str, runtime: str | None = None) -> bool:
        return _normalize(provider) in RUNTIME_PROVIDERS.get(runtime or self._runtime, ())

    def spec(self, provider: str) -> ProviderSpec | None:
        return PROVIDERS.get(_normalize(provider))

    def _reject(self, name: str, runtime: str) -> ProviderUnavailableError:
        if name not in PROVIDERS:
            known = ", ".join(sorted(PROVIDERS))
            return ProviderUnavailableError(name, runtime, f"Unknown provider: {name}. Known providers: {known}")
        homes = [r for r, names in RUNTIME_PROVIDERS.items() if name in names]
        where = " or ".join(homes) if homes else "no"
        return ProviderUnavailableError(
            name,
            runtime,
            f"{name} provider is only available in {where} runtime(s), not {runtime}",
        )

    def select_provider(
        self,
        requested: str | None = None,
        runtime: str | None = None,
        *,
        default: str | None = None,
    ) -> ProviderSpec:
        """
        Explicit request > environment-derived default > first provider for the runtime.
        'auto' or empty means no preference. An unavailable named provider is an error, never substituted.
        """
        runtime = runtime or self._runtime
        available = RUNTIME_PROVIDERS.get(runtime, ())
        for candidate in (requested, default):
            name = _normalize(candidate)
            if not name or name == AUTO:
                continue
            if name not in available:
                raise self._reject(name, runtime)
            return PROVIDERS[name]
        if not available:
            raise ProviderUnavailableError(AUTO, runtime, f"No providers available in the {runtime} runtime")
        return PROVIDERS[available[0]]

    def capability_provider(self, spec: ProviderSpec, rasterize_dpi: int = 300) -> ICapabilityProvider:
        """pypdf parser for every current provider; raises DependencyError when pypdf is missing."""
        return PypdfCapabilityProvider(rasterize_dpi=rasterize_dpi)

    def ocr_provider(self, spec: ProviderSpec) -> IOCRProvider | None:
        """OCR provider sharing this registry's backend pool; None for providers without OCR."""
        if not spec.supports(Capability.OCR) or not spec.ocr_engine:
            return None
        return self.ocr_provider_for_engine(spec.ocr_engine)

    def ocr_provider_for_engine(self, engine: str) -> IOCRProvider:
        provider = create_ocr_provider(engine, pool=self._pool)
        with self._lock:
            if engine not in self._logged:
                self._logged.add(engine)
                logger.info("OCR provider for engine %s created (runtime=%s)", engine, self._runtime)
        return provider

    def reset(self) -> None:
        """Drop initialized backends (next use re-initializes once)."""
        self._pool.reset()


_default_registry: ProviderRegistry | None = None
_default_lock = threading.Lock()


def get_registry() -> ProviderRegistry:
    """Process-wide registry, created once."""
    global _default_registry
    if _default_registry is None:
        with _default_lock:
            if _default_registry is None:
                _default_registry = ProviderRegistry()
    return _default_registry
