"""Factory for PDF readers and provider discovery queries. All settings from config."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from core.exceptions import PDFReaderError
from core.models import DependencyStatus, ProviderInfo, ProviderSpec
from extraction.image_io import rasterizer_status
from extraction.pdf_text import PYPDF_AVAILABLE
from pipeline.orchestrator import PDFReader
from providers.registry import ProviderRegistry, get_registry
from utils.config import ReaderConfig, load_config
from utils.logger import apply_log_level

logger = logging.getLogger(__name__)


def create_reader(
    spec: ProviderSpec,
    config: ReaderConfig,
    registry: ProviderRegistry | None = None,
) -> PDFReader:
    """Build a reader for an already selected provider."""
    registry = registry or get_registry()
    capability = registry.capability_provider(spec, rasterize_dpi=config.ocr_dpi)
    ocr = registry.ocr_provider(spec)
    logger.debug("PDF reader: provider=%s runtime=%s ocr=%s", spec.name, registry.runtime, spec.ocr_engine)
    return PDFReader(capability, ocr, spec=spec, config=config)


def get_pdf_reader(
    options: ReaderConfig | dict[str, Any] | None = None,
    *,
    config_path: str | Path | None = None,
    registry: ProviderRegistry | None = None,
    **overrides: Any,
) -> PDFReader:
    """
    Create a PDF reader. Explicit options > env (PDF_PROVIDER, ...) > config.yaml > defaults.
    Raises ProviderUnavailableError when the chosen provider cannot run here.
    """
    registry = registry or get_registry()
    if isinstance(options, ReaderConfig):
        config = options.with_overrides(**overrides) if overrides else options
    else:
        explicit = dict(options or {})
        explicit.update(overrides)
        config = load_config(config_path, **explicit)
    apply_log_level(config.log_level)
    spec = registry.select_provider(config.provider, registry.runtime)
    return create_reader(spec, config, registry)


def get_available_providers(runtime: str | None = None) -> list[str]:
    return get_registry().list_available(runtime)


def is_provider_available(provider: str, runtime: str | None = None) -> bool:
    return get_registry().is_available(provider, runtime)


def get_provider_info(provider: str, registry: ProviderRegistry | None = None) -> ProviderInfo:
    """Capabilities and dependency state of one provider. Never raises."""
    registry = registry or get_registry()
    try:
        spec = registry.select_provider(provider, registry.runtime)
        reader = create_reader(spec, ReaderConfig(provider=spec.name), registry)
    except PDFReaderError as e:
        return ProviderInfo(provider=provider, available=False, error=str(e))
    deps = reader.check_dependencies()
    return ProviderInfo(
        provider=spec.name,
        available=True,
        capabilities=reader.check_capabilities(),
        dependencies=deps,
        error=deps.error,
    )


def check_ocr_dependencies(engine: str = "tesseract", registry: ProviderRegistry | None = None) -> DependencyStatus:
    """Whether OCR can run with the given engine. Never raises."""
    registry = registry or get_registry()
    details: dict[str, str] = {"pdf": "pypdf" if PYPDF_AVAILABLE else "pypdf is not installed"}
    try:
        ocr_ok, details["ocr"] = registry.ocr_provider_for_engine(engine).check_available()
    except PDFReaderError as e:
        ocr_ok, details["ocr"] = False, str(e)
    raster_ok, details["rasterizer"] = rasterizer_status()
    return DependencyStatus(
        available=ocr_ok,
        pdf_backend=PYPDF_AVAILABLE,
        ocr_backend=ocr_ok,
        rasterizer=raster_ok,
        details=details,
        error=None if ocr_ok else details["ocr"],
    )
