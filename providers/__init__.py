"""PDF/OCR providers: capability table, runtime-aware selection and reader factory."""

from providers.registry import (
    AUTO,
    NATIVE,
    BROWSER,
    PROVIDERS,
    RUNTIME_PROVIDERS,
    ProviderRegistry,
    detect_runtime,
    get_registry,
)
from providers.factory import (
    create_reader,
    get_pdf_reader,
    get_available_providers,
    is_provider_available,
    get_provider_info,
    check_ocr_dependencies,
)

__all__ = [
    "AUTO",
    "NATIVE",
    "BROWSER",
    "PROVIDERS",
    "RUNTIME_PROVIDERS",
    "ProviderRegistry",
    "detect_runtime",
    "get_registry",
    "create_reader",
    "get_pdf_reader",
    "get_available_providers",
    "is_provider_available",
    "get_provider_info",
    "check_ocr_dependencies",
]
