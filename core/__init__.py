"""Core layer: interfaces, models, option schemas, exceptions."""

from core.interfaces import (
    ICapabilityProvider,
    IOCRProvider,
    IFallbackStrategy,
)
from core.models import (
    Strategy,
    Capability,
    ProviderSpec,
    DocumentHandle,
    PageSample,
    ProcessingEstimate,
    PDFInfo,
    ExtractedImage,
    PDFMetadata,
    BoundingBox,
    OCRDetection,
    OCRResult,
    Capabilities,
    DependencyStatus,
    ProviderInfo,
)
from core.schema import ExtractTextOptions, OCROptions
from core.exceptions import (
    PDFReaderError,
    InvalidPDFError,
    FileTooLargeError,
    EncryptedPDFError,
    DependencyError,
    UnsupportedOperationError,
    ProviderUnavailableError,
    OCRError,
    OperationTimeoutError,
    ConfigError,
)

__all__ = [
    "ICapabilityProvider",
    "IOCRProvider",
    "IFallbackStrategy",
    "Strategy",
    "Capability",
    "ProviderSpec",
    "DocumentHandle",
    "PageSample",
    "ProcessingEstimate",
    "PDFInfo",
    "ExtractedImage",
    "PDFMetadata",
    "BoundingBox",
    "OCRDetection",
    "OCRResult",
    "Capabilities",
    "DependencyStatus",
    "ProviderInfo",
    "ExtractTextOptions",
    "OCROptions",
    "PDFReaderError",
    "InvalidPDFError",
    "FileTooLargeError",
    "EncryptedPDFError",
    "DependencyError",
    "UnsupportedOperationError",
    "ProviderUnavailableError",
    "OCRError",
    "OperationTimeoutError",
    "ConfigError",
]
