"""Custom exceptions for the PDF reader. Every failure mode is a typed, catchable condition."""

from __future__ import annotations


class PDFReaderError(Exception):
    """Base exception for reader failures."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider or ""
        super().__init__(message)


class InvalidPDFError(PDFReaderError):
    """Input is not a parseable PDF (bad signature, corrupt structure, missing file)."""

    pass


class EncryptedPDFError(PDFReaderError):
    """PDF needs a password; page count and encryption state are known, content is not readable."""

    pass


class FileTooLargeError(InvalidPDFError):
    """Input exceeds the configured max_file_size."""

    def __init__(self, size: int, limit: int, provider: str | None = None) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"PDF is {size} bytes; limit is {limit} bytes", provider=provider)


class DependencyError(PDFReaderError):
    """A backend (parser, rasterizer or OCR engine) is missing or failed to initialize."""

    NOT_INSTALLED = "not_installed"
    INIT_FAILED = "init_failed"

    def __init__(
        self,
        message: str,
        backend: str,
        reason: str = INIT_FAILED,
        provider: str | None = None,
    ) -> None:
        self.backend = backend
        self.reason = reason
        super().__init__(message, provider=provider)

    @property
    def not_installed(self) -> bool:
        return self.reason == self.NOT_INSTALLED


class UnsupportedOperationError(PDFReaderError):
    """The active provider does not implement the requested operation."""

    def __init__(self, operation: str, provider: str | None = None, detail: str = "") -> None:
        self.operation = operation
        msg = f"{operation} is not supported by provider {provider or 'unknown'}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg, provider=provider)


class ProviderUnavailableError(PDFReaderError):
    """Requested provider is unknown or not available in the current runtime."""

    def __init__(self, provider: str, runtime: str, message: str | None = None) -> None:
        self.runtime = runtime
        super().__init__(
            message or f"{provider} provider is not available in the {runtime} runtime",
            provider=provider,
        )


class OCRError(PDFReaderError):
    """OCR recognition failed at runtime."""

    pass


class OperationTimeoutError(PDFReaderError):
    """Caller-imposed timeout expired; the operation result was abandoned."""

    def __init__(self, operation: str, timeout_sec: float, provider: str | None = None) -> None:
        self.operation = operation
        self.timeout_sec = timeout_sec
        super().__init__(f"{operation} did not finish within {timeout_sec}s", provider=provider)


class ConfigError(PDFReaderError):
    """Invalid configuration or options passed explicitly."""

    pass
