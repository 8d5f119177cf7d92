"""Exception hierarchy shared by the classifier client, OCR adapter and pipeline."""

from __future__ import annotations


class ScanRedactError(Exception):
    """Base class for all scanredact errors."""


class ClassifierError(ScanRedactError):
    """The semantic classifier call failed (bad status, network, bad payload)."""

    retryable = False

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(ClassifierError):
    """The classifier answered with a 429-range rate-limit signal."""

    retryable = True


class ClassifierTimeoutError(ClassifierError):
    """The classifier did not answer within the configured timeout."""

    retryable = True


class PipelineCancelled(ScanRedactError):
    """The caller cancelled the run between stages or during a backoff wait."""


class OCRUnavailableError(ScanRedactError):
    """Tesseract (or its Python bindings) is not installed."""
