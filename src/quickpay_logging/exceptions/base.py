"""
Custom exceptions for the correlation and structured-logging pipeline.
"""

from typing import Iterable

# canonical pipeline-level exception

class QuickPayLoggingError(Exception):
    """
    Base exception for correlation / logging pipeline errors.

    - message: human-friendly message
    - fields: optional list of argument or field names related to the error (e.g., ['service_id'])
    - error_code: canonical short code (e.g., 'validation_failed') used by callers and diagnostics
    """

    def __init__(self, message: str, *, fields: Iterable[str] | None = None,
                 error_code: str | None = None):
        super().__init__(message)
        self.message = message
        self.fields = list(fields) if fields else None
        self.error_code = error_code

    def __str__(self) -> str:
        base = self.message
        parts = []
        if self.fields:
            parts.append(f"fields: {', '.join(self.fields)}")
        if self.error_code:
            parts.append(f"code: {self.error_code}")
        if parts:
            return f"{base} ({'; '.join(parts)})"
        return base


# Hard failures: raised at construction time to catch programmer error early.

class ValidationFailed(QuickPayLoggingError, ValueError):
    """Raised when a TransactionContext is built from blank or invalid identifiers."""

    def __init__(self, message: str, *, fields: Iterable[str] | None = None):
        super().__init__(message, fields=fields, error_code="validation_failed")


class InvalidArgument(QuickPayLoggingError, ValueError):
    """Raised when the correlation id generator receives bad input (e.g. a blank prefix)."""

    def __init__(self, message: str, *, fields: Iterable[str] | None = None):
        super().__init__(message, fields=fields, error_code="invalid_argument")


# Soft failures: always recovered locally inside the logging path, never surfaced
# to the code that issued the log call.

class ResolutionFailed(QuickPayLoggingError):
    """Host identity (hostname / ip) could not be resolved; callers fall back to sentinels."""

    def __init__(self, message: str = "Host identity resolution failed"):
        super().__init__(message, error_code="resolution_failed")


class SerializationDegraded(QuickPayLoggingError):
    """A structured record could not be serialized; callers fall back to plain text."""

    def __init__(self, message: str = "Structured record serialization failed"):
        super().__init__(message, error_code="serialization_degraded")


__all__ = [
    "QuickPayLoggingError",
    "ValidationFailed",
    "InvalidArgument",
    "ResolutionFailed",
    "SerializationDegraded",
]
