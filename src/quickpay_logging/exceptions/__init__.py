from .base import (
    QuickPayLoggingError,
    ValidationFailed,
    InvalidArgument,
    ResolutionFailed,
    SerializationDegraded,
)

__all__ = [
    "QuickPayLoggingError",
    "ValidationFailed",
    "InvalidArgument",
    "ResolutionFailed",
    "SerializationDegraded",
]
