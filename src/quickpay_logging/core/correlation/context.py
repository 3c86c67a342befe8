# src/quickpay_logging/core/correlation/context.py
"""
Immutable description of one logical operation (request, job, background task).

A TransactionContext is safe to share between concurrent readers: it is a frozen
dataclass, its annotations are a read-only copy, and every `with_*` call returns a
new instance instead of changing the existing one.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Mapping

from ...exceptions import ValidationFailed
from .generator import default_generator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TransactionContext:
    correlation_id: str
    service_id: str
    user_id: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    annotations: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # invalid ids fail at construction, not at a later log call
        if not isinstance(self.correlation_id, str) or not self.correlation_id.strip():
            raise ValidationFailed("Correlation id cannot be empty", fields=["correlation_id"])
        if not isinstance(self.service_id, str) or not self.service_id.strip():
            raise ValidationFailed("Service id cannot be empty", fields=["service_id"])
        for key in self.annotations:
            if not isinstance(key, str) or not key.strip():
                raise ValidationFailed("Annotation keys cannot be empty", fields=["annotations"])

        # read-only copy of the caller's dict
        object.__setattr__(
            self,
            "annotations",
            MappingProxyType({k: str(v) for k, v in self.annotations.items()}),
        )

    # mappingproxy is unhashable, so annotations are left out of the hash.
    def __hash__(self) -> int:
        return hash((self.correlation_id, self.service_id, self.user_id, self.created_at))

    # --- factories ---
    @classmethod
    def create(cls, service_id: str, *, prefix: str | None = None) -> TransactionContext:
        """New context with a freshly generated correlation id."""
        return cls(correlation_id=default_generator.generate(prefix), service_id=service_id)

    @classmethod
    def of(cls, correlation_id: str, service_id: str) -> TransactionContext:
        """New context reusing a caller-supplied correlation id (e.g. from a header)."""
        return cls(correlation_id=correlation_id, service_id=service_id)

    # --- derivations ---
    def with_user(self, user_id: str | None) -> TransactionContext:
        return replace(self, user_id=user_id)

    def with_annotation(self, key: str, value: str) -> TransactionContext:
        if value is None:
            raise ValidationFailed("Annotation value cannot be None", fields=[str(key)])
        annotations = dict(self.annotations)
        annotations[key] = value
        return replace(self, annotations=annotations)

    def annotation(self, key: str) -> str | None:
        return self.annotations.get(key)
