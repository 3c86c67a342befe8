# src/quickpay_logging/core/masking/engine.py
"""
PII masking.

Classification is by name: a field is sensitive when any configured sensitive name
is contained in it, case-insensitively ("userEmail", "X-API-KEY", "card_number").

Masking keeps the first and last two characters and replaces the rest with one "*"
per character:

    mask("password123")  -> "pa*******23"
    mask("abcd")         -> "***"        (4 characters or fewer: nothing revealed)
    mask(None)           -> "***"

The output reveals the value's length but not its content. Masking is idempotent for
values longer than four characters, so a value masked by a filter and again by the
formatter comes out the same.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

MASK_MARKER = "***"
MASK_CHAR = "*"
VISIBLE_CHARS = 2

DEFAULT_SENSITIVE_FIELDS: frozenset[str] = frozenset({
    "password", "token", "secret", "key", "credential", "authorization",
    "card", "account", "ssn", "email", "phone",
})


@dataclass(frozen=True)
class MaskingRule:
    """
    Which names are sensitive, and whether masking is on at all.

    Build instances with `MaskingRule.build()` so caller-supplied names are normalized
    and unioned with the default set (the defaults can never be removed).
    """

    sensitive_field_names: frozenset[str] = field(default=DEFAULT_SENSITIVE_FIELDS)
    enabled: bool = True

    @classmethod
    def build(cls, additional: Iterable[str] | None = None, *, enabled: bool = True) -> MaskingRule:
        extra = {str(name).strip().lower() for name in (additional or ())}
        extra.discard("")
        return cls(sensitive_field_names=DEFAULT_SENSITIVE_FIELDS | extra, enabled=bool(enabled))

    @classmethod
    def from_settings(cls, settings: Any) -> MaskingRule:
        return cls.build(
            getattr(settings, "SENSITIVE_FIELDS", None),
            enabled=getattr(settings, "PII_MASKING_ENABLED", True),
        )


class PiiMaskingEngine:
    """Classifies names and masks values according to a MaskingRule. Never raises."""

    def __init__(self, rule: MaskingRule | None = None):
        self.rule = rule or MaskingRule()

    @property
    def enabled(self) -> bool:
        return self.rule.enabled

    def classify(self, field_name: str | None) -> bool:
        """True when the name equals or contains a sensitive name (case-insensitive)."""
        if field_name is None:
            return False
        name = str(field_name).strip().lower()
        if not name:
            return False
        return any(sensitive in name for sensitive in self.rule.sensitive_field_names)

    def mask(self, value: Any) -> Any:
        if not self.rule.enabled:
            return value
        if value is None:
            return MASK_MARKER
        text = value if isinstance(value, str) else str(value)
        if len(text) <= 2 * VISIBLE_CHARS:
            return MASK_MARKER
        return text[:VISIBLE_CHARS] + MASK_CHAR * (len(text) - 2 * VISIBLE_CHARS) + text[-VISIBLE_CHARS:]

    def mask_if_sensitive(self, field_name: str | None, value: Any) -> Any:
        """Mask `value` when `field_name` is sensitive; otherwise return it unchanged."""
        if not self.rule.enabled or not self.classify(field_name):
            return value
        return self.mask(value)

    def mask_value_if_sensitive(self, value: Any) -> Any:
        """
        Content-based variant: mask `value` when its own string form classifies as
        sensitive (e.g. a message argument "token=abc123").
        """
        if not self.rule.enabled or value is None:
            return value
        try:
            text = value if isinstance(value, str) else str(value)
        except Exception:
            # unprintable argument: left for the formatter's fallback path
            return value
        return self.mask(text) if self.classify(text) else value
