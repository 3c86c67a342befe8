from .engine import (
    DEFAULT_SENSITIVE_FIELDS,
    MASK_MARKER,
    MaskingRule,
    PiiMaskingEngine,
)

__all__ = ["DEFAULT_SENSITIVE_FIELDS", "MASK_MARKER", "MaskingRule", "PiiMaskingEngine"]
