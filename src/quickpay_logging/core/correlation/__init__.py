# src/quickpay_logging/core/correlation/
# ├─ __init__.py            # public API
# ├─ generator.py           # CorrelationIdGenerator (<prefix>_<epochMillis>_<random>)
# ├─ context.py             # TransactionContext (immutable)
# └─ store.py               # ContextPropagationStore (contextvars + ambient metadata)

from .generator import (
    CorrelationIdGenerator,
    default_generator,
    generate_correlation_id,
    is_valid_correlation_id,
)
from .context import TransactionContext
from .store import (
    ANNOTATION_PREFIX,
    CORRELATION_ID_KEY,
    SERVICE_ID_KEY,
    USER_ID_KEY,
    ContextPropagationStore,
    current_context,
    current_correlation_id,
    store,
)

__all__ = [
    "CorrelationIdGenerator",
    "default_generator",
    "generate_correlation_id",
    "is_valid_correlation_id",
    "TransactionContext",
    "ContextPropagationStore",
    "store",
    "current_context",
    "current_correlation_id",
    "CORRELATION_ID_KEY",
    "USER_ID_KEY",
    "SERVICE_ID_KEY",
    "ANNOTATION_PREFIX",
]
