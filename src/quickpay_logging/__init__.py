# src/quickpay_logging/
# ├─ config/                # Settings (pydantic-settings) + locked configuration precedence
# ├─ core/correlation/      # correlation ids, TransactionContext, context propagation store
# ├─ core/masking/          # PII classification and masking
# ├─ core/logging/          # dictConfig builder, formatters, filters, middleware, log_event
# ├─ exceptions/            # QuickPayLoggingError hierarchy
# ├─ validators/            # settings validators
# └─ tests/

from .config.precedence import enforce_config_precedence
from .config.settings import Settings, get_settings
from .core.correlation import (
    TransactionContext,
    current_context,
    current_correlation_id,
    generate_correlation_id,
    store,
)
from .core.logging import CorrelationMiddleware, log_event, setup_logging, stop_queue_logging
from .core.masking import PiiMaskingEngine

__all__ = [
    "Settings",
    "get_settings",
    "enforce_config_precedence",
    "TransactionContext",
    "store",
    "current_context",
    "current_correlation_id",
    "generate_correlation_id",
    "setup_logging",
    "stop_queue_logging",
    "log_event",
    "CorrelationMiddleware",
    "PiiMaskingEngine",
]
