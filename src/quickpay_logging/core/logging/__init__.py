# src/quickpay_logging/core/logging/
# ├─ __init__.py            # public API: setup_logging, CorrelationMiddleware, log_event
# ├─ builder.py             # make_dict_config(settings) + setup_logging(settings) + queue mode
# ├─ formatters.py          # StructuredRecordAssembler, EcsJsonFormatter, ColorFormatter
# ├─ filters.py             # CorrelationFilter, MaskingFilter
# ├─ handlers.py            # console / rotating file handler factories
# ├─ middleware.py          # FastAPI/Starlette middleware binding the transaction context
# └─ events.py              # log_event() with "{}" placeholders and keyword labels


from .builder import setup_logging, make_dict_config, stop_queue_logging, get_queue_stats
from .events import log_event
from .filters import CorrelationFilter, MaskingFilter
from .formatters import (
    EcsJsonFormatter,
    ColorFormatter,
    StructuredLogRecord,
    StructuredRecordAssembler,
    get_formatter_stats,
    get_host_identity,
)
from .middleware import CorrelationMiddleware

__all__ = [
    "setup_logging",
    "make_dict_config",
    "stop_queue_logging",
    "get_queue_stats",
    "log_event",
    "CorrelationFilter",
    "MaskingFilter",
    "EcsJsonFormatter",
    "ColorFormatter",
    "StructuredLogRecord",
    "StructuredRecordAssembler",
    "get_formatter_stats",
    "get_host_identity",
    "CorrelationMiddleware",
]
