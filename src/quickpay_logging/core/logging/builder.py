from __future__ import annotations

from pathlib import Path
import logging
import logging.config
import queue as _queue
import threading
from typing import Optional

from logging.handlers import QueueHandler, QueueListener

from .formatters import EcsJsonFormatter, ColorFormatter
from .filters import CorrelationFilter, MaskingFilter
from .handlers import (
    get_console_handler,
    get_file_handler,
    get_error_file_handler,
    get_error_console_handler,
)

from ...config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

TEXT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(correlation_id)s | %(message)s"

_QUEUE_LISTENER: Optional[QueueListener] = None
_QUEUE: Optional[_queue.Queue] = None

_DROPPED_LOGS_COUNT = 0
_DROPPED_LOGS_LOCK = threading.Lock()


class NonBlockingQueueHandler(QueueHandler):
    """
    QueueHandler variant that does not block producers when a bounded queue is full.

    Behavior:
      - If the queue has room, enqueues the (already filtered and masked) record.
      - If the queue is full:
          * increments a module-level, thread-safe drop counter;
          * every `drop_warning_threshold` drops, writes a warning through
            logging.lastResort (stderr), since the queue itself is saturated;
          * does NOT block the calling thread.
    """

    def __init__(self, q: _queue.Queue, drop_warning_threshold: int = 100):
        super().__init__(q)
        self.drop_warning_threshold = drop_warning_threshold

    def emit(self, record: logging.LogRecord) -> None:
        global _DROPPED_LOGS_COUNT
        try:
            self.queue.put_nowait(self.prepare(record))
        except _queue.Full:
            with _DROPPED_LOGS_LOCK:
                _DROPPED_LOGS_COUNT += 1
                dropped = _DROPPED_LOGS_COUNT
            if self.drop_warning_threshold > 0 and dropped % self.drop_warning_threshold == 0:
                self._warn_about_drops(dropped)
        except Exception:
            self.handleError(record)

    @staticmethod
    def _warn_about_drops(dropped: int) -> None:
        if logging.lastResort is None:
            return
        logging.lastResort.handle(logging.makeLogRecord({
            "name": __name__,
            "levelno": logging.WARNING,
            "levelname": "WARNING",
            "msg": "Dropped %d log records because the log queue was full",
            "args": (dropped,),
        }))


def get_queue_stats() -> dict:
    """Return small diagnostics about queue usage (dropped logs count)."""
    with _DROPPED_LOGS_LOCK:
        return {"dropped_logs": _DROPPED_LOGS_COUNT, "queue_present": _QUEUE is not None}


def _writes_files(settings: Settings) -> bool:
    return (not settings.LOG_TO_STDOUT) and bool(settings.LOG_DIR)


def make_dict_config(settings: Settings) -> dict:
    """
    Build the dictConfig mapping using the provided settings.

    The returned mapping includes:
      - formatters: "standard" (ColorFormatter for LOG_FORMAT=text, else plain) and
        "json" (EcsJsonFormatter with the service identity and masking options)
      - filters: "correlation", "masking"
      - handlers: console, (file/error_file) OR error_console depending on LOG_TO_STDOUT
      - loggers: root, uvicorn.error, uvicorn.access
    """
    sensitive_fields = list(settings.SENSITIVE_FIELDS)

    formatters = {
        "standard": {
            "()": ColorFormatter if settings.LOG_FORMAT == "text" else logging.Formatter,
            "format": TEXT_FORMAT,
        },
        "json": {
            "()": EcsJsonFormatter,
            "service_name": settings.SERVICE_NAME,
            "service_version": settings.SERVICE_VERSION,
            "service_environment": settings.SERVICE_ENVIRONMENT,
            "masking_enabled": settings.PII_MASKING_ENABLED,
            "sensitive_fields": sensitive_fields,
        },
    }

    filters = {
        "correlation": {"()": CorrelationFilter},
        "masking": {
            "()": MaskingFilter,
            "sensitive_fields": sensitive_fields,
            "enabled": settings.PII_MASKING_ENABLED,
        },
    }

    handlers: dict[str, dict] = {"console": get_console_handler(settings)}

    if _writes_files(settings):
        handlers["file"] = get_file_handler(settings)
        handlers["error_file"] = get_error_file_handler(settings)
    else:
        handlers["error_console"] = get_error_console_handler(settings)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "filters": filters,
        "handlers": handlers,
        "loggers": {
            "": {
                "handlers": list(handlers.keys()),
                "level": settings.LOG_LEVEL,
                "propagate": True,
            },
            "uvicorn.error": {
                "level": settings.LOG_LEVEL,
                "handlers": list(handlers.keys()),
                "propagate": False,
            },
            "uvicorn.access": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }


def setup_logging(settings: Settings | None = None) -> None:
    """
    Initialize logging using settings and optionally switch to queue-backed logging.

    Steps:
      1. Skip entirely when LOGGING_ENABLED is false.
      2. Ensure LOG_DIR exists when writing files.
      3. Apply dictConfig(make_dict_config(settings)).
      4. Register a CorrelationFilter on the root logger as a safety net.
      5. If settings.LOG_USE_QUEUE:
            - create a (bounded or unbounded) queue
            - remove the real handlers from all loggers so they only run in the listener
            - start a QueueListener that runs the real handlers in a background thread
            - attach a QueueHandler (or NonBlockingQueueHandler) to the root logger with
              CorrelationFilter and MaskingFilter, so the contextvar binding is captured
              and secrets are masked in the producer context, before the record is queued

    Calling it again reconfigures logging; a running queue listener is stopped first.
    """
    global _QUEUE_LISTENER, _QUEUE

    settings = settings or get_settings()

    if not settings.LOGGING_ENABLED:
        logger.debug("QuickPay logging is disabled (LOGGING_ENABLED=false); leaving logging untouched")
        return

    stop_queue_logging()

    if _writes_files(settings):
        Path(settings.LOG_DIR).mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(make_dict_config(settings))

    root_logger = logging.getLogger()
    if not any(isinstance(f, CorrelationFilter) for f in root_logger.filters):
        root_logger.addFilter(CorrelationFilter())

    if not settings.LOG_USE_QUEUE:
        return

    max_size = settings.LOG_QUEUE_MAX_SIZE or 0  # 0 means unbounded in queue.Queue()
    blocking = bool(settings.LOG_QUEUE_BLOCKING)

    current_handlers = list(root_logger.handlers)
    if not current_handlers:
        return

    handlers_to_move = set(current_handlers)

    manager = logging.Logger.manager
    for logger_obj in list(manager.loggerDict.values()):
        if isinstance(logger_obj, logging.Logger):
            for h in list(logger_obj.handlers):
                if h in handlers_to_move:
                    logger_obj.removeHandler(h)

    for h in list(root_logger.handlers):
        root_logger.removeHandler(h)

    log_queue: _queue.Queue = _queue.Queue(max_size) if max_size > 0 else _queue.Queue()

    if max_size > 0 and not blocking:
        qh: QueueHandler = NonBlockingQueueHandler(
            log_queue, drop_warning_threshold=settings.LOG_QUEUE_DROP_WARNING_THRESHOLD
        )
    else:
        qh = QueueHandler(log_queue)

    qh.addFilter(CorrelationFilter())
    qh.addFilter(MaskingFilter(sensitive_fields=settings.SENSITIVE_FIELDS, enabled=settings.PII_MASKING_ENABLED))

    listener = QueueListener(log_queue, *current_handlers, respect_handler_level=True)
    listener.start()

    root_logger.addHandler(qh)

    _QUEUE_LISTENER = listener
    _QUEUE = log_queue


def stop_queue_logging() -> None:
    """
    Stop the QueueListener (flushing queued records) and clear module refs.
    Safe to call when queue logging was never started.
    """
    global _QUEUE_LISTENER, _QUEUE
    listener = _QUEUE_LISTENER
    if listener is None:
        return

    try:
        listener.stop()  # enqueues the sentinel and joins the listener thread
    except Exception:
        logger.exception("Failed to stop QueueListener cleanly")
    finally:
        _QUEUE_LISTENER = None
        _QUEUE = None
