# src/quickpay_logging/core/logging/formatters.py

"""
Structured record assembly and the logging formatters built on it.

This module provides:

  - StructuredRecordAssembler: turns one logging call (level, logger, message, args)
    plus the ambient correlation metadata into a StructuredLogRecord, masking
    sensitive values on the way, and serializes it to a single JSON line.

  - EcsJsonFormatter: a logging.Formatter that feeds every LogRecord through the
    assembler. This is the production formatter; one JSON object per line (NDJSON).

  - ColorFormatter: a human-friendly, ANSI-colored formatter for local consoles
    (LOG_FORMAT=text). It is never selected once the schema format has been locked
    by ConfigPrecedenceEnforcer.

Record schema (keys always appear in this order):

    {
      "timestamp": "2025-09-27T13:22:45.123Z",
      "host": {"name": "api-7f9c", "ip": "10.0.3.17"},
      "process": {"pid": 4242, "thread": {"name": "MainThread"}},
      "log": {"level": "INFO", "logger": "payments.api"},
      "service": {"name": "quickpay-service", "version": "1.0.0", "environment": "production"},
      "correlation": {"id": "txn_1700000000000_Xq3v0cVb9yq2h1kA"},
      "user": {"id": "u-81"},                       # only when a user is bound
      "message": "processed order-9",
      "error": {"type": ..., "message": ..., "stack_trace": ...},   # only with exc_info
      "labels": {"region": "eu-west-1"}              # only when non-empty
    }

Optional groups are either complete or absent, never `{}` and never half-filled, so
downstream parsers can rely on a stable schema. `correlation.id` is "-" when nothing
is bound (same sentinel as the text format).

Where the data comes from:
  - correlation / user / service id: the ambient metadata stamped on the record by
    CorrelationFilter (or, without the filter, read from the store at format time);
  - labels: remaining ambient entries (`context.<key>` annotations lose their prefix)
    plus anything passed through `extra={...}` or `log_event(..., **labels)`;
  - host: resolved once per process and cached.

Masking happens before interpolation: a message argument whose string form looks
sensitive is masked first, so the secret never reaches the rendered message.

Failure policy: EcsJsonFormatter.format() never raises. If assembling or serializing
a record fails, a single plain-text line is emitted instead and a module-level counter
is incremented (see get_formatter_stats()).
"""

from __future__ import annotations

import json
import logging
import os
import socket
import threading
import traceback
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from functools import lru_cache
from logging import LogRecord
from typing import Any, Mapping

from ...exceptions import ResolutionFailed, SerializationDegraded
from ..correlation.store import (
    ANNOTATION_PREFIX,
    CORRELATION_ID_KEY,
    SERVICE_ID_KEY,
    USER_ID_KEY,
    store,
)
from ..masking import MaskingRule, PiiMaskingEngine

logger = logging.getLogger(__name__)

UNKNOWN_HOST = "unknown-host"
UNKNOWN_IP = "unknown-ip"
NO_CORRELATION_ID = "-"

# Attributes every LogRecord carries; anything else on a record came from `extra=`.
_RECORD_ATTRS = frozenset(LogRecord("", logging.INFO, "", 0, "", (), None).__dict__) | {"message", "asctime"}
# Attributes stamped by our filters / log_event; consumed directly, not copied as labels.
_STAMPED_ATTRS = frozenset({"correlation_id", "ambient", "labels"})

# Diagnostics for records that fell back to plain text
_DEGRADED_COUNT = 0
_DEGRADED_LOCK = threading.Lock()


# -----------------------
# Schema
# -----------------------
@dataclass(frozen=True)
class HostIdentity:
    name: str
    ip: str


@dataclass(frozen=True)
class ServiceIdentity:
    name: str = "quickpay-service"
    version: str = "1.0.0"
    environment: str = "development"


@dataclass(frozen=True)
class ErrorInfo:
    type: str
    message: str
    stack_trace: str


@dataclass(frozen=True)
class StructuredLogRecord:
    timestamp: str
    host: HostIdentity
    pid: int | None
    thread_name: str | None
    level: str
    logger_name: str
    service: ServiceIdentity
    correlation_id: str
    message: str
    user_id: str | None = None
    error: ErrorInfo | None = None
    labels: Mapping[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Wire mapping; insertion order is the schema order."""
        data: dict[str, Any] = {
            "timestamp": self.timestamp,
            "host": {"name": self.host.name, "ip": self.host.ip},
            "process": {"pid": self.pid, "thread": {"name": self.thread_name}},
            "log": {"level": self.level, "logger": self.logger_name},
            "service": {
                "name": self.service.name,
                "version": self.service.version,
                "environment": self.service.environment,
            },
            "correlation": {"id": self.correlation_id},
        }
        if self.user_id is not None:
            data["user"] = {"id": self.user_id}
        data["message"] = self.message
        if self.error is not None:
            data["error"] = {
                "type": self.error.type,
                "message": self.error.message,
                "stack_trace": self.error.stack_trace,
            }
        if self.labels:
            data["labels"] = dict(self.labels)
        return data


# -----------------------
# Host identity (resolved once per process)
# -----------------------
def _lookup_hostname() -> str:
    try:
        name = socket.gethostname()
    except OSError as exc:
        raise ResolutionFailed(f"hostname lookup failed: {exc}") from exc
    if not name:
        raise ResolutionFailed("hostname lookup returned an empty name")
    return name


def _lookup_ip(hostname: str) -> str:
    try:
        return socket.gethostbyname(hostname)
    except (OSError, UnicodeError) as exc:
        raise ResolutionFailed(f"ip lookup for {hostname!r} failed: {exc}") from exc


def resolve_host_identity() -> HostIdentity:
    """Look up hostname and ip, degrading each to a sentinel instead of failing."""
    try:
        hostname = _lookup_hostname()
    except ResolutionFailed as exc:
        logger.warning("%s; using %s / %s", exc, UNKNOWN_HOST, UNKNOWN_IP)
        return HostIdentity(UNKNOWN_HOST, UNKNOWN_IP)
    try:
        ip = _lookup_ip(hostname)
    except ResolutionFailed as exc:
        logger.warning("%s; using %s", exc, UNKNOWN_IP)
        ip = UNKNOWN_IP
    return HostIdentity(hostname, ip)


@lru_cache(maxsize=1)
def get_host_identity() -> HostIdentity:
    return resolve_host_identity()


# -----------------------
# Helpers
# -----------------------
def format_timestamp(created: float | None = None) -> str:
    """ISO-8601 UTC with millisecond precision and a trailing Z."""
    moment = (
        datetime.fromtimestamp(created, tz=timezone.utc)
        if created is not None
        else datetime.now(timezone.utc)
    )
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def interpolate(template: str, args: Any) -> str:
    """
    Render `template` with `args`.

    Plain %-formatting comes first, so a literal "{}" in a %-style message survives.
    SLF4J-style "{}" placeholders are only substituted when %-formatting fails. A
    mismatch between placeholders and arguments never raises: the arguments are appended.
    """
    if not args:
        return template
    try:
        return template % args
    except (TypeError, ValueError, KeyError):
        pass
    if "{}" in template and not isinstance(args, Mapping):
        try:
            return template.replace("%", "%%").replace("{}", "%s") % args
        except (TypeError, ValueError):
            pass
    values = args.values() if isinstance(args, Mapping) else args
    return f"{template} {' '.join(str(v) for v in values)}"


def extract_labels(record: LogRecord) -> dict[str, Any]:
    """Per-call labels: `extra={...}` attributes plus an explicit `labels` mapping."""
    labels = {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and key not in _STAMPED_ATTRS and not key.startswith("_")
    }
    explicit = getattr(record, "labels", None)
    if isinstance(explicit, Mapping):
        labels.update(explicit)
    return labels


def _record_degradation() -> None:
    global _DEGRADED_COUNT
    with _DEGRADED_LOCK:
        _DEGRADED_COUNT += 1


def get_formatter_stats() -> dict:
    """Return small diagnostics about degraded (plain-text fallback) records."""
    with _DEGRADED_LOCK:
        return {"degraded_records": _DEGRADED_COUNT}


# -----------------------
# Assembler
# -----------------------
class StructuredRecordAssembler:
    """
    Builds StructuredLogRecords and serializes them.

    Construction:
      - service: identity stamped on every record (overridden per record by an
        ambient `service.id`, i.e. the service id of the bound TransactionContext).
      - engine: masking engine applied to labels and message arguments.
      - host: defaults to the cached process-wide host identity.
    """

    def __init__(
        self,
        service: ServiceIdentity | None = None,
        engine: PiiMaskingEngine | None = None,
        host: HostIdentity | None = None,
    ):
        self.service = service or ServiceIdentity()
        self.engine = engine or PiiMaskingEngine()
        self.host = host or get_host_identity()

    def assemble(
        self,
        level: int | str,
        logger_name: str,
        message: Any,
        args: Any = None,
        ambient: Mapping[str, str] | None = None,
        *,
        labels: Mapping[str, Any] | None = None,
        created: float | None = None,
        process_id: int | None = None,
        thread_name: str | None = None,
        exc_info: Any = None,
    ) -> StructuredLogRecord:
        remaining = dict(ambient or {})
        correlation_id = remaining.pop(CORRELATION_ID_KEY, None) or NO_CORRELATION_ID
        user_id = remaining.pop(USER_ID_KEY, None)
        service_id = remaining.pop(SERVICE_ID_KEY, None)

        merged: dict[str, Any] = {}
        for key, value in remaining.items():
            if key.startswith(ANNOTATION_PREFIX):
                key = key[len(ANNOTATION_PREFIX):]
            merged[key] = value
        merged.update(labels or {})

        return StructuredLogRecord(
            timestamp=format_timestamp(created),
            host=self.host,
            pid=os.getpid() if process_id is None else process_id,
            thread_name=thread_name if thread_name is not None else threading.current_thread().name,
            level=logging.getLevelName(level) if isinstance(level, int) else str(level).upper(),
            logger_name=str(logger_name),
            service=replace(self.service, name=service_id) if service_id else self.service,
            correlation_id=str(correlation_id),
            user_id=None if user_id is None else str(user_id),
            message=self.render_message(message, args),
            error=self._error_info(exc_info),
            labels=self.mask_labels(merged),
        )

    def render_message(self, message: Any, args: Any) -> str:
        """Mask sensitive arguments, then interpolate them into the message."""
        template = message if isinstance(message, str) else str(message)
        if not args:
            return template
        if isinstance(args, Mapping):
            safe: Any = {key: self._mask_entry(key, value) for key, value in args.items()}
        else:
            safe = tuple(self.engine.mask_value_if_sensitive(arg) for arg in args)
        return interpolate(template, safe)

    def mask_labels(self, labels: Mapping[str, Any]) -> dict[str, str]:
        return {str(key): str(self._mask_entry(str(key), value)) for key, value in labels.items()}

    def serialize(self, record: StructuredLogRecord) -> str:
        """One JSON object, no trailing newline (the handler adds the terminator)."""
        try:
            return json.dumps(record.to_dict(), ensure_ascii=False, default=str)
        except (TypeError, ValueError, RecursionError) as exc:
            raise SerializationDegraded(f"Structured record serialization failed: {exc}") from exc

    def fallback(
        self,
        level: str,
        logger_name: str,
        message: Any,
        args: Any = None,
        correlation_id: str | None = None,
        created: float | None = None,
        error: BaseException | None = None,
    ) -> str:
        """Single plain-text line used when a structured record cannot be produced."""
        try:
            rendered = self.render_message(message, args)
        except Exception:
            rendered = str(message)
        line = f"{format_timestamp(created)} {level} {logger_name} [{correlation_id or NO_CORRELATION_ID}] {rendered}"
        if error is not None:
            line += f" (structured logging degraded: {type(error).__name__})"
        return line.replace("\r", "\\r").replace("\n", "\\n")

    def _mask_entry(self, key: str, value: Any) -> Any:
        # sensitive by name, or by content
        if self.engine.classify(key):
            return self.engine.mask(value)
        return self.engine.mask_value_if_sensitive(value)

    @staticmethod
    def _error_info(exc_info: Any) -> ErrorInfo | None:
        if not exc_info or not isinstance(exc_info, tuple) or exc_info[0] is None:
            return None
        exc_type, exc_value, exc_tb = exc_info
        return ErrorInfo(
            type=exc_type.__name__,
            message=str(exc_value),
            stack_trace="".join(traceback.format_exception(exc_type, exc_value, exc_tb)).rstrip(),
        )


# -----------------------
# Formatters
# -----------------------
class EcsJsonFormatter(logging.Formatter):
    """
    Structured JSON formatter backed by StructuredRecordAssembler.

    Construction (all keyword-only so dictConfig can pass them through "()"):
      - service_name / service_version / service_environment: service identity.
      - masking_enabled: PII masking toggle.
      - sensitive_fields: extra sensitive names, unioned with the defaults.
      - datefmt: accepted for dictConfig symmetry; the schema timestamp is always ISO-8601 UTC.

    Usage example (programmatic):
      formatter = EcsJsonFormatter(service_name="payments", service_environment="production")
      handler.setFormatter(formatter)
    """

    def __init__(
        self,
        *,
        service_name: str = "quickpay-service",
        service_version: str = "1.0.0",
        service_environment: str = "development",
        masking_enabled: bool = True,
        sensitive_fields: list[str] | None = None,
        datefmt: str | None = None,
    ):
        super().__init__(datefmt=datefmt)
        self.assembler = StructuredRecordAssembler(
            service=ServiceIdentity(service_name, service_version, service_environment),
            engine=PiiMaskingEngine(MaskingRule.build(sensitive_fields, enabled=masking_enabled)),
        )

    def format(self, record: LogRecord) -> str:
        try:
            ambient = getattr(record, "ambient", None)
            ambient = dict(store.ambient() if ambient is None else ambient)
            # An explicit extra={"correlation_id": ...} wins over the bound context.
            explicit = getattr(record, "correlation_id", None)
            if explicit and explicit != NO_CORRELATION_ID:
                ambient[CORRELATION_ID_KEY] = explicit

            structured = self.assembler.assemble(
                record.levelname,
                record.name,
                record.msg,
                record.args,
                ambient,
                labels=extract_labels(record),
                created=record.created,
                process_id=record.process,
                thread_name=record.threadName,
                exc_info=record.exc_info,
            )
            return self.assembler.serialize(structured)
        except Exception as exc:
            return self._fallback(record, exc)

    def _fallback(self, record: LogRecord, exc: Exception) -> str:
        """Best-effort single plain-text line; must not raise."""
        _record_degradation()
        try:
            return self.assembler.fallback(
                record.levelname,
                record.name,
                record.msg,
                record.args,
                correlation_id=getattr(record, "correlation_id", None),
                created=record.created,
                error=exc,
            )
        except Exception:
            return f"{record.levelname} {record.name} (structured logging degraded)"


class ColorFormatter(logging.Formatter):
    """
    Development-friendly colored formatter.

    Produces: TIMESTAMP | LEVEL | LOGGER | CORRELATION_ID | MESSAGE, with the level
    highlighted and the traceback appended when exc_info is set. Arguments are
    rendered through record.getMessage(), so pair it with MaskingFilter (the builder
    does) to keep secrets out of the console.
    """

    COLOR_CODES = {
        "DEBUG": "\033[1;36;47m",   # bold cyan on white
        "INFO": "\033[32m",         # green
        "WARNING": "\033[33m",      # yellow
        "ERROR": "\033[31m",        # red
        "CRITICAL": "\033[1;41m",   # bold on red background
        "RESET": "\033[0m",
    }

    def __init__(self, fmt: str | None = None, datefmt: str | None = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)

    def format(self, record: LogRecord) -> str:
        color = self.COLOR_CODES.get(record.levelname, "")
        # reset right after the level so the color does not spill into the message
        reset = self.COLOR_CODES["RESET"]
        timestamp = self.formatTime(record, self.datefmt)

        base = (
            f"{timestamp} | {color}{record.levelname:<10}{reset} | "
            f"{record.name:<30} | "
            f"{getattr(record, 'correlation_id', NO_CORRELATION_ID):<36} | "
            f"{record.getMessage()}"
        )

        if record.exc_info:
            base = base + "\n" + self.formatException(record.exc_info)

        return base
