# src/quickpay_logging/core/logging/filters.py
"""
Logging filters

Correlation and masking filters for logging.

Both filters run in the thread that made the logging call. That matters for two reasons:

  - The correlation binding lives in a contextvar. A QueueListener thread (LOG_USE_QUEUE)
    has its own, empty context, so the ambient metadata must be captured on the record
    before it is queued.
  - QueueHandler.prepare() interpolates the message in the producer thread, so
    sensitive arguments must be masked before that happens.

How they are intended to be used
--------------------------------
Install both filters in the dictConfig "filters" section and attach them to every
handler (builder.py does this):

     "filters": {
         "correlation": {"()": CorrelationFilter},
         "masking": {"()": MaskingFilter, "sensitive_fields": [...], "enabled": True},
     },
     "handlers": {
         "console": {"class": "logging.StreamHandler", "filters": ["correlation", "masking"], ...}
     }

After the filters run, every record has:
  - record.ambient         a dict snapshot of the ambient metadata (correlation.id, user.id, ...)
  - record.correlation_id  the explicit `extra={"correlation_id": ...}`, else the bound id, else "-"

so `%(correlation_id)s` in a text format string never raises KeyError.
"""

from __future__ import annotations

import logging
from logging import LogRecord
from typing import Any, Iterable, Mapping

from ..correlation.store import CORRELATION_ID_KEY, store
from ..masking import MaskingRule, PiiMaskingEngine
from .formatters import NO_CORRELATION_ID, extract_labels


class CorrelationFilter(logging.Filter):
    """
    Guarantees every LogRecord carries the correlation data of the context it was
    logged from.

      - record.ambient: kept when already set (a record re-filtered by a second
        handler), otherwise a snapshot of store.ambient().
      - record.correlation_id: an explicit extra wins, then the ambient id, then "-".

    Always returns True; this filter never drops records.
    """

    def filter(self, record: LogRecord) -> bool:
        if getattr(record, "ambient", None) is None:
            record.ambient = dict(store.ambient())
        record.correlation_id = (
            getattr(record, "correlation_id", None)
            or record.ambient.get(CORRELATION_ID_KEY)
            or NO_CORRELATION_ID
        )
        return True


class MaskingFilter(logging.Filter):
    """
    Masks sensitive data on the record in place:

      - `extra=` attributes whose name is sensitive ("password", "card_number", ...);
      - entries of an explicit `labels` mapping, by name or by content;
      - message arguments whose string form is sensitive ("token=abc123").
    """

    def __init__(self, name: str = "", sensitive_fields: Iterable[str] | None = None, enabled: bool = True):
        super().__init__(name)
        self.engine = PiiMaskingEngine(MaskingRule.build(sensitive_fields, enabled=enabled))

    def filter(self, record: LogRecord) -> bool:
        if not self.engine.enabled:
            return True

        # 1) extras, by name
        for key in extract_labels(record):
            if key in record.__dict__ and self.engine.classify(key):
                record.__dict__[key] = self.engine.mask(record.__dict__[key])

        # 2) explicit labels mapping
        labels = getattr(record, "labels", None)
        if isinstance(labels, Mapping):
            record.labels = {key: self._mask_entry(key, value) for key, value in labels.items()}

        # 3) message arguments, by content
        if record.args:
            if isinstance(record.args, Mapping):
                record.args = {key: self._mask_entry(key, value) for key, value in record.args.items()}
            else:
                record.args = tuple(self.engine.mask_value_if_sensitive(arg) for arg in record.args)
        return True

    def _mask_entry(self, key: Any, value: Any) -> Any:
        if self.engine.classify(str(key)):
            return self.engine.mask(value)
        return self.engine.mask_value_if_sensitive(value)
