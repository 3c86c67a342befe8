"""
Collaborator logging API.

`log_event` is a thin wrapper over stdlib logging for code that prefers SLF4J-style
"{}" placeholders and keyword labels:

    log_event(logging.INFO, "processed {}", order_id, region="eu-west-1")

The record goes through the normal handler/filter/formatter chain, so it picks up the
bound correlation id and masking like any `logger.info(...)` call. Keyword labels end
up in the record's `labels` group.
"""

from __future__ import annotations

import logging
from typing import Any

from ...exceptions import InvalidArgument

DEFAULT_LOGGER_NAME = "quickpay"


def to_percent_style(message: str) -> str:
    """Turn "{}" placeholders into "%s" (escaping literal "%") for LogRecord.getMessage()."""
    if "{}" not in message:
        return message
    return message.replace("%", "%%").replace("{}", "%s")


def _level_number(level: int | str) -> int:
    if isinstance(level, int):
        return level
    number = logging.getLevelName(str(level).upper())
    if not isinstance(number, int):
        raise InvalidArgument(f"Unknown log level: {level!r}", fields=["level"])
    return number


def log_event(
    level: int | str,
    message: str,
    *args: Any,
    logger: logging.Logger | str | None = None,
    exc_info: Any = None,
    **labels: Any,
) -> None:
    """
    Log `message` at `level` with positional `args` and keyword `labels`.

    Args:
        level: logging level number or name ("INFO", "warning", ...).
        message: "{}" or %-style template.
        logger: a Logger, a logger name, or None for the "quickpay" logger.
        exc_info: forwarded to Logger.log (populates the record's error group).
        **labels: per-call labels; sensitive names or values are masked.
    """
    target = logger if isinstance(logger, logging.Logger) else logging.getLogger(logger or DEFAULT_LOGGER_NAME)
    number = _level_number(level)
    if not target.isEnabledFor(number):
        return
    template = to_percent_style(message) if args else message
    target.log(
        number,
        template,
        *args,
        exc_info=exc_info,
        extra={"labels": labels} if labels else None,
        stacklevel=2,
    )
