from pathlib import Path

from ...config.settings import Settings

# Every handler runs both filters: correlation first, so masking sees the stamped record.
HANDLER_FILTERS = ["correlation", "masking"]


def _formatter_name(settings: Settings) -> str:
    return "json" if settings.LOG_FORMAT == "json" else "standard"


def get_console_handler(settings: Settings) -> dict:
    """
    Return a dictConfig handler entry for the console handler.

    Args:
        settings: Settings instance. Relevant attributes:
                    - LOG_FORMAT: 'json' or 'text' (picks the "json" or "standard" formatter)
                    - LOG_LEVEL: minimum level for this handler

    Result shape:
        - "class": logging.StreamHandler, writing to stdout so container log
                   collectors pick one JSON object per line from a single stream.
        - "formatter": name of a formatter declared by builder.make_dict_config().
        - "filters": the "correlation" and "masking" filters, also declared there.
    """
    return {
        "class": "logging.StreamHandler",
        "formatter": _formatter_name(settings),
        "level": settings.LOG_LEVEL,
        "filters": list(HANDLER_FILTERS),
        "stream": "ext://sys.stdout",
    }


def get_file_handler(settings: Settings) -> dict:
    file_path = str(Path(settings.LOG_DIR) / "app.log")
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": _formatter_name(settings),
        "level": settings.LOG_LEVEL,
        "filename": file_path,
        "maxBytes": settings.LOG_MAX_BYTES,
        "backupCount": settings.LOG_BACKUP_COUNT,
        "encoding": "utf-8",
        "filters": list(HANDLER_FILTERS),
    }


# Errors also go to their own rotating file (alerting/archival); always structured.
def get_error_file_handler(settings: Settings) -> dict:
    error_file_path = str(Path(settings.LOG_DIR) / "errors.log")
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": "json",
        "level": "ERROR",
        "filename": error_file_path,
        "maxBytes": settings.LOG_MAX_BYTES,
        "backupCount": settings.LOG_BACKUP_COUNT,
        "encoding": "utf-8",
        "filters": list(HANDLER_FILTERS),
    }


def get_error_console_handler(settings: Settings) -> dict:
    return {
        "class": "logging.StreamHandler",
        "formatter": "json",
        "level": "ERROR",
        "filters": list(HANDLER_FILTERS),
    }
