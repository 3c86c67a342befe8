"""
Core pytest configuration for the entire test suite.

Every test starts from the same baseline:
  - no correlation binding and no ambient metadata in the test's context;
  - an empty settings cache, so Settings are re-read from the (monkeypatched) environment;
  - no locked configuration values from an earlier enforcement;
  - no queue listener left running by an earlier logging test.

Concern-specific helpers live next to the tests that use them.
"""

from __future__ import annotations

import logging

# -------------------------------
# Early logging tuning (IMPORTANT)
# -------------------------------
# Set the level for noisy third-party loggers at import time, before importing modules
# that might initialize them, so pytest collection stays quiet.
NOISY_LOGGERS = (
    "asyncio",
    "httpx",
    "httpcore",
    "urllib3",
    "multipart",
)
for _name in NOISY_LOGGERS:
    logging.getLogger(_name).setLevel(logging.WARNING)

# -------------------------------
# Third-party / project imports
# -------------------------------
import pytest

from quickpay_logging.config import precedence
from quickpay_logging.config.settings import get_settings
from quickpay_logging.core.correlation import store
from quickpay_logging.core.logging.builder import stop_queue_logging


@pytest.fixture(autouse=True)
def isolated_logging_state(monkeypatch):
    """Reset correlation binding, settings cache, locked values and root handlers around each test."""
    store.clear()
    for key in list(store.ambient()):
        store.remove_ambient(key)
    monkeypatch.setattr(precedence, "_LOCKED_VALUES", precedence._EMPTY)
    get_settings.cache_clear()

    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level

    yield

    stop_queue_logging()
    get_settings.cache_clear()

    # setup_logging() replaces root handlers; drop the ones bound to this test's streams
    for handler in list(root.handlers):
        if handler not in saved_handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in saved_handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(saved_level)


@pytest.fixture()
def memory_settings(tmp_path):
    """
    Real Settings for tests that install logging: stdout console only, DEBUG level.
    """
    from quickpay_logging.config.settings import Settings

    return Settings(
        LOG_LEVEL="DEBUG",
        LOG_TO_STDOUT=True,
        LOG_DIR=tmp_path / "logs",
        SERVICE_NAME="payments-api",
        SERVICE_VERSION="2.4.1",
        SERVICE_ENVIRONMENT="testing",
    )
