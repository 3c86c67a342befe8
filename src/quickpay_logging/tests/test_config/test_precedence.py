import logging

import pytest

from quickpay_logging.config import precedence
from quickpay_logging.config.precedence import (
    ConfigPrecedenceEnforcer,
    LOCKED_KEYS,
    enforce_config_precedence,
    get_locked_values,
)
from quickpay_logging.config.settings import Settings, get_settings
from quickpay_logging.core.logging.builder import make_dict_config


def test_nothing_locked_before_enforcement():
    assert dict(get_locked_values()) == {}
    assert Settings(LOG_FORMAT="text").LOG_FORMAT == "text"


def test_init_kwargs_cannot_override_locked_format():
    locked = enforce_config_precedence()

    assert set(locked) == set(LOCKED_KEYS)
    assert locked["LOG_FORMAT"] == "json"
    assert Settings(LOG_FORMAT="text").LOG_FORMAT == "json"


def test_env_cannot_override_locked_format(monkeypatch):
    monkeypatch.setenv("LOG_FORMAT", "text")
    enforce_config_precedence()

    settings = get_settings()
    assert settings.LOG_FORMAT == "json"

    cfg = make_dict_config(settings)
    assert cfg["handlers"]["console"]["formatter"] == "json"


def test_service_identity_is_frozen_at_startup(monkeypatch):
    monkeypatch.setenv("SERVICE_NAME", "payments-api")
    monkeypatch.setenv("PII_MASKING_ENABLED", "true")
    enforce_config_precedence()

    monkeypatch.setenv("SERVICE_NAME", "renamed")
    monkeypatch.setenv("PII_MASKING_ENABLED", "false")

    assert Settings().SERVICE_NAME == "payments-api"
    assert Settings(SERVICE_NAME="explicit").SERVICE_NAME == "payments-api"
    assert Settings().PII_MASKING_ENABLED is True


def test_unlocked_fields_stay_configurable():
    enforce_config_precedence()
    assert Settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"


def test_enforcement_clears_settings_cache(monkeypatch):
    monkeypatch.setenv("LOG_FORMAT", "text")
    assert get_settings().LOG_FORMAT == "text"

    enforce_config_precedence()

    assert get_settings().LOG_FORMAT == "json"


def test_enforcement_is_idempotent():
    first = enforce_config_precedence()
    second = ConfigPrecedenceEnforcer().enforce()
    assert second is first


def test_locked_values_are_read_only():
    locked = enforce_config_precedence()
    with pytest.raises(TypeError):
        locked["LOG_FORMAT"] = "text"


def test_disabled_logging_skips_enforcement(monkeypatch):
    monkeypatch.setenv("LOGGING_ENABLED", "false")

    assert dict(enforce_config_precedence()) == {}
    assert Settings(LOG_FORMAT="text").LOG_FORMAT == "text"


def test_enforcement_failure_is_not_fatal(caplog):
    class BrokenSettings(Settings):
        def __init__(self, **values):
            raise RuntimeError("settings unavailable")

    with caplog.at_level(logging.WARNING, logger=precedence.__name__):
        locked = ConfigPrecedenceEnforcer(BrokenSettings).enforce()

    assert dict(locked) == {}
    assert dict(get_locked_values()) == {}
    assert "Failed to enforce locked logging configuration" in caplog.text


def test_success_is_logged(caplog):
    with caplog.at_level(logging.INFO, logger=precedence.__name__):
        enforce_config_precedence()
    assert "Enforced structured logging configuration (non-overrideable)" in caplog.text
