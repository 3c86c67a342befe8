import pytest
from pydantic import ValidationError

from quickpay_logging.config.settings import Settings, get_settings


def test_defaults():
    settings = Settings()

    assert settings.LOGGING_ENABLED is True
    assert settings.CORRELATION_ENABLED is True
    assert settings.CORRELATION_HEADER_NAME == "X-Transaction-ID"
    assert settings.CORRELATION_ID_PREFIX == "txn"
    assert settings.PII_MASKING_ENABLED is True
    assert settings.SENSITIVE_FIELDS == []
    assert settings.SERVICE_NAME == "quickpay-service"
    assert settings.SERVICE_VERSION
    assert settings.LOG_FORMAT == "json"


def test_log_level_and_format_are_normalized():
    settings = Settings(LOG_LEVEL="debug", LOG_FORMAT="TEXT")
    assert settings.LOG_LEVEL == "DEBUG"
    assert settings.LOG_FORMAT == "text"


def test_invalid_log_level_is_rejected():
    with pytest.raises(ValidationError):
        Settings(LOG_LEVEL="verbose")


@pytest.mark.parametrize("field", ["SERVICE_NAME", "SERVICE_ENVIRONMENT", "CORRELATION_HEADER_NAME"])
def test_blank_identity_is_rejected(field):
    with pytest.raises(ValidationError):
        Settings(**{field: "   "})


def test_sensitive_fields_from_comma_separated_env(monkeypatch):
    monkeypatch.setenv("SENSITIVE_FIELDS", " IBAN, pin,,iban ")
    assert Settings().SENSITIVE_FIELDS == ["iban", "pin"]


def test_sensitive_fields_from_json_env(monkeypatch):
    monkeypatch.setenv("SENSITIVE_FIELDS", '["Iban", "pin"]')
    assert Settings().SENSITIVE_FIELDS == ["iban", "pin"]


def test_env_overrides_defaults(monkeypatch):
    monkeypatch.setenv("CORRELATION_ID_PREFIX", "pay")
    monkeypatch.setenv("CORRELATION_ENABLED", "false")
    settings = Settings()
    assert settings.CORRELATION_ID_PREFIX == "pay"
    assert settings.CORRELATION_ENABLED is False


def test_get_settings_is_cached():
    assert get_settings() is get_settings()
