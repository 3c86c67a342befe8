"""
Locked configuration values with precedence over every other settings source.

At process start `ConfigPrecedenceEnforcer.enforce()` reads the baseline settings
(environment, .env, defaults), pins a small set of values and installs them into
`LockedSettingsSource`. `Settings.settings_customise_sources` places that source at
position 0, ahead of constructor kwargs, env vars, .env and secrets, so later
configuration cannot shadow the pinned values:

    enforce_config_precedence()      # once, before setup_logging()
    settings = get_settings()
    settings.LOG_FORMAT              # always "json" from now on

Locked keys:
  - LOG_FORMAT: forced to "json" (the structured NDJSON schema)
  - SERVICE_NAME / SERVICE_VERSION / SERVICE_ENVIRONMENT: frozen at their startup values
  - PII_MASKING_ENABLED: frozen at its startup value

The pinned mapping is a read-only MappingProxyType and there is no runtime API to
change it. Failures are logged and swallowed; components then keep their own defaults.
"""

import logging
from types import MappingProxyType
from typing import Any, Mapping

from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

logger = logging.getLogger(__name__)

PROPERTY_SOURCE_NAME = "quickpay-logging-enforcer"
LOCKED_SCHEMA_FORMAT = "json"
LOCKED_KEYS = (
    "LOG_FORMAT",
    "SERVICE_NAME",
    "SERVICE_VERSION",
    "SERVICE_ENVIRONMENT",
    "PII_MASKING_ENABLED",
)

_EMPTY: Mapping[str, Any] = MappingProxyType({})

# Written once by ConfigPrecedenceEnforcer.enforce(); read-only afterwards.
_LOCKED_VALUES: Mapping[str, Any] = _EMPTY


def get_locked_values() -> Mapping[str, Any]:
    """Return the enforced values (empty until enforcement has run)."""
    return _LOCKED_VALUES


class LockedSettingsSource(PydanticBaseSettingsSource):
    """
    pydantic-settings source serving the enforced values.

    Contributes nothing before enforcement, so Settings behaves like a plain
    BaseSettings until ConfigPrecedenceEnforcer has run.
    """

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return get_locked_values().get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        fields = self.settings_cls.model_fields
        return {name: value for name, value in get_locked_values().items() if name in fields}

    def __repr__(self) -> str:
        return f"LockedSettingsSource({PROPERTY_SOURCE_NAME} {sorted(get_locked_values())})"


class ConfigPrecedenceEnforcer:
    """
    Pins the schema format, service identity and masking toggle for the process lifetime.

    Args:
        settings_cls: Settings class used to read the baseline values. Defaults to the
                      package's Settings.
    """

    def __init__(self, settings_cls: type[BaseSettings] | None = None):
        self._settings_cls = settings_cls

    def enforce(self) -> Mapping[str, Any]:
        """
        Lock the values and return them. Idempotent: a second call returns the values
        locked by the first one. Never raises.
        """
        global _LOCKED_VALUES

        if _LOCKED_VALUES:
            logger.debug("Logging configuration already enforced: %s", sorted(_LOCKED_VALUES))
            return _LOCKED_VALUES

        try:
            settings_cls = self._settings_cls or _default_settings_cls()
            baseline = settings_cls()

            if not getattr(baseline, "LOGGING_ENABLED", True):
                logger.debug("QuickPay logging is disabled, skipping precedence enforcement")
                return _EMPTY

            locked = self._locked_values(baseline)
            _LOCKED_VALUES = MappingProxyType(locked)
            _clear_settings_cache()
        except Exception as exc:
            logger.warning("Failed to enforce locked logging configuration: %s", exc)
            logger.debug("Precedence enforcement error details", exc_info=True)
            return _EMPTY

        logger.info(
            "Enforced structured logging configuration (non-overrideable): %s",
            ", ".join(sorted(locked)),
        )
        return _LOCKED_VALUES

    @staticmethod
    def _locked_values(baseline: BaseSettings) -> dict[str, Any]:
        return {
            "LOG_FORMAT": LOCKED_SCHEMA_FORMAT,
            "SERVICE_NAME": baseline.SERVICE_NAME,
            "SERVICE_VERSION": baseline.SERVICE_VERSION,
            "SERVICE_ENVIRONMENT": baseline.SERVICE_ENVIRONMENT,
            "PII_MASKING_ENABLED": baseline.PII_MASKING_ENABLED,
        }


def enforce_config_precedence(settings_cls: type[BaseSettings] | None = None) -> Mapping[str, Any]:
    """Convenience wrapper: `ConfigPrecedenceEnforcer(settings_cls).enforce()`."""
    return ConfigPrecedenceEnforcer(settings_cls).enforce()


def _default_settings_cls() -> type[BaseSettings]:
    # imported lazily: settings.py imports LockedSettingsSource from this module
    from .settings import Settings
    return Settings


def _clear_settings_cache() -> None:
    from .settings import get_settings
    get_settings.cache_clear()
