from importlib import metadata as importlib_metadata
from pathlib import Path
from typing import Annotated, Literal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from ..validators.config_validators import (
    require_non_blank,
    to_field_names,
    to_lowercase,
    to_uppercase,
)
from .precedence import LockedSettingsSource


def default_service_version() -> str:
    """
    Version of the installed `quickpay-logging` distribution, or "1.0.0" when running
    from a source checkout that was never installed.
    """
    try:
        return importlib_metadata.version("quickpay-logging")
    except importlib_metadata.PackageNotFoundError:
        return "1.0.0"


class Settings(BaseSettings):
    """
    Logging, correlation and masking settings loaded from the environment.
    """

    # Feature switches
    LOGGING_ENABLED: bool = True
    CORRELATION_ENABLED: bool = True
    PII_MASKING_ENABLED: bool = True

    # Correlation
    CORRELATION_HEADER_NAME: str = "X-Transaction-ID"
    CORRELATION_GENERATE_IF_MISSING: bool = True
    CORRELATION_ADD_TO_RESPONSE: bool = True
    CORRELATION_ID_PREFIX: str = "txn"

    # Masking: extra names are unioned with the built-in sensitive set, never replace it.
    # NoDecode lets the validator below accept "iban, pin" as well as a JSON list.
    SENSITIVE_FIELDS: Annotated[list[str], NoDecode] = Field(default_factory=list)

    # Service identity stamped on every record
    SERVICE_NAME: str = "quickpay-service"
    SERVICE_VERSION: str = Field(default_factory=default_service_version)
    SERVICE_ENVIRONMENT: str = "development"

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "json"
    LOG_TO_STDOUT: bool = True
    LOG_DIR: Path = Path("/var/log/quickpay")
    LOG_MAX_BYTES: int = 10_000_000  # 10 MB
    LOG_BACKUP_COUNT: int = 5

    # Queue-backed logging
    LOG_USE_QUEUE: bool = False
    LOG_QUEUE_MAX_SIZE: int = 0
    LOG_QUEUE_BLOCKING: bool = False
    LOG_QUEUE_DROP_WARNING_THRESHOLD: int = 100

    # --- Validators ---
    @field_validator("LOG_LEVEL", mode="before")
    def normalize_log_level(cls, v: str | None) -> str | None:
        """
        Normalize the LOG_LEVEL value to uppercase so "debug" and "DEBUG" are equivalent.
        """
        return to_uppercase(v)

    @field_validator("LOG_FORMAT", mode="before")
    def normalize_log_format(cls, v: str | None) -> str | None:
        return to_lowercase(v)

    @field_validator("SENSITIVE_FIELDS", mode="before")
    def normalize_sensitive_fields(cls, v):
        """
        Split, trim and lower-case additional sensitive field names at load time.
        """
        return to_field_names(v)

    @field_validator(
        "SERVICE_NAME",
        "SERVICE_VERSION",
        "SERVICE_ENVIRONMENT",
        "CORRELATION_HEADER_NAME",
        "CORRELATION_ID_PREFIX",
    )
    def reject_blank(cls, v: str) -> str:
        return require_non_blank(v)

    # --- Source ordering ---
    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """
        Sources are consulted in order; the first one providing a value wins.

        The locked source sits at position 0, ahead of even explicit constructor
        arguments, so values pinned by ConfigPrecedenceEnforcer cannot be shadowed.
        It contributes nothing until enforcement has run.
        """
        return (
            LockedSettingsSource(settings_cls),
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

# get_settings() takes no arguments and always returns the same settings from the environment,
# so caching it with @lru_cache() is good for performance. The precedence enforcer clears
# this cache after locking values.
@lru_cache()
def get_settings() -> Settings:
    return Settings()
