"""
rangerctl configuration

Connection and behaviour settings are read once from the environment (with
the demo stack's fallback defaults) and passed explicitly to every operation.
"""

import os
import logging
from typing import Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_STATE_FILE = os.path.join("~", ".rangerctl", "state.json")


class RangerSettings(BaseSettings):
    """Settings for talking to Ranger Admin and describing the Doris service"""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    # Ranger Admin
    ranger_url: str = "http://localhost:6080"
    ranger_user: str = "admin"
    ranger_password: str = "Admin123"
    service_name: str = "doris_nbd"

    # HTTP behaviour
    request_timeout: float = Field(30.0, validation_alias="RANGER_REQUEST_TIMEOUT")
    verify_ssl: bool = Field(True, validation_alias="RANGER_VERIFY_SSL")
    api_wait_attempts: int = Field(30, validation_alias="RANGER_API_WAIT_ATTEMPTS")
    api_wait_interval: float = Field(2.0, validation_alias="RANGER_API_WAIT_INTERVAL")
    conflict_retry_delay: float = Field(1.0, validation_alias="RANGER_CONFLICT_RETRY_DELAY")

    # Local state and logging
    state_file: str = Field(DEFAULT_STATE_FILE, validation_alias="RANGERCTL_STATE_FILE")
    log_level: str = "INFO"

    # Doris service instance registered in Ranger
    doris_jdbc_url: str = "jdbc:mysql://fe1.nbd.demo:9030"
    doris_username: str = "root"
    doris_password: str = ""
    doris_jdbc_driver: str = "com.mysql.cj.jdbc.Driver"

    @field_validator("ranger_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("ranger_url must start with http:// or https://")
        return value

    @field_validator("request_timeout", "api_wait_interval")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @field_validator("api_wait_attempts")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator("conflict_retry_delay")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {value}")
        return value

    @property
    def state_path(self) -> str:
        return os.path.expanduser(self.state_file)

    def with_overrides(self, **overrides: Any) -> "RangerSettings":
        """Return a validated copy with every non-None override applied"""
        values = self.model_dump()
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return type(self).model_validate(values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def describe(self) -> dict:
        """Settings safe to print; the password is masked"""
        data = self.model_dump()
        data["ranger_password"] = "***" if self.ranger_password else ""
        data["doris_password"] = "***" if self.doris_password else ""
        return data


def load_settings(**overrides: Any) -> RangerSettings:
    """Build settings from the environment, then apply explicit overrides"""
    try:
        settings = RangerSettings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in environment: {e}") from e
    if overrides:
        settings = settings.with_overrides(**overrides)
    logger.debug(f"Loaded settings for {settings.ranger_url} (service {settings.service_name})")
    return settings
