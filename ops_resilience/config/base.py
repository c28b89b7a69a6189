# ops_resilience/config/base.py

"""
Shared settings fields: environment, log level, schema version and the
drift checksum that pins a reviewed configuration file.
"""

from enum import Enum
import hashlib
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
SchemaVersion = Literal["1.0.0"]

# The checksum must not cover itself
_UNCHECKSUMMED_FIELDS = {"validation_checksum"}


class Environment(str, Enum):
    """Deployment the resilience layer runs in."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class BaseConfig(BaseSettings):
    """Fields every ops-resilience settings file carries.

    A file may pin ``validation_checksum`` to the SHA-256 of its reviewed
    values; ``validate_checksum`` then reports whether the effective
    settings, environment overrides included, still hash to it.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="forbid",
    )

    schema_version: SchemaVersion = Field(
        default="1.0.0", description="Settings file schema version"
    )
    validation_checksum: str | None = Field(
        default=None, description="SHA-256 of the reviewed settings"
    )

    environment: Environment = Environment.DEVELOPMENT
    log_level: LogLevel = "INFO"
    app_version: str = "0.1.0"

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    def calculate_checksum(self) -> str:
        """SHA-256 over the JSON form of every field except the checksum."""
        payload = self.model_dump_json(exclude=_UNCHECKSUMMED_FIELDS)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def validate_checksum(self) -> bool:
        """Whether the settings still match their pinned checksum.

        Settings without a pinned checksum always pass.
        """
        if self.validation_checksum is None:
            return True
        return self.calculate_checksum() == self.validation_checksum
