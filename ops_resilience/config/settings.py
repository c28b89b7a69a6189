# ops_resilience/config/settings.py

"""
Settings for the resilience layer.

Values come from (highest precedence first) explicit keyword arguments or
a YAML file, ``OPS_RESILIENCE_*`` environment variables, then the ``.env``
file.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import SettingsConfigDict

from .base import BaseConfig
from .loader import load_config


class ResilienceSettings(BaseConfig):
    """Configuration surface of the request pipeline, error handler and logging."""

    model_config = SettingsConfigDict(
        env_prefix="OPS_RESILIENCE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="forbid",
    )

    # Transport
    base_url: str = Field(
        default="http://localhost:8000", description="Base URL of the backend API"
    )
    timeout_ms: int = Field(default=30_000, gt=0, description="Per-attempt timeout")
    max_retries: int = Field(default=3, ge=1, description="Maximum attempts per call")
    retry_delay_ms: int = Field(default=1000, ge=0, description="Base backoff delay")
    default_headers: dict[str, str] = Field(default_factory=dict)

    # Cache
    cache_enabled: bool = True
    cache_ttl_ms: int = Field(default=300_000, gt=0)
    coalesce_reads: bool = Field(
        default=True, description="Share one fetch between concurrent GET misses"
    )

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_requests_per_window: int = Field(default=100, gt=0)
    rate_limit_window_ms: int = Field(default=60_000, gt=0)

    # Circuit breaker
    circuit_breaker_enabled: bool = False
    circuit_breaker_failure_threshold: int = Field(default=5, gt=0)
    circuit_breaker_recovery_ms: int = Field(default=60_000, gt=0)

    # Session
    auth_required: bool = Field(
        default=False, description="Health checks expect an authenticated session"
    )

    # Error handling
    enable_recovery: bool = True
    enable_user_feedback: bool = True
    monitoring_endpoint: str | None = None
    notification_webhook: str | None = None
    locale: Literal["fr", "en"] = "fr"

    # Logging
    log_format: Literal["text", "structured", "json"] = "text"

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) URL and drop the trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("monitoring_endpoint", "notification_webhook")
    @classmethod
    def validate_sink_url(cls, v: str | None) -> str | None:
        if not v:
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError("Sink URLs must start with http:// or https://")
        return v

    @classmethod
    def from_yaml(cls, path: str | Path) -> "ResilienceSettings":
        """Load settings from a YAML file, layered over the environment.

        Raises:
            ConfigFileError: The file cannot be read or parsed
            ConfigValidationError: A value is invalid
        """
        return load_config(cls, path)
