"""Runtime settings with typed configuration and fail-fast validation.

This module provides HttpSettings (pydantic_settings.BaseSettings) holding the
transport timeouts, redirect limit and retry defaults. Values are read from
``HTTPSLING_*`` environment variables; validation failures raise SettingsError.

Examples
--------
>>> from httpsling.settings import load_settings
>>> settings = load_settings(read_timeout_s=5.0)
>>> settings.retry_max_attempts
4
"""

from __future__ import annotations

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from httpsling.errors import SettingsError
from httpsling.logging import get_logger

__all__ = ["HttpSettings", "load_settings"]

logger = get_logger(__name__)


class HttpSettings(BaseSettings):
    """Transport and retry configuration (``HTTPSLING_*`` namespace)."""

    model_config = SettingsConfigDict(env_prefix="HTTPSLING_", extra="forbid", frozen=True)

    connect_timeout_s: float = Field(default=10.0, gt=0, description="Connection timeout in seconds")
    read_timeout_s: float = Field(default=30.0, gt=0, description="Read timeout in seconds")
    max_redirects: int = Field(default=10, ge=0, description="Redirects followed before giving up")
    retry_max_attempts: int = Field(
        default=4, ge=0, description="Retries made after the first send"
    )
    retry_min_wait_s: float = Field(default=1.0, ge=0, description="Minimum backoff wait")
    retry_max_wait_s: float = Field(default=30.0, ge=0, description="Maximum backoff wait")
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            msg = f"unknown log level: {value!r}"
            raise ValueError(msg)
        return level

    @model_validator(mode="after")
    def _check_wait_bounds(self) -> HttpSettings:
        if self.retry_min_wait_s > self.retry_max_wait_s:
            msg = "retry_min_wait_s must not exceed retry_max_wait_s"
            raise ValueError(msg)
        return self

    def __init__(self, **overrides: object) -> None:
        """Initialise settings with fail-fast validation."""
        try:
            super().__init__(**overrides)  # type: ignore[arg-type]
        except ValueError as exc:
            logger.exception(
                "Settings validation failed",
                extra={"operation": "settings.load", "error_type": type(exc).__name__},
            )
            msg = f"Configuration validation failed: {exc}"
            raise SettingsError(msg, cause=exc) from exc


def load_settings(**overrides: object) -> HttpSettings:
    """Load :class:`HttpSettings` with optional overrides."""
    return HttpSettings(**overrides)
