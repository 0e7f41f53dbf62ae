"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env files.
Validates required fields and provides typed access to settings.

Only applications (the CLI, WalrusClient.from_settings) read settings;
the cache, classifier and client take plain constructor arguments.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal
from urllib.parse import urlparse

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """SDK settings loaded from environment variables.

    Required:
        WALRUS_PUBLISHER_URL: Base URL of the publisher (write path)
        WALRUS_AGGREGATOR_URL: Base URL of the aggregator (read path)

    Optional:
        WALRUS_TIMEOUT_SECONDS: Per-request timeout
        WALRUS_USE_SECURE_CONNECTION: Verify TLS certificates
        WALRUS_JWT_TOKEN: Bearer token sent on uploads
        WALRUS_CACHE_DIR: Persistent cache directory (ephemeral if unset)
        WALRUS_CACHE_MAX_SIZE: Maximum number of cached blobs
        LOG_LEVEL: Logging level
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    WALRUS_PUBLISHER_URL: str = Field(..., description="Publisher base URL")
    WALRUS_AGGREGATOR_URL: str = Field(..., description="Aggregator base URL")

    WALRUS_TIMEOUT_SECONDS: float = Field(
        default=30.0, gt=0.0, description="Per-request timeout in seconds"
    )
    WALRUS_USE_SECURE_CONNECTION: bool = Field(
        default=False, description="Verify TLS certificates"
    )
    WALRUS_JWT_TOKEN: SecretStr | None = Field(
        default=None, description="JWT bearer token for uploads"
    )

    WALRUS_CACHE_DIR: Path | None = Field(
        default=None, description="Cache directory (temporary if unset)"
    )
    WALRUS_CACHE_MAX_SIZE: int = Field(
        default=100, ge=1, description="Maximum number of cached blobs"
    )

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    @property
    def publisher_url(self) -> str:
        return self.WALRUS_PUBLISHER_URL

    @property
    def aggregator_url(self) -> str:
        return self.WALRUS_AGGREGATOR_URL

    @property
    def jwt_token(self) -> str | None:
        """Get the JWT token as plain text."""
        if self.WALRUS_JWT_TOKEN is None:
            return None
        value = self.WALRUS_JWT_TOKEN.get_secret_value().strip()
        return value or None

    @field_validator("WALRUS_PUBLISHER_URL", "WALRUS_AGGREGATOR_URL")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate that a base URL has a scheme and a host."""
        parsed = urlparse(v.strip())
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("Base URL must include a scheme and a host")
        return v.strip()

    def redacted_display(self) -> dict[str, str | int | float | bool | None]:
        """Return settings with the JWT redacted for display."""
        token = self.jwt_token
        redacted_token = None
        if token is not None:
            redacted_token = f"{token[:8]}...{token[-4:]}" if len(token) > 12 else "***"

        return {
            "WALRUS_PUBLISHER_URL": self.WALRUS_PUBLISHER_URL,
            "WALRUS_AGGREGATOR_URL": self.WALRUS_AGGREGATOR_URL,
            "WALRUS_TIMEOUT_SECONDS": self.WALRUS_TIMEOUT_SECONDS,
            "WALRUS_USE_SECURE_CONNECTION": self.WALRUS_USE_SECURE_CONNECTION,
            "WALRUS_JWT_TOKEN": redacted_token,
            "WALRUS_CACHE_DIR": str(self.WALRUS_CACHE_DIR) if self.WALRUS_CACHE_DIR else None,
            "WALRUS_CACHE_MAX_SIZE": self.WALRUS_CACHE_MAX_SIZE,
            "LOG_LEVEL": self.LOG_LEVEL,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
