"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Civic Alert Bot service, loading and validating environment variables
at startup.

Only process-wide infrastructure and channel credentials live here.
The per-broadcast bot configuration (recipients, templates, toggles) is
sent by the caller on every request, see ``alerter.models.AlertBotConfig``.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Relational store connection settings."""

    model_config = SettingsConfigDict(env_prefix="")

    url: str = Field(
        alias="DATABASE_URL",
        description="PostgreSQL connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError(
                "DATABASE_URL must be a PostgreSQL (or sqlite+aiosqlite) connection string"
            )
        return v


class TelegramSettings(BaseSettings):
    """Telegram bot credentials used for status checks."""

    model_config = SettingsConfigDict(env_prefix="TELEGRAM_")

    bot_token: SecretStr | None = Field(
        default=None,
        alias="TELEGRAM_BOT_TOKEN",
        description="Telegram bot token",
    )

    @property
    def enabled(self) -> bool:
        """Check if a Telegram bot token is configured."""
        return self.bot_token is not None and bool(self.bot_token.get_secret_value())


class WhatsAppSettings(BaseSettings):
    """WhatsApp Business API credentials."""

    model_config = SettingsConfigDict(env_prefix="WHATSAPP_")

    access_token: SecretStr | None = Field(
        default=None,
        alias="WHATSAPP_ACCESS_TOKEN",
        description="WhatsApp Business API access token",
    )
    phone_number_id: str | None = Field(
        default=None,
        alias="WHATSAPP_PHONE_NUMBER_ID",
        description="WhatsApp Business phone number ID",
    )
    api_version: str = Field(
        default="v18.0",
        alias="WHATSAPP_API_VERSION",
        description="Graph API version",
    )

    @field_validator("api_version")
    @classmethod
    def validate_api_version(cls, v: str) -> str:
        """Validate Graph API version format."""
        if not v.startswith("v"):
            raise ValueError("WHATSAPP_API_VERSION must look like v18.0")
        return v

    @property
    def enabled(self) -> bool:
        """Check if WhatsApp credentials are configured."""
        return (
            self.access_token is not None
            and bool(self.access_token.get_secret_value())
            and bool(self.phone_number_id)
        )

    def token_value(self) -> str | None:
        """Return the raw access token, if any."""
        return self.access_token.get_secret_value() if self.access_token else None


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from civic_alert_bot.config import get_settings

        settings = get_settings()
        print(settings.database.url)
        print(settings.log_level)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Nested configuration groups
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    whatsapp: WhatsAppSettings = Field(default_factory=WhatsAppSettings)

    # Application settings
    dashboard_url: str = Field(
        default="http://localhost:3000/camerpulse",
        alias="DASHBOARD_URL",
        description="Public dashboard link embedded in messages",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    http_port: int = Field(
        default=8080,
        alias="HTTP_PORT",
        description="HTTP port for the bot endpoint",
        ge=1,
        le=65535,
    )
    http_timeout: float = Field(
        default=10.0,
        alias="HTTP_TIMEOUT",
        description="Timeout in seconds for outbound provider calls",
        gt=0,
    )

    @field_validator("dashboard_url")
    @classmethod
    def validate_dashboard_url(cls, v: str) -> str:
        """Validate dashboard URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("DASHBOARD_URL must be an HTTP(S) URL")
        return v.rstrip("/")

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "database_url": self._redact_url(self.database.url),
            "dashboard_url": self.dashboard_url,
            "telegram_enabled": str(self.telegram.enabled),
            "whatsapp_enabled": str(self.whatsapp.enabled),
            "whatsapp_api_version": self.whatsapp.api_version,
            "log_level": self.log_level,
            "http_port": str(self.http_port),
            "http_timeout": str(self.http_timeout),
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If required environment variables are missing
            or have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
