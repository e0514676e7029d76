"""Configuration management for Memoizable.

This module uses Pydantic Settings to load and validate configuration from
environment variables and .env files. Configuration is loaded once and is
immutable during runtime.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Library configuration settings.

    Settings are loaded from environment variables and .env files.
    All configuration values are validated at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MEMOIZABLE_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    app_name: str = "Memoizable"
    app_version: str = "0.1.0"
    environment: Literal["development", "production", "testing"] = "development"

    # Database Settings
    database_url: str = "sqlite+aiosqlite:///./memoizable.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_echo: bool = False

    # Logging Settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    # Snapshot Settings
    excluded_attributes: list[str] = Field(
        default=["locked"],
        description="Persisted columns that are never memoized",
    )
    state_attribute: str = Field(
        default="state",
        description="Attribute read at capture time to label a memory",
    )
    timestamp_suffixes: list[str] = Field(default=["_at"])
    date_suffixes: list[str] = Field(default=["_date"])

    # Capture Dispatch Settings
    capture_delay_seconds: float = 30.0
    capture_synchronously: bool = False

    @field_validator(
        "excluded_attributes", "timestamp_suffixes", "date_suffixes", mode="before"
    )
    @classmethod
    def parse_comma_separated(cls, v: str | list[str]) -> list[str]:
        """Parse list settings from a comma-separated string or list."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == "testing"

    @property
    def captures_inline(self) -> bool:
        """Whether memoize() should skip the deferred dispatcher."""
        return self.capture_synchronously or self.is_testing


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Cached settings instance.
    """
    return Settings()
