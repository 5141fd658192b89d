"""
Configuration management using pydantic-settings.

Loads configuration from environment variables (prefixed REMOTE_CACHING_)
and .env files. Also acts as the storage path resolver: the cache database
lives at CACHE_DIR / DB_FILENAME.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DB_FILENAME = "remote_caching.db"


class Settings(BaseSettings):
    """Settings loaded from environment variables.

    Optional:
        REMOTE_CACHING_CACHE_DIR: Writable directory holding the database
        REMOTE_CACHING_DB_FILENAME: Database file name inside CACHE_DIR
        REMOTE_CACHING_DEFAULT_TTL_SECONDS: TTL used when a call gives none
        REMOTE_CACHING_VERBOSE: Emit cache diagnostics
        REMOTE_CACHING_LOG_LEVEL: Logging level
    """

    model_config = SettingsConfigDict(
        env_prefix="REMOTE_CACHING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    CACHE_DIR: Path = Field(default=Path(".cache"), description="Cache directory")
    DB_FILENAME: str = Field(
        default=DEFAULT_DB_FILENAME, description="SQLite file name inside CACHE_DIR"
    )

    DEFAULT_TTL_SECONDS: float = Field(
        default=3600.0, gt=0.0, description="Default time-to-live in seconds"
    )
    VERBOSE: bool = Field(default=False, description="Emit cache diagnostics")

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    @field_validator("DB_FILENAME")
    @classmethod
    def validate_db_filename(cls, v: str) -> str:
        """The database name must be a bare file name, not a path."""
        v = v.strip()
        if not v or Path(v).name != v:
            raise ValueError("DB_FILENAME must be a plain file name without directories")
        return v

    @property
    def default_ttl(self) -> timedelta:
        """Default TTL as a timedelta."""
        return timedelta(seconds=self.DEFAULT_TTL_SECONDS)

    @property
    def databases_path(self) -> Path:
        """Writable directory for the cache database, created on demand."""
        self.CACHE_DIR.mkdir(parents=True, exist_ok=True)
        return self.CACHE_DIR

    @property
    def database_file(self) -> Path:
        """Full path of the cache database file."""
        return self.databases_path / self.DB_FILENAME

    def display_values(self) -> dict[str, str | int | float | bool]:
        """Return settings for display."""
        return {
            "CACHE_DIR": str(self.CACHE_DIR),
            "DB_FILENAME": self.DB_FILENAME,
            "DEFAULT_TTL_SECONDS": self.DEFAULT_TTL_SECONDS,
            "VERBOSE": self.VERBOSE,
            "LOG_LEVEL": self.LOG_LEVEL,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
