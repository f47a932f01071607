"""Application configuration with Pydantic Settings.

Settings are loaded from environment variables and an optional .env file.
Only the storage connection string and listening port matter for
integration; everything else has a sensible default.

Examples:
    >>> from sealdrop.config import get_settings
    >>> settings = get_settings()
    >>> settings.QUOTA_MAX_ENTRIES
    5

    >>> settings.storage_config().retention
    datetime.timedelta(days=7)

Tests:
    - tests/unit/test_config.py::TestSettings
    - tests/unit/test_config.py::TestStorageConfig
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sealdrop.storage.config import StorageConfig


class Settings(BaseSettings):
    """Application settings.

    Attributes:
        DATABASE_URL: Database connection string (SQLite or PostgreSQL)
        HOST: Bind address used by ``sealdrop serve``
        PORT: Listening port
        MAX_PAYLOAD_BYTES: Largest accepted payload, in UTF-8 bytes
        RETENTION_SECONDS: Lifespan of an entry before it becomes unreachable
        QUOTA_WINDOW_SECONDS: Trailing window for per-origin quota counting
        QUOTA_MAX_ENTRIES: Writes allowed per origin inside one window
        TRUST_FORWARDED_FOR: Resolve origins from X-Forwarded-For when present
        PURGE_ON_STARTUP: Delete expired entries when the app starts
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./sealdrop.db",
        description="Database connection string",
    )

    # Server
    HOST: str = Field(default="0.0.0.0", description="Bind address")
    PORT: int = Field(default=3000, ge=1, le=65535, description="Listening port")

    # Application Settings
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    LOG_LEVEL: str = Field(default="INFO", description="Root log level")
    CORS_ORIGINS: list[str] = Field(
        default=["*"],
        description="Origins allowed by the CORS middleware",
    )

    # Storage policy
    MAX_PAYLOAD_BYTES: int = Field(
        default=1024 * 1024,
        ge=1,
        description="Maximum payload size in bytes (1 MiB)",
    )
    RETENTION_SECONDS: int = Field(
        default=7 * 24 * 60 * 60,
        ge=1,
        description="Entry time-to-live (7 days)",
    )
    QUOTA_WINDOW_SECONDS: int = Field(
        default=2 * 60 * 60,
        ge=1,
        description="Quota window (2 hours)",
    )
    QUOTA_MAX_ENTRIES: int = Field(
        default=5,
        ge=1,
        description="Entries allowed per origin per quota window",
    )
    TRUST_FORWARDED_FOR: bool = Field(
        default=True,
        description="Use the first X-Forwarded-For entry as the origin address",
    )
    PURGE_ON_STARTUP: bool = Field(
        default=True,
        description="Run the expired-entry purge during startup",
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL format."""
        valid_prefixes = ("sqlite", "postgresql", "postgres")
        if not any(v.startswith(prefix) for prefix in valid_prefixes):
            raise ValueError(
                f"DATABASE_URL must start with one of: {valid_prefixes}"
            )
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise and validate the log level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown LOG_LEVEL: {v}")
        return level

    def storage_config(self) -> StorageConfig:
        """Build the storage policy consumed by the blob store.

        Returns:
            StorageConfig: Size, retention and quota limits.
        """
        return StorageConfig(
            max_payload_bytes=self.MAX_PAYLOAD_BYTES,
            retention_seconds=self.RETENTION_SECONDS,
            quota_window_seconds=self.QUOTA_WINDOW_SECONDS,
            quota_max_entries=self.QUOTA_MAX_ENTRIES,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: The application settings.
    """
    return Settings()
