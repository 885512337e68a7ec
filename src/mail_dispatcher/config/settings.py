"""
Pydantic Settings configuration for Mail Dispatcher.

Loads configuration from ``MAIL_``-prefixed environment variables (and an
optional ``.env`` file). Names and defaults for the polling options match
the variables operators already set: MAIL_POLLING_INTERVAL,
MAIL_MAX_RETRY_COUNT and MAIL_RETRY_INTERVAL.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Polling settings
    polling_interval: int = Field(300, ge=1, le=86400)
    max_retry_count: int = Field(3, ge=1, le=100)
    retry_interval: int = Field(60, ge=0, le=3600)
    # Only unread messages received within this many days are fetched
    recency_window_days: int = Field(7, ge=1, le=365)

    # IMAP settings
    imap_timeout: int = Field(30, ge=1, le=600)
    imap_verify_tls: bool = Field(True)

    # SMTP settings
    smtp_timeout: int = Field(10, ge=1, le=600)
    forwarded_by: str = Field("Mail-Dispatcher-System", min_length=1)
    # Forward the original bytes instead of a rebuilt message
    forward_raw: bool = Field(False)

    # Storage settings
    database_path: str = Field("mail_dispatcher.db")

    # Audit log retention (0 disables the purge job)
    log_retention_days: int = Field(30, ge=0, le=3650)
    retention_hour: int = Field(3, ge=0, le=23)
    tz: str = Field("UTC")

    # Logging settings
    log_format: str = Field("console", pattern=r"^(console|json)$")
    debug: bool = Field(False)

    model_config = SettingsConfigDict(
        env_prefix="MAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure only one Settings instance is created,
    avoiding repeated environment variable parsing.
    """
    return Settings()
