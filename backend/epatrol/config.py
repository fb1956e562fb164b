"""
Application configuration using Pydantic Settings.
Loads from environment variables and .env file.
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "E-Patrol"
    app_env: str = "development"  # development, staging, production
    debug: bool = False
    log_level: str = "INFO"

    # Remote store. Left unset, the client refuses to log in.
    database_url: Optional[str] = None

    # Identity tokens
    jwt_secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60 * 12  # one shift

    # Remote calls
    remote_timeout_seconds: float = 10.0
    read_retries: int = 1  # read-only calls only, writes are never retried

    # Reporting loop
    tracking_interval_seconds: float = 5.0
    tracking_min_distance_meters: float = 5.0
    default_accuracy_meters: float = 5.0  # sent when the device reports none

    # Beat defaults for fields the assignment store may leave empty
    default_beat_radius_meters: int = 1000
    default_beat_address: str = "Beat location"

    @property
    def is_backend_configured(self) -> bool:
        return bool(self.database_url and self.database_url.strip())


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Set up root logging from settings (scripts call this once)."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
