"""
Runtime configuration helpers for the Eclipse services.

Loads DATABASE_URL and the remaining variables from the .env file located in
the project root.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root
BASE_DIR = Path(__file__).resolve().parents[1]

# Absolute path to .env
ENV_PATH = BASE_DIR / ".env"

# Load .env defaults without overriding environment variables provided by the platform
load_dotenv(dotenv_path=ENV_PATH, override=False)


class Settings(BaseSettings):
    # Required, usually supplied through .env
    database_url: str = Field(..., alias="DATABASE_URL")

    app_name: str = Field(default="Eclipse", alias="APP_NAME")
    api_version: str = Field(default="0.1.0", alias="API_VERSION")

    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_expires_minutes: int = Field(default=1440, alias="JWT_EXPIRES_MINUTES")

    history_limit: int = Field(default=50, alias="HISTORY_LIMIT")
    upload_timeout_seconds: float = Field(default=300.0, alias="UPLOAD_TIMEOUT_SECONDS")
    refetch_debounce_seconds: float = Field(default=0.25, alias="REFETCH_DEBOUNCE_SECONDS")
    signin_profile_retry_seconds: float = Field(default=1.0, alias="SIGNIN_PROFILE_RETRY_SECONDS")

    # Local device storage
    blob_root: Path = Field(default=BASE_DIR / "blobs", alias="BLOB_ROOT")
    subscriber_counts_path: Path = Field(
        default=BASE_DIR / "subscriber_counts.json", alias="SUBSCRIBER_COUNTS_PATH"
    )

    # S3-compatible object storage (DigitalOcean Spaces)
    storage_key: str | None = Field(default=None, alias="STORAGE_KEY")
    storage_secret: str | None = Field(default=None, alias="STORAGE_SECRET")
    storage_region: str | None = Field(default=None, alias="STORAGE_REGION")
    storage_endpoint: str | None = Field(default=None, alias="STORAGE_ENDPOINT")
    storage_public_base_url: str | None = Field(default=None, alias="STORAGE_PUBLIC_BASE_URL")

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
