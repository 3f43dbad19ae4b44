"""
Configuration and settings for the HomeBoard service and client.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service and the CLI."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5000)
    log_level: str = Field(default="INFO")

    # Base used to build the derived `image` URL of a listing.
    public_base_url: str = Field(default="http://localhost:5000")

    # Record store (any SQLAlchemy URL); unset means in-memory.
    database_url: Optional[str] = Field(default=None)

    # Media storage
    media_backend: Literal["drive", "s3", "memory"] = Field(default="drive")
    max_upload_bytes: int = Field(default=10 * 1024 * 1024)

    # Google Drive
    google_service_account_json: Optional[str] = Field(default=None)
    google_drive_folder_id: Optional[str] = Field(default=None)

    # S3-compatible storage
    s3_bucket: Optional[str] = Field(default=None)
    s3_region: Optional[str] = Field(default=None)
    s3_endpoint: Optional[str] = Field(default=None)
    s3_prefix: str = Field(default="homes")
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, validation_alias="HOMEBOARD_USE_IN_MEMORY_BACKENDS"
    )

    # Client side
    api_url: str = Field(
        default="http://localhost:5000/api", validation_alias="HOMEBOARD_API_URL"
    )
    request_timeout: float = Field(default=30.0)

    @property
    def files_base_url(self) -> str:
        return f"{self.public_base_url.rstrip('/')}{self.api_prefix}/files"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
