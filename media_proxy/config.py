"""
Configuration and settings for the image proxy service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service and scripts."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="/api")

    # Database holding users, service images and categories
    database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "use_in_memory_backends", "MEDIA_PROXY_USE_IN_MEMORY_BACKENDS"
        ),
    )

    # Backend the proxy fetches legacy uploads from
    backend_api_url: str = Field(
        default="http://localhost:3003/api/v1",
        validation_alias=AliasChoices(
            "backend_api_url", "BACKEND_API_URL", "NEXT_PUBLIC_API_URL"
        ),
    )
    api_version_suffix: str = Field(default="/api/v1")
    dev_allowed_hosts: list[str] = Field(
        default_factory=lambda: [
            "localhost:3001",
            "localhost:3002",
            "localhost:3003",
        ]
    )
    extra_allowed_hosts: list[str] = Field(default_factory=list)
    object_storage_markers: list[str] = Field(
        default_factory=lambda: ["r2.dev", "r2.cloudflarestorage.com"]
    )
    upstream_user_agent: str = Field(default="media-proxy/0.1")

    # S3-compatible storage (Cloudflare R2)
    storage_type: Optional[str] = Field(default=None)
    r2_access_key_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "r2_access_key_id", "R2_ACCESS_KEY_ID", "AWS_ACCESS_KEY_ID"
        ),
    )
    r2_secret_access_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "r2_secret_access_key", "R2_SECRET_ACCESS_KEY", "AWS_SECRET_ACCESS_KEY"
        ),
    )
    r2_bucket_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "r2_bucket_name", "R2_BUCKET_NAME", "AWS_S3_BUCKET"
        ),
    )
    r2_endpoint: Optional[str] = Field(default=None)
    r2_public_url: Optional[str] = Field(default=None)
    public_url_placeholder: str = Field(default="YOUR_PUB_ID")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
