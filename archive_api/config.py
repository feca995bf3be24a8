"""
Configuration and settings for the archive API.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(RuntimeError):
    """Raised when the process cannot start with the given environment."""


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Supabase project
    supabase_url: Optional[str] = Field(default=None)
    supabase_key: Optional[str] = Field(default=None)
    supabase_service_key: Optional[str] = Field(default=None)
    storage_bucket: str = Field(default="archive-files")

    # HTTP middleware
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    gzip_minimum_size: int = Field(default=1024)

    log_level: str = Field(default="INFO")

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    @model_validator(mode="after")
    def _require_backend(self) -> "Settings":
        if self.use_in_memory_backends:
            return self
        if not self.supabase_url:
            raise ConfigurationError(
                "SUPABASE_URL is required. Please check your environment variables."
            )
        if not self.supabase_key:
            raise ConfigurationError(
                "SUPABASE_KEY is required. Please check your environment variables."
            )
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
