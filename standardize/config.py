"""Standardization service settings, read from DEDUPE_* environment variables or .env."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StandardizationSettings(BaseSettings):
    service_url: str | None = None
    api_key: str | None = None
    timeout: float = 60.0

    batch_size: int = Field(default=25, ge=1, le=50)
    duplicate_chunk_size: int = Field(default=50, ge=1)
    duplicate_single_call_limit: int = Field(default=100, ge=1)
    request_delay: float = Field(default=0.5, ge=0)
    max_retries: int = Field(default=3, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="DEDUPE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def api_configured(self) -> bool:
        return bool(self.service_url and self.api_key)


@lru_cache
def get_settings() -> StandardizationSettings:
    return StandardizationSettings()
