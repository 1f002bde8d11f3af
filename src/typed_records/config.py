"""Configuration for typed_records."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings, overridable through TYPED_RECORDS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TYPED_RECORDS_",
        case_sensitive=False,
    )

    max_nesting_depth: int = Field(
        default=32, ge=1, le=1024, description="Deepest array nesting accepted for column types"
    )
    atomic_save: bool = Field(
        default=True, description="Write to a temporary file and rename it over the target"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(default="console", description="Log format")


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
