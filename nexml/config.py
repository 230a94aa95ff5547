"""
NexML Marketplace Configuration

Centralized configuration using Pydantic Settings for type-safe environment
variable loading with validation.
"""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ═══════════════════════════════════════════════════════════════
    # APPLICATION
    # ═══════════════════════════════════════════════════════════════
    app_name: str = Field(default="nexml-marketplace", description="Application name")
    app_env: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_json: bool = Field(default=False, description="Render logs as JSON")

    # ═══════════════════════════════════════════════════════════════
    # STORAGE
    # ═══════════════════════════════════════════════════════════════
    storage_backend: Literal["memory", "redis"] = Field(
        default="memory", description="Registry storage backend"
    )
    redis_url: str | None = Field(default=None, description="Redis URL")
    redis_password: str | None = Field(default=None, description="Redis password")
    redis_key_prefix: str = Field(
        default="nexml:", min_length=1, description="Prefix for every registry key"
    )

    # ═══════════════════════════════════════════════════════════════
    # REGISTRY
    # ═══════════════════════════════════════════════════════════════
    id_salt: str | None = Field(
        default=None,
        description="Salt mixed into listing ids (random per process when unset)",
    )
    strict_update_validation: bool = Field(
        default=False,
        description="Apply upload content/price rules to updateModelState as well",
    )
    event_log_max_events: int = Field(
        default=0, ge=0, description="Max events retained in memory (0 = unbounded)"
    )

    @model_validator(mode="after")
    def validate_storage(self) -> "Settings":
        if self.storage_backend == "redis" and not self.redis_url:
            raise ValueError("redis_url is required when storage_backend is 'redis'")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.app_env == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in test mode."""
        return self.app_env == "testing"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
