"""Configuration management for the training-example curator."""

from enum import Enum
from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class CacheBackend(str, Enum):
    """Supported analysis cache backends."""
    MEMORY = "memory"  # Process-local, lost on restart
    SUPABASE = "supabase"  # PostgREST table shared across workers


# Static reliability estimates per selector kind. Only used to order backups
# when a session carries no measured reliability data.
DEFAULT_FALLBACK_SCORES: dict[str, float] = {
    "test_id": 0.9,
    "xpath": 0.8,
    "id": 0.7,
    "attribute": 0.6,
    "class": 0.4,
    "other": 0.3,
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Logging
    log_level: str = Field("INFO", description="Root log level")
    log_json: bool = Field(False, description="Render logs as JSON lines")

    # Persistence (optional)
    supabase_url: Optional[str] = Field(None, description="Supabase project URL")
    supabase_service_key: Optional[SecretStr] = Field(None, description="Supabase service role key")

    # Analysis cache
    cache_backend: CacheBackend = Field(CacheBackend.MEMORY, description="Where cached analyses live")
    cache_table: str = Field("analysis_cache", description="Table backing the Supabase cache")
    cache_default_ttl_hours: float = Field(24.0, description="Default cache entry lifetime")
    cache_top_keys_limit: int = Field(10, description="Number of hottest keys reported in stats")
    analysis_ttl_hours: float = Field(24.0, description="Lifetime of cached external analyses")

    # Selector resolution
    selector_max_backups: int = Field(5, description="Max backup selectors kept per event")
    selector_fallback_scores: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_FALLBACK_SCORES),
        description="Estimated reliability per selector kind when no measurements exist",
    )

    # Scoring
    reliability_floor: float = Field(0.5, description="Measured reliability counted as reliable")
    min_example_reliability: float = Field(0.3, description="Reliability below which examples are weak")

    # Journey reconstruction
    monotonic_task_progress: bool = Field(
        False, description="Never let the inferred task index move backwards"
    )

    # Quality gate
    quality_trend_limit: int = Field(1000, description="Quality trend records kept in memory")


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
