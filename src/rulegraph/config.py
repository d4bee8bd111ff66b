"""Application configuration using Pydantic settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Cascade settings loaded from environment variables (RULEGRAPH_ prefix)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="RULEGRAPH_",
        case_sensitive=False,
        extra="ignore",
    )

    # Engine
    MAX_WORKERS: int = 4
    MATCH_TIMEOUT_SECONDS: float | None = 1.0
    DETECT_INTERFERENCE: bool = True

    # Graph
    AGGREGATION_MODE: Literal["instance", "value", "depth"] = "value"
    MAX_TRAVERSAL_STEPS: int = 1000

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = None
    REDACT_LOGS: bool = True


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
