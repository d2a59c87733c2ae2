"""Application configuration via environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    build_git_hash: str = Field(
        default="unknown",
        validation_alias=AliasChoices("BUILD_GIT_HASH", "GTFS_BUILD_GIT_HASH"),
    )
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///gtfs.db")

    # Static GTFS import settings
    import_batch_size: int = Field(
        default=1000,
        ge=1,
        le=10000,
        validation_alias=AliasChoices("IMPORT_BATCH_SIZE", "GTFS_IMPORT_BATCH_SIZE"),
    )
    import_queue_size: int = Field(
        default=1,
        ge=1,
        validation_alias=AliasChoices("IMPORT_QUEUE_SIZE", "GTFS_IMPORT_QUEUE_SIZE"),
    )
    gtfs_import_strict: bool = Field(
        default=False,
        validation_alias=AliasChoices("GTFS_IMPORT_STRICT"),
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
