"""
Configuration settings for the geography quiz.

Uses Pydantic Settings for environment variable management with .env file support.
Every variable is prefixed with ``GEOQUIZ_`` (e.g. ``GEOQUIZ_BATCH_SIZE=30``).
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from geoquiz.core.progress import LearningConfig
from geoquiz.learning.queue_builder import LearningMixOptions


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="GEOQUIZ_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Data & Persistence
    # ========================================
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory holding cities.json and roads.json",
    )
    state_dir: Path = Field(
        default=Path.home() / ".geoquiz",
        description="Directory for persisted progress, aliases and backups",
    )
    storage_backend: Literal["json", "sqlite", "memory"] = Field(
        default="json",
        description="Blob storage backend for persisted state",
    )
    progress_key: str = Field(
        default="nl_quiz_progress",
        description="Storage key of the progress blob",
    )
    aliases_key: str = Field(
        default="nl_quiz_custom_aliases",
        description="Storage key of the custom alias blob",
    )
    backup_on_reset: bool = Field(
        default=True,
        description="Write an export file before clearing progress",
    )

    # ========================================
    # Leveling
    # ========================================
    streak_threshold: int = Field(
        default=2,
        ge=1,
        description="Consecutive correct answers needed to level up",
    )
    max_level: int = Field(
        default=5,
        ge=1,
        description="Level at which an item counts as mastered",
    )
    dedup_window_ms: int = Field(
        default=1000,
        ge=0,
        description="Events for the same item inside this window are ignored",
    )

    # ========================================
    # Learning Queue Mix
    # ========================================
    batch_size: int = Field(
        default=20,
        gt=0,
        description="Questions per learning round",
    )
    new_ratio: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Share of the batch reserved for new items",
    )
    active_ratio: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Share of the batch reserved for items in progress",
    )
    max_active: int | None = Field(
        default=None,
        description="Stop introducing new items once this many are active (default batch_size * 3)",
    )
    randomness: int = Field(
        default=10,
        ge=0,
        description="Size of the candidate window for new items",
    )

    # ========================================
    # Session
    # ========================================
    feedback_clear_ms: int = Field(
        default=500,
        ge=0,
        description="How long a correct/wrong flash stays visible",
    )
    import_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for reading remote import sources",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    def learning_config(self) -> LearningConfig:
        """Leveling parameters as a dataclass."""
        return LearningConfig(
            streak_threshold=self.streak_threshold,
            max_level=self.max_level,
            dedup_window_ms=self.dedup_window_ms,
        )

    def mix_options(self) -> LearningMixOptions:
        """Queue mix parameters as a dataclass."""
        return LearningMixOptions(
            batch_size=self.batch_size,
            new_ratio=self.new_ratio,
            active_ratio=self.active_ratio,
            max_active=self.max_active,
            randomness=self.randomness,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
