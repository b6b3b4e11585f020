"""
Configuration settings for neet-recall.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_STATE_DIR = Path.home() / ".neet_recall"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default=f"sqlite:///{DEFAULT_STATE_DIR / 'state.db'}",
        description="SQLAlchemy connection string for review and mistake records",
    )
    store_max_retries: int = Field(
        default=3,
        ge=1,
        description="Attempts for an upsert that hits an optimistic-concurrency conflict",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Identity
    # ========================================
    default_user_id: str = Field(
        default="local-user",
        description="User id used by the CLI when --user is not given",
    )

    # ========================================
    # SM-2 Scheduling
    # ========================================
    sm2_initial_ease: float = Field(
        default=2.5,
        description="Ease factor assigned to a card on its first review record",
    )
    sm2_minimum_ease: float = Field(
        default=1.3,
        description="Floor applied to the computed ease factor",
    )
    sm2_first_interval: int = Field(
        default=1,
        description="Days after the first successful review",
    )
    sm2_second_interval: int = Field(
        default=6,
        description="Days after the second successful review",
    )
    sm2_max_interval: int = Field(
        default=365,
        description="Upper bound on any review interval (days)",
    )
    sm2_learning_repetitions: int = Field(
        default=3,
        description="Repetitions below this count are LEARNING",
    )
    sm2_mastered_min_ease: float = Field(
        default=2.5,
        description="Minimum ease factor for MASTERED status",
    )
    sm2_mastered_min_interval: int = Field(
        default=21,
        description="Minimum interval (days) for MASTERED status",
    )

    # ========================================
    # Mistake Tracking
    # ========================================
    severity_high_threshold: int = Field(
        default=5,
        description="Mistake count at which a weak concept is rated high severity",
    )
    severity_medium_threshold: int = Field(
        default=3,
        description="Mistake count at which a weak concept is rated medium severity",
    )
    weak_concepts_limit: int = Field(
        default=5,
        description="Number of weak concepts surfaced on the insights view",
    )
    attempts_list_limit: int = Field(
        default=20,
        description="Default number of quiz attempts returned by list queries",
    )

    # ========================================
    # Remediation
    # ========================================
    remediation_cache_ttl_days: int = Field(
        default=7,
        ge=1,
        description="Lifetime of cached remediation content per concept",
    )

    def get_scheduler_config(self) -> dict[str, Any]:
        """Get SM-2 scheduling configuration as a dictionary."""
        return {
            "initial_ease": self.sm2_initial_ease,
            "minimum_ease": self.sm2_minimum_ease,
            "first_interval": self.sm2_first_interval,
            "second_interval": self.sm2_second_interval,
            "max_interval": self.sm2_max_interval,
            "learning_repetitions": self.sm2_learning_repetitions,
            "mastered_min_ease": self.sm2_mastered_min_ease,
            "mastered_min_interval": self.sm2_mastered_min_interval,
        }

    def get_severity_thresholds(self) -> dict[str, int]:
        """Get weak-concept severity thresholds."""
        return {
            "high": self.severity_high_threshold,
            "medium": self.severity_medium_threshold,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
