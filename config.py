"""
Configuration settings for the abacus mastery engine.

Uses Pydantic Settings for environment variable management with .env file support.
Every tunable threshold of the engine lives here so that logic never carries
hard-coded numbers.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables (MASTERY_*)."""

    model_config = SettingsConfigDict(
        env_prefix="MASTERY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///mastery_engine.db",
        description="SQLAlchemy connection string for skill state and deferral rows",
    )
    store_max_retries: int = Field(
        default=5,
        ge=1,
        description="Read-modify-write attempts before a write race is reported",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: str = Field(
        default="INFO",
        description="Minimum loguru level for CLI output",
    )

    # ========================================
    # Bayesian Knowledge Tracing
    # ========================================
    bkt_p_init: float = Field(default=0.3, ge=0.0, le=1.0, description="Prior P(known)")
    bkt_transit: float = Field(
        default=0.1, ge=0.0, le=1.0, description="P(learn) between opportunities"
    )
    bkt_slip: float = Field(default=0.1, ge=0.0, le=1.0, description="P(wrong | known)")
    bkt_guess: float = Field(default=0.2, ge=0.0, le=1.0, description="P(right | unknown)")
    bkt_confidence_scale: float = Field(
        default=10.0,
        gt=0.0,
        description="Opportunities at which confidence reaches 0.5",
    )

    # ========================================
    # Readiness gate (four dimensions)
    # ========================================
    readiness_p_known_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    readiness_confidence_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    readiness_min_opportunities: int = Field(default=20, ge=0)
    readiness_min_sessions: int = Field(default=3, ge=0)
    readiness_max_median_seconds_per_term: float = Field(default=4.0, gt=0.0)
    readiness_speed_window_size: int = Field(default=10, ge=1)
    readiness_min_accuracy: float = Field(default=0.85, ge=0.0, le=1.0)
    readiness_accuracy_window_size: int = Field(default=15, ge=1)
    readiness_last_n_all_correct: int = Field(default=5, ge=1)
    readiness_no_help_in_last_n: int = Field(default=5, ge=1)

    # ========================================
    # Progression deferral
    # ========================================
    deferral_default_days: float = Field(
        default=7.0,
        gt=0.0,
        description="How long a teacher deferral suppresses progression",
    )

    # ========================================
    # Session mode planner
    # ========================================
    planner_struggling_floor: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Recent accuracy below this puts a skill into remediation",
    )
    planner_struggling_window_size: int = Field(default=15, ge=1)
    planner_struggling_min_attempts: int = Field(default=1, ge=1)

    # ========================================
    # Anomaly detection
    # ========================================
    anomaly_skip_threshold: int = Field(
        default=3,
        ge=1,
        description="Tutorial skips without a correct answer before flagging avoidance",
    )
    anomaly_stale_days: float = Field(
        default=14.0,
        gt=0.0,
        description="Days without practice before a solid skill is flagged",
    )
    anomaly_require_full_readiness: bool = Field(
        default=True,
        description="Flag stale skills only when fully solid (False: mastery dimension only)",
    )

    @model_validator(mode="after")
    def _check_bkt_identifiable(self) -> Settings:
        if self.bkt_slip + self.bkt_guess >= 1.0:
            raise ValueError("MASTERY_BKT_SLIP + MASTERY_BKT_GUESS must be below 1")
        return self

    def get_bkt_config(self) -> dict[str, Any]:
        """Get default BKT parameters."""
        return {
            "p_init": self.bkt_p_init,
            "transit": self.bkt_transit,
            "slip": self.bkt_slip,
            "guess": self.bkt_guess,
            "confidence_scale": self.bkt_confidence_scale,
        }

    def get_readiness_config(self) -> dict[str, Any]:
        """Get readiness thresholds keyed by ReadinessThresholds field names."""
        return {
            "p_known_threshold": self.readiness_p_known_threshold,
            "confidence_threshold": self.readiness_confidence_threshold,
            "min_opportunities": self.readiness_min_opportunities,
            "min_sessions": self.readiness_min_sessions,
            "max_median_seconds_per_term": self.readiness_max_median_seconds_per_term,
            "speed_window_size": self.readiness_speed_window_size,
            "min_accuracy": self.readiness_min_accuracy,
            "accuracy_window_size": self.readiness_accuracy_window_size,
            "last_n_all_correct": self.readiness_last_n_all_correct,
            "no_help_in_last_n": self.readiness_no_help_in_last_n,
        }

    def get_planner_config(self) -> dict[str, Any]:
        """Get session mode planner configuration."""
        return {
            "struggling_floor": self.planner_struggling_floor,
            "struggling_window_size": self.planner_struggling_window_size,
            "struggling_min_attempts": self.planner_struggling_min_attempts,
        }

    def get_anomaly_config(self) -> dict[str, Any]:
        """Get anomaly detector configuration."""
        return {
            "skip_threshold": self.anomaly_skip_threshold,
            "stale_days": self.anomaly_stale_days,
            "require_full_readiness": self.anomaly_require_full_readiness,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
