"""
Readiness thresholds for the four-dimension gate.

Kept as data so each threshold can be tuned independently from settings
without touching the assessor.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, model_validator

if TYPE_CHECKING:
    from config import Settings


class ReadinessThresholds(BaseModel):
    """Thresholds a skill must clear on every dimension to count as solid."""

    model_config = ConfigDict(frozen=True)

    # Mastery
    p_known_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    confidence_threshold: float = Field(default=0.5, ge=0.0, le=1.0)

    # Volume
    min_opportunities: int = Field(default=20, ge=0)
    min_sessions: int = Field(default=3, ge=0)

    # Speed
    max_median_seconds_per_term: float = Field(default=4.0, gt=0.0)
    speed_window_size: int = Field(default=10, ge=1)

    # Consistency
    min_accuracy: float = Field(default=0.85, ge=0.0, le=1.0)
    accuracy_window_size: int = Field(default=15, ge=1)
    last_n_all_correct: int = Field(default=5, ge=1)
    no_help_in_last_n: int = Field(default=5, ge=1)

    @model_validator(mode="after")
    def _streaks_fit_window(self) -> ReadinessThresholds:
        for name in ("last_n_all_correct", "no_help_in_last_n"):
            if getattr(self, name) > self.accuracy_window_size:
                raise ValueError(
                    f"{name}={getattr(self, name)} exceeds "
                    f"accuracy_window_size={self.accuracy_window_size}"
                )
        return self

    @classmethod
    def from_settings(cls, settings: Settings) -> ReadinessThresholds:
        return cls(**settings.get_readiness_config())


DEFAULT_THRESHOLDS = ReadinessThresholds()
