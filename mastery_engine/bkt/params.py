"""
BKT parameters, per-category priors, and mastery classification.

Parameters are fixed per skill (not estimated online):
- p_init: prior P(known) before the first attempt
- transit: P(learning the skill between two opportunities)
- slip: P(wrong answer despite mastery)
- guess: P(right answer without mastery)

slip + guess must stay below 1; otherwise a correct answer would count as
evidence against mastery.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Literal

from mastery_engine.core.models import Skill

MasteryClassification = Literal["strong", "developing", "weak"]

# Classification thresholds on P(known); a skill is only classified once
# confidence reaches CONFIDENCE.
BKT_THRESHOLDS: dict[str, float] = {
    "strong": 0.8,
    "weak": 0.5,
    "confidence": 0.3,
}


@dataclass(frozen=True)
class BKTParams:
    """Fixed BKT parameters for one skill."""

    p_init: float = 0.3
    transit: float = 0.1
    slip: float = 0.1
    guess: float = 0.2
    confidence_scale: float = 10.0  # opportunities at which confidence = 0.5

    def __post_init__(self) -> None:
        for name in ("p_init", "transit", "slip", "guess"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"BKT parameter {name} must be in [0, 1], got {value}")
        if self.slip + self.guess >= 1.0:
            raise ValueError(
                f"slip + guess must be below 1, got slip={self.slip} guess={self.guess}"
            )
        if self.confidence_scale <= 0:
            raise ValueError(
                f"confidence_scale must be positive, got {self.confidence_scale}"
            )

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> BKTParams:
        """Build from ``Settings.get_bkt_config()``."""
        return cls(**{k: v for k, v in config.items() if k in cls.__dataclass_fields__})


# Complement techniques start less known and are picked up more slowly
# than direct bead movements.
CATEGORY_PRIORS: dict[str, dict[str, float]] = {
    "basic": {"p_init": 0.3, "transit": 0.1},
    "fiveComplements": {"p_init": 0.15, "transit": 0.08},
    "fiveComplementsSub": {"p_init": 0.1, "transit": 0.07},
    "tenComplements": {"p_init": 0.1, "transit": 0.06},
    "tenComplementsSub": {"p_init": 0.05, "transit": 0.05},
    "advanced": {"p_init": 0.05, "transit": 0.04},
}


def default_params_for(skill: Skill, base: BKTParams | None = None) -> BKTParams:
    """Apply the skill category's prior on top of ``base`` (global defaults)."""
    base = base or BKTParams()
    overrides = CATEGORY_PRIORS.get(skill.category)
    if not overrides:
        return base
    return replace(base, **overrides)


def classify_skill(p_known: float, confidence: float) -> MasteryClassification | None:
    """
    Bucket a belief into strong / developing / weak.

    Returns None while confidence is below the classification threshold,
    so a handful of lucky answers never reads as "strong".
    """
    if confidence < BKT_THRESHOLDS["confidence"]:
        return None
    if p_known >= BKT_THRESHOLDS["strong"]:
        return "strong"
    if p_known < BKT_THRESHOLDS["weak"]:
        return "weak"
    return "developing"
