"""
Skill Readiness Assessment.

Decides whether a learner is truly ready to advance past a skill, using four
independent dimensions that must ALL pass:

1. Mastery: BKT P(known) + confidence
2. Volume: practice depth (opportunities + distinct sessions)
3. Speed: automaticity, as median seconds per term
4. Consistency: recent accuracy, a clean recent streak, and no recent help

Each dimension keeps its raw metric next to its verdict so a teacher can see
why a skill is not solid yet. All functions are pure.
"""

from __future__ import annotations

import statistics
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

from mastery_engine.core.models import SkillBeliefState
from mastery_engine.readiness.thresholds import DEFAULT_THRESHOLDS, ReadinessThresholds

# =============================================================================
# Types
# =============================================================================


@dataclass(frozen=True)
class MasteryDimension:
    met: bool
    p_known: float
    confidence: float


@dataclass(frozen=True)
class VolumeDimension:
    met: bool
    opportunities: int
    session_count: int


@dataclass(frozen=True)
class SpeedDimension:
    met: bool
    median_seconds_per_term: float | None  # None when the window is not full
    sample_size: int


@dataclass(frozen=True)
class ConsistencyDimension:
    met: bool
    recent_accuracy: float
    last_n_all_correct: bool
    recent_help_count: int


@dataclass(frozen=True)
class ReadinessDimensions:
    mastery: MasteryDimension
    volume: VolumeDimension
    speed: SpeedDimension
    consistency: ConsistencyDimension

    def as_mapping(self) -> dict[str, Any]:
        return {
            "mastery": self.mastery,
            "volume": self.volume,
            "speed": self.speed,
            "consistency": self.consistency,
        }


@dataclass(frozen=True)
class ReadinessResult:
    """Readiness verdict for one skill."""

    skill_id: str
    is_solid: bool
    dimensions: ReadinessDimensions

    @property
    def unmet_dimensions(self) -> list[str]:
        """Names of the dimensions holding the skill back."""
        return [name for name, dim in self.dimensions.as_mapping().items() if not dim.met]

    def to_dict(self) -> dict[str, Any]:
        return {
            "skill_id": self.skill_id,
            "is_solid": self.is_solid,
            "dimensions": {
                name: asdict(dim) for name, dim in self.dimensions.as_mapping().items()
            },
        }


# =============================================================================
# Dimension Assessment
# =============================================================================


def assess_mastery(state: SkillBeliefState, thresholds: ReadinessThresholds) -> MasteryDimension:
    return MasteryDimension(
        met=(
            state.p_known >= thresholds.p_known_threshold
            and state.confidence >= thresholds.confidence_threshold
        ),
        p_known=state.p_known,
        confidence=state.confidence,
    )


def assess_volume(state: SkillBeliefState, thresholds: ReadinessThresholds) -> VolumeDimension:
    return VolumeDimension(
        met=(
            state.opportunities >= thresholds.min_opportunities
            and state.session_count >= thresholds.min_sessions
        ),
        opportunities=state.opportunities,
        session_count=state.session_count,
    )


def assess_speed(state: SkillBeliefState, thresholds: ReadinessThresholds) -> SpeedDimension:
    """Median seconds/term over the last ``speed_window_size`` attempts."""
    recent = state.speed_window.recent(thresholds.speed_window_size)
    if len(recent) < thresholds.speed_window_size:
        return SpeedDimension(met=False, median_seconds_per_term=None, sample_size=len(recent))

    per_term = [o.seconds_per_term for o in recent if o.seconds_per_term is not None]
    median = statistics.median(per_term) if per_term else None

    return SpeedDimension(
        met=median is not None and median <= thresholds.max_median_seconds_per_term,
        median_seconds_per_term=median,
        sample_size=len(per_term),
    )


def assess_consistency(
    state: SkillBeliefState, thresholds: ReadinessThresholds
) -> ConsistencyDimension:
    window = state.accuracy_window

    recent = window.recent(thresholds.accuracy_window_size)
    recent_accuracy = sum(1 for o in recent if o.is_correct) / len(recent) if recent else 0.0
    accuracy_met = (
        len(recent) >= thresholds.accuracy_window_size
        and recent_accuracy >= thresholds.min_accuracy
    )

    last_n = window.recent(thresholds.last_n_all_correct)
    last_n_all_correct = len(last_n) >= thresholds.last_n_all_correct and all(
        o.is_correct for o in last_n
    )

    help_window = window.recent(thresholds.no_help_in_last_n)
    recent_help_count = sum(1 for o in help_window if o.used_help)
    help_free = len(help_window) >= thresholds.no_help_in_last_n and recent_help_count == 0

    return ConsistencyDimension(
        met=accuracy_met and last_n_all_correct and help_free,
        recent_accuracy=recent_accuracy,
        last_n_all_correct=last_n_all_correct,
        recent_help_count=recent_help_count,
    )


# =============================================================================
# Public API
# =============================================================================


def assess(
    state: SkillBeliefState, thresholds: ReadinessThresholds = DEFAULT_THRESHOLDS
) -> ReadinessResult:
    """
    Assess readiness for a single skill.

    Args:
        state: The player's belief state for the skill
        thresholds: Gate thresholds (defaults match the standard curriculum)

    Returns:
        ReadinessResult with per-dimension verdicts and raw metrics
    """
    dimensions = ReadinessDimensions(
        mastery=assess_mastery(state, thresholds),
        volume=assess_volume(state, thresholds),
        speed=assess_speed(state, thresholds),
        consistency=assess_consistency(state, thresholds),
    )
    is_solid = (
        dimensions.mastery.met
        and dimensions.volume.met
        and dimensions.speed.met
        and dimensions.consistency.met
    )
    return ReadinessResult(skill_id=state.skill_id, is_solid=is_solid, dimensions=dimensions)


def assess_all(
    state_map: Mapping[str, SkillBeliefState],
    thresholds: ReadinessThresholds = DEFAULT_THRESHOLDS,
) -> dict[str, ReadinessResult]:
    """Assess every attempted skill; keys are the states' skill ids."""
    results: dict[str, ReadinessResult] = {}
    for key, state in state_map.items():
        if key != state.skill_id:
            raise ValueError(f"State map key {key!r} does not match state skill {state.skill_id!r}")
        results[state.skill_id] = assess(state, thresholds)
    return results


def readiness_map_to_record(results: Mapping[str, ReadinessResult]) -> dict[str, dict[str, Any]]:
    """Convert a readiness map to plain dicts (for JSON output)."""
    return {skill_id: result.to_dict() for skill_id, result in results.items()}
