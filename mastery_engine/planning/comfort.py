"""
Comfort level estimation.

Estimates how comfortable a learner would feel in a session of a given
mode, from recent accuracy on the skills that mode would exercise:

    comfort = clamp(avg_accuracy * mode_multiplier + skill_count_bonus, 0, 1)

- avg_accuracy: confidence-weighted recent accuracy over the subset
- mode_multiplier: remediation 0.6, progression 0.85, maintenance 1.0
- skill_count_bonus: min(0.15, ln(n + 1) / 20) for n skills in the subset

With no usable data the estimate falls back to a conservative 0.3.
Comfort is for display only; it never feeds back into mode selection.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from mastery_engine.core.models import SkillBeliefState
from mastery_engine.planning.modes import SessionMode

DEFAULT_COMFORT = 0.3
MAX_SKILL_COUNT_BONUS = 0.15

MODE_MULTIPLIERS: dict[SessionMode, float] = {
    SessionMode.REMEDIATION: 0.6,
    SessionMode.PROGRESSION: 0.85,
    SessionMode.MAINTENANCE: 1.0,
}


@dataclass(frozen=True)
class ComfortFactors:
    avg_accuracy: float | None
    session_mode: SessionMode
    mode_multiplier: float
    skill_count_bonus: float
    skill_count: int


@dataclass(frozen=True)
class ComfortLevel:
    comfort_level: float
    factors: ComfortFactors


def skill_count_bonus(skill_count: int) -> float:
    return min(MAX_SKILL_COUNT_BONUS, math.log(skill_count + 1) / 20)


def weighted_recent_accuracy(
    states: Sequence[SkillBeliefState], window_size: int
) -> float | None:
    """Recent accuracy averaged across skills, weighted by BKT confidence."""
    total_weight = 0.0
    weighted_sum = 0.0
    for state in states:
        accuracy = state.recent_accuracy(window_size)
        if accuracy is None:
            continue
        weighted_sum += accuracy * state.confidence
        total_weight += state.confidence

    if total_weight <= 0:
        return None
    return weighted_sum / total_weight


def compute_comfort_level(
    states: Sequence[SkillBeliefState],
    mode: SessionMode,
    window_size: int,
) -> ComfortLevel:
    """Comfort for a session of ``mode`` built from ``states``."""
    multiplier = MODE_MULTIPLIERS[mode]
    bonus = skill_count_bonus(len(states))
    avg_accuracy = weighted_recent_accuracy(states, window_size)

    if avg_accuracy is None:
        value = DEFAULT_COMFORT
    else:
        value = max(0.0, min(1.0, avg_accuracy * multiplier + bonus))

    return ComfortLevel(
        comfort_level=value,
        factors=ComfortFactors(
            avg_accuracy=avg_accuracy,
            session_mode=mode,
            mode_multiplier=multiplier,
            skill_count_bonus=bonus,
            skill_count=len(states),
        ),
    )


def overall_comfort(levels: Mapping[SessionMode, ComfortLevel]) -> float:
    """Per-mode comfort averaged with each mode weighted by its skill count."""
    total = sum(level.factors.skill_count for level in levels.values())
    if total == 0:
        return DEFAULT_COMFORT
    return sum(
        level.comfort_level * level.factors.skill_count for level in levels.values()
    ) / total
