"""
Session Mode Planner.

Aggregates a player's skill states and deferrals into one decision about the
next practice session. Re-evaluated from scratch on every call; the planner
holds no state of its own.

Rules, in priority order:
1. remediation - any attempted skill's recent accuracy is below the
   struggling floor (a lower, faster-tripping bar than the readiness gate)
2. progression - some skill is solid and not under an active deferral
3. maintenance - otherwise (nothing urgent, nothing ready, or every ready
   skill is deferred)

Comfort estimates ride along for display but play no part in the choice.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from loguru import logger

from mastery_engine.core.catalog import SkillCatalog
from mastery_engine.core.errors import UnknownSkill
from mastery_engine.core.models import ProgressionDeferral, SkillBeliefState, ensure_utc
from mastery_engine.planning.comfort import ComfortLevel, compute_comfort_level, overall_comfort
from mastery_engine.planning.modes import SessionMode
from mastery_engine.readiness.assessor import assess
from mastery_engine.readiness.thresholds import DEFAULT_THRESHOLDS, ReadinessThresholds

if TYPE_CHECKING:
    from config import Settings


@dataclass(frozen=True)
class PlannerConfig:
    """Knobs for the struggling check."""

    struggling_floor: float = 0.5
    struggling_window_size: int = 15
    struggling_min_attempts: int = 1

    def __post_init__(self) -> None:
        if not 0.0 <= self.struggling_floor <= 1.0:
            raise ValueError(f"struggling_floor must be in [0, 1], got {self.struggling_floor}")
        if self.struggling_window_size < 1 or self.struggling_min_attempts < 1:
            raise ValueError("struggling window and minimum attempts must be positive")

    @classmethod
    def from_settings(cls, settings: Settings) -> PlannerConfig:
        return cls(**settings.get_planner_config())


@dataclass(frozen=True)
class StrugglingSkill:
    skill_id: str
    recent_accuracy: float
    p_known: float
    attempts: int


@dataclass(frozen=True)
class SessionModeResult:
    """The planner's decision plus everything needed to explain it."""

    mode: SessionMode
    comfort_by_mode: dict[SessionMode, float]
    comfort_overall: float
    struggling_skills: tuple[StrugglingSkill, ...] = ()
    ready_skill_ids: tuple[str, ...] = ()
    deferred_skill_ids: tuple[str, ...] = ()
    focus_description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "comfort_by_mode": {m.value: c for m, c in self.comfort_by_mode.items()},
            "comfort_overall": self.comfort_overall,
            "struggling_skills": [
                {
                    "skill_id": s.skill_id,
                    "recent_accuracy": s.recent_accuracy,
                    "p_known": s.p_known,
                    "attempts": s.attempts,
                }
                for s in self.struggling_skills
            ],
            "ready_skill_ids": list(self.ready_skill_ids),
            "deferred_skill_ids": list(self.deferred_skill_ids),
            "focus_description": self.focus_description,
        }


def _as_state_list(
    skill_states: Mapping[str, SkillBeliefState] | Iterable[SkillBeliefState],
) -> list[SkillBeliefState]:
    if isinstance(skill_states, Mapping):
        states = list(skill_states.values())
    else:
        states = list(skill_states)
    return sorted(states, key=lambda s: s.skill_id)


def find_struggling_skills(
    states: Iterable[SkillBeliefState], config: PlannerConfig
) -> list[StrugglingSkill]:
    """Skills whose recent accuracy is under the floor, worst first."""
    struggling: list[StrugglingSkill] = []
    for state in states:
        recent = state.accuracy_window.recent(config.struggling_window_size)
        if len(recent) < config.struggling_min_attempts:
            continue
        accuracy = sum(1 for o in recent if o.is_correct) / len(recent)
        if accuracy < config.struggling_floor:
            struggling.append(
                StrugglingSkill(
                    skill_id=state.skill_id,
                    recent_accuracy=accuracy,
                    p_known=state.p_known,
                    attempts=len(recent),
                )
            )
    struggling.sort(key=lambda s: (s.recent_accuracy, s.skill_id))
    return struggling


def _names(skill_ids: Iterable[str], catalog: SkillCatalog | None) -> list[str]:
    names = []
    for skill_id in skill_ids:
        if catalog is None:
            names.append(skill_id)
            continue
        try:
            names.append(catalog.get(skill_id).display_name)
        except UnknownSkill:
            names.append(skill_id)
    return names


def _join(names: list[str]) -> str:
    if len(names) <= 1:
        return "".join(names)
    return ", ".join(names[:-1]) + " and " + names[-1]


def describe_focus(
    mode: SessionMode,
    struggling: list[StrugglingSkill],
    ready: list[str],
    deferred: list[str],
    catalog: SkillCatalog | None = None,
) -> str:
    """One-line summary of what the session will focus on."""
    if mode is SessionMode.REMEDIATION:
        return "Strengthening: " + _join(_names([s.skill_id for s in struggling], catalog))
    if mode is SessionMode.PROGRESSION:
        return "Ready to advance: " + _join(_names(ready, catalog))
    if deferred:
        return "Mixed practice (progression deferred: " + _join(_names(deferred, catalog)) + ")"
    return "Mixed practice"


def plan_session_mode(
    skill_states: Mapping[str, SkillBeliefState] | Iterable[SkillBeliefState],
    deferrals: Iterable[ProgressionDeferral],
    now: datetime,
    thresholds: ReadinessThresholds = DEFAULT_THRESHOLDS,
    config: PlannerConfig | None = None,
    catalog: SkillCatalog | None = None,
) -> SessionModeResult:
    """
    Choose the next session's mode for one player.

    Args:
        skill_states: The player's attempted skills (mapping or iterable)
        deferrals: Deferral rows for the player; expired ones are ignored
        now: Evaluation time for deferral expiry
        thresholds: Readiness gate thresholds
        config: Struggling-floor configuration
        catalog: Optional catalog, used only for display names

    Returns:
        SessionModeResult with mode, comfort estimates, and explanation
    """
    config = config or PlannerConfig()
    now = ensure_utc(now)
    states = _as_state_list(skill_states)

    active_deferrals = {
        (d.player_id, d.skill_id) for d in deferrals if d.is_active(now)
    }

    struggling = find_struggling_skills(states, config)

    ready_states: list[SkillBeliefState] = []
    deferred_ids: list[str] = []
    for state in states:
        if not assess(state, thresholds).is_solid:
            continue
        if (state.player_id, state.skill_id) in active_deferrals:
            deferred_ids.append(state.skill_id)
        else:
            ready_states.append(state)
    ready_ids = [s.skill_id for s in ready_states]

    if struggling:
        mode = SessionMode.REMEDIATION
    elif ready_states:
        mode = SessionMode.PROGRESSION
    else:
        mode = SessionMode.MAINTENANCE

    struggling_ids = {s.skill_id for s in struggling}
    subsets: dict[SessionMode, list[SkillBeliefState]] = {
        SessionMode.REMEDIATION: [s for s in states if s.skill_id in struggling_ids],
        SessionMode.PROGRESSION: ready_states,
        SessionMode.MAINTENANCE: states,
    }
    levels: dict[SessionMode, ComfortLevel] = {
        m: compute_comfort_level(subset, m, config.struggling_window_size)
        for m, subset in subsets.items()
    }

    logger.debug(
        f"Session mode {mode.value}: {len(struggling)} struggling, "
        f"{len(ready_ids)} ready, {len(deferred_ids)} deferred of {len(states)} skills"
    )

    return SessionModeResult(
        mode=mode,
        comfort_by_mode={m: level.comfort_level for m, level in levels.items()},
        comfort_overall=overall_comfort(levels),
        struggling_skills=tuple(struggling),
        ready_skill_ids=tuple(ready_ids),
        deferred_skill_ids=tuple(deferred_ids),
        focus_description=describe_focus(mode, struggling, ready_ids, deferred_ids, catalog),
    )
