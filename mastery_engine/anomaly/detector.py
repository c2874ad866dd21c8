"""
Anomaly Detector.

Scans a player's skills for two patterns worth a teacher's attention:

- repeatedly-skipped: the skill's tutorial was skipped at least
  ``skip_threshold`` times since the last correct answer (or ever, when
  the skill has never been answered correctly). Signals avoidance.
- mastered-not-practiced: the skill is solid (or, when configured, only
  the mastery dimension holds) but has not been practiced for longer than
  ``stale_after``. Candidate for spaced review.

Each skill is checked for both kinds independently.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from loguru import logger

from mastery_engine.core.models import SkillBeliefState, SkipEvent, ensure_utc
from mastery_engine.readiness.assessor import assess
from mastery_engine.readiness.thresholds import DEFAULT_THRESHOLDS, ReadinessThresholds

if TYPE_CHECKING:
    from config import Settings

REPEATEDLY_SKIPPED = "repeatedly-skipped"
MASTERED_NOT_PRACTICED = "mastered-not-practiced"


@dataclass(frozen=True)
class AnomalyConfig:
    skip_threshold: int = 3
    stale_after: timedelta = timedelta(days=14)
    require_full_readiness: bool = True

    def __post_init__(self) -> None:
        if self.skip_threshold < 1:
            raise ValueError(f"skip_threshold must be positive, got {self.skip_threshold}")
        if self.stale_after < timedelta(0):
            raise ValueError(f"stale_after must not be negative, got {self.stale_after}")

    @classmethod
    def from_settings(cls, settings: Settings) -> AnomalyConfig:
        raw = settings.get_anomaly_config()
        return cls(
            skip_threshold=raw["skip_threshold"],
            stale_after=timedelta(days=raw["stale_days"]),
            require_full_readiness=raw["require_full_readiness"],
        )


@dataclass(frozen=True)
class SkillAnomaly:
    kind: str
    skill_id: str
    metrics: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "skill_id": self.skill_id, "metrics": dict(self.metrics)}


def _skips_since_success(
    skips: list[SkipEvent], state: SkillBeliefState | None
) -> list[SkipEvent]:
    if state is None or state.last_correct_at is None:
        return skips
    return [s for s in skips if s.skipped_at > state.last_correct_at]


def _check_skipped(
    skill_id: str,
    skips: list[SkipEvent],
    state: SkillBeliefState | None,
    config: AnomalyConfig,
) -> SkillAnomaly | None:
    recent = _skips_since_success(skips, state)
    if len(recent) < config.skip_threshold:
        return None
    last = max(s.skipped_at for s in recent)
    return SkillAnomaly(
        kind=REPEATEDLY_SKIPPED,
        skill_id=skill_id,
        metrics={
            "skip_count": len(recent),
            "total_skips": len(skips),
            "last_skipped_at": last.isoformat(),
        },
    )


def _check_stale(
    state: SkillBeliefState,
    now: datetime,
    thresholds: ReadinessThresholds,
    config: AnomalyConfig,
) -> SkillAnomaly | None:
    if state.last_practiced_at is None:
        return None
    idle = now - state.last_practiced_at
    if idle <= config.stale_after:
        return None

    readiness = assess(state, thresholds)
    if config.require_full_readiness:
        mastered = readiness.is_solid
    else:
        mastered = readiness.dimensions.mastery.met
    if not mastered:
        return None

    return SkillAnomaly(
        kind=MASTERED_NOT_PRACTICED,
        skill_id=state.skill_id,
        metrics={
            "days_since_practice": round(idle.total_seconds() / 86400, 2),
            "last_practiced_at": state.last_practiced_at.isoformat(),
            "p_known": state.p_known,
            "confidence": state.confidence,
        },
    )


def detect_anomalies(
    skill_states: Mapping[str, SkillBeliefState] | Iterable[SkillBeliefState],
    skip_events: Iterable[SkipEvent],
    now: datetime,
    thresholds: ReadinessThresholds | None = None,
    config: AnomalyConfig | None = None,
) -> list[SkillAnomaly]:
    """
    Find anomalies across one player's skills.

    Skills that were skipped but never attempted are still checked for
    repeated skipping.

    Returns:
        Anomalies sorted by skill id, then kind
    """
    thresholds = thresholds or DEFAULT_THRESHOLDS
    config = config or AnomalyConfig()
    now = ensure_utc(now)

    if isinstance(skill_states, Mapping):
        states = {s.skill_id: s for s in skill_states.values()}
    else:
        states = {s.skill_id: s for s in skill_states}

    skips_by_skill: defaultdict[str, list[SkipEvent]] = defaultdict(list)
    for event in skip_events:
        skips_by_skill[event.skill_id].append(event)

    anomalies: list[SkillAnomaly] = []
    for skill_id in sorted(set(states) | set(skips_by_skill)):
        state = states.get(skill_id)

        skipped = _check_skipped(skill_id, skips_by_skill.get(skill_id, []), state, config)
        if skipped is not None:
            anomalies.append(skipped)

        if state is not None:
            stale = _check_stale(state, now, thresholds, config)
            if stale is not None:
                anomalies.append(stale)

    anomalies.sort(key=lambda a: (a.skill_id, a.kind))
    for anomaly in anomalies:
        logger.debug(f"Anomaly {anomaly.kind} on {anomaly.skill_id}: {anomaly.metrics}")
    return anomalies
