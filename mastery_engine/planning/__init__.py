"""
Session planning.

Components:
- modes: SessionMode enum
- session_mode: plan_session_mode (remediation > progression > maintenance)
- comfort: per-mode comfort estimates for display
"""

from mastery_engine.planning.comfort import (
    DEFAULT_COMFORT,
    MODE_MULTIPLIERS,
    ComfortFactors,
    ComfortLevel,
    compute_comfort_level,
    overall_comfort,
    skill_count_bonus,
)
from mastery_engine.planning.modes import SessionMode
from mastery_engine.planning.session_mode import (
    PlannerConfig,
    SessionModeResult,
    StrugglingSkill,
    find_struggling_skills,
    plan_session_mode,
)

__all__ = [
    "DEFAULT_COMFORT",
    "MODE_MULTIPLIERS",
    "ComfortFactors",
    "ComfortLevel",
    "PlannerConfig",
    "SessionMode",
    "SessionModeResult",
    "StrugglingSkill",
    "compute_comfort_level",
    "find_struggling_skills",
    "overall_comfort",
    "plan_session_mode",
    "skill_count_bonus",
]
