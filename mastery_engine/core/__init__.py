"""
Core Module - Shared domain records, catalog, and errors.

Components:
- models: Skill, AttemptRecord, SkillBeliefState, RollingWindow, ProgressionDeferral, SkipEvent
- catalog: SkillCatalog and the default abacus skill set
- errors: EngineError taxonomy

Design Principle:
Every other package (bkt, readiness, planning, anomaly, store) imports its
records from here rather than redefining them.
"""

from mastery_engine.core.catalog import SkillCatalog, default_catalog
from mastery_engine.core.errors import (
    EngineError,
    InvalidAttempt,
    InvalidDeferral,
    StoreConflict,
    UnknownSkill,
)
from mastery_engine.core.models import (
    AttemptOutcome,
    AttemptRecord,
    ProgressionDeferral,
    RollingWindow,
    Skill,
    SkillBeliefState,
    SkipEvent,
    ensure_utc,
)

__all__ = [
    # Records
    "AttemptOutcome",
    "AttemptRecord",
    "ProgressionDeferral",
    "RollingWindow",
    "Skill",
    "SkillBeliefState",
    "SkipEvent",
    "ensure_utc",
    # Catalog
    "SkillCatalog",
    "default_catalog",
    # Errors
    "EngineError",
    "InvalidAttempt",
    "InvalidDeferral",
    "StoreConflict",
    "UnknownSkill",
]
