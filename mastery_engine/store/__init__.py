"""Storage contracts and in-memory implementations."""

from mastery_engine.store.base import DeferralStore, SkillStateStore, SkipLog, StateUpdate
from mastery_engine.store.memory import (
    InMemoryDeferralStore,
    InMemorySkillStateStore,
    InMemorySkipLog,
)

__all__ = [
    "DeferralStore",
    "InMemoryDeferralStore",
    "InMemorySkillStateStore",
    "InMemorySkipLog",
    "SkillStateStore",
    "SkipLog",
    "StateUpdate",
]
