"""
Storage contracts consumed by the engine.

The engine never reaches into an ambient connection; callers hand it objects
satisfying these protocols. Two families exist:

- in-memory (mastery_engine.store.memory): tests, CLI dry runs, single process
- SQL (mastery_engine.db.store): durable rows through SQLAlchemy
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from mastery_engine.core.models import ProgressionDeferral, SkillBeliefState, SkipEvent

# Receives the latest committed state (None for a first attempt) and returns
# the replacement to commit.
StateUpdate = Callable[[SkillBeliefState | None], SkillBeliefState]


class SkillStateStore(Protocol):
    """Per (player, skill) belief rows with atomic read-modify-write."""

    def get(self, player_id: str, skill_id: str) -> SkillBeliefState | None:
        ...

    def list_for_player(self, player_id: str) -> dict[str, SkillBeliefState]:
        """One point-in-time snapshot of all the player's skill rows."""
        ...

    def update(self, player_id: str, skill_id: str, fn: StateUpdate) -> SkillBeliefState:
        """
        Apply ``fn`` to the latest committed state and commit the result.

        Writers to the same key are serialised: no interleaved update may be
        lost. ``fn`` may be called more than once if the store retries.
        """
        ...


class DeferralStore(Protocol):
    """Progression deferral rows, at most one per (player, skill)."""

    def get(self, player_id: str, skill_id: str) -> ProgressionDeferral | None:
        ...

    def upsert(self, deferral: ProgressionDeferral) -> ProgressionDeferral:
        ...

    def delete(self, player_id: str, skill_id: str) -> bool:
        ...

    def list_for_player(self, player_id: str) -> list[ProgressionDeferral]:
        ...

    def delete_expired(self, now: datetime) -> int:
        ...


class SkipLog(Protocol):
    """Append-only log of tutorial skips."""

    def append(self, event: SkipEvent) -> None:
        ...

    def list_for_player(self, player_id: str) -> list[SkipEvent]:
        ...
