"""
Progression Deferral Registry.

A teacher can defer a skill: for a bounded time (7 days by default) the
session planner will not suggest progressing past it, however solid it
looks. Deferrals are a separate veto layer; they never touch belief states
or readiness.

Expiry is computed when read. Stale rows are harmless and can be reaped at
leisure with ``reap_expired``.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from loguru import logger

from mastery_engine.core.errors import InvalidDeferral
from mastery_engine.core.models import ProgressionDeferral, ensure_utc
from mastery_engine.store.base import DeferralStore

DEFAULT_DEFERRAL_DURATION = timedelta(days=7)


class DeferralRegistry:
    """Time-bounded suppression of progression suggestions per skill."""

    def __init__(
        self,
        store: DeferralStore,
        default_duration: timedelta = DEFAULT_DEFERRAL_DURATION,
    ):
        if default_duration <= timedelta(0):
            raise InvalidDeferral(f"Default deferral duration must be positive: {default_duration}")
        self.store = store
        self.default_duration = default_duration

    def is_active(self, player_id: str, skill_id: str, now: datetime) -> bool:
        """True while a deferral exists and ``now`` is before its expiry."""
        deferral = self.store.get(player_id, skill_id)
        return deferral is not None and deferral.is_active(now)

    def defer(
        self,
        player_id: str,
        skill_id: str,
        now: datetime,
        duration: timedelta | None = None,
    ) -> ProgressionDeferral:
        """
        Defer progression for a skill.

        Re-deferring replaces the existing row: the window restarts at
        ``now`` rather than extending the previous expiry.

        Raises:
            InvalidDeferral: if ``duration`` is not positive
        """
        duration = self.default_duration if duration is None else duration
        if duration <= timedelta(0):
            raise InvalidDeferral(f"Deferral duration must be positive, got {duration}")

        deferral = ProgressionDeferral.starting(player_id, skill_id, now, duration)
        self.store.upsert(deferral)
        logger.info(
            f"Deferred progression for player={player_id} skill={skill_id} "
            f"until {deferral.expires_at.isoformat()}"
        )
        return deferral

    def clear(self, player_id: str, skill_id: str) -> None:
        """Remove a deferral; clearing a missing one is a no-op."""
        if self.store.delete(player_id, skill_id):
            logger.info(f"Cleared deferral for player={player_id} skill={skill_id}")

    def active_for_player(self, player_id: str, now: datetime) -> list[ProgressionDeferral]:
        now = ensure_utc(now)
        return [d for d in self.store.list_for_player(player_id) if d.is_active(now)]

    def reap_expired(self, now: datetime) -> int:
        """Delete rows that have expired by ``now``. Returns the number removed."""
        removed = self.store.delete_expired(ensure_utc(now))
        if removed:
            logger.info(f"Reaped {removed} expired deferrals")
        return removed


def is_active_deferral(
    registry: DeferralRegistry, player_id: str, skill_id: str, now: datetime
) -> bool:
    return registry.is_active(player_id, skill_id, now)


def clear_deferral(registry: DeferralRegistry, player_id: str, skill_id: str) -> None:
    registry.clear(player_id, skill_id)
