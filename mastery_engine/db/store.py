"""
SQL implementations of the storage contracts.

Skill state writes are a transactional read-modify-write per row:

1. SELECT ... FOR UPDATE the (player, skill) row
2. apply the caller's update function to the committed state
3. UPDATE ... WHERE version = <read version> (or INSERT for a new key)

Backends that ignore FOR UPDATE (SQLite) still cannot lose an update: a
concurrent writer bumps ``version`` first, the compare-and-swap matches no
row, and the attempt is re-applied to the freshly committed state. After
``max_retries`` lost races StoreConflict propagates to the caller.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from mastery_engine.core.errors import StoreConflict
from mastery_engine.core.models import (
    ProgressionDeferral,
    SkillBeliefState,
    SkipEvent,
    ensure_utc,
)
from mastery_engine.db.database import session_scope
from mastery_engine.db.models import ProgressionDeferralRow, SkillBeliefStateRow, TutorialSkipRow
from mastery_engine.store.base import StateUpdate


def _as_utc(value: datetime) -> datetime:
    return ensure_utc(value).astimezone(UTC)


class _LostRace(Exception):
    """The row changed between read and compare-and-swap."""


class SqlSkillStateStore:
    """Skill belief rows with optimistic versioned writes."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None, max_retries: int = 5):
        if max_retries < 1:
            raise ValueError(f"max_retries must be positive, got {max_retries}")
        self.session_factory = session_factory
        self.max_retries = max_retries

    def _select(self, player_id: str, skill_id: str):
        return select(SkillBeliefStateRow).where(
            SkillBeliefStateRow.player_id == player_id,
            SkillBeliefStateRow.skill_id == skill_id,
        )

    def get(self, player_id: str, skill_id: str) -> SkillBeliefState | None:
        with session_scope(self.session_factory) as session:
            row = session.execute(self._select(player_id, skill_id)).scalar_one_or_none()
            return row.to_state() if row is not None else None

    def list_for_player(self, player_id: str) -> dict[str, SkillBeliefState]:
        with session_scope(self.session_factory) as session:
            rows = session.execute(
                select(SkillBeliefStateRow)
                .where(SkillBeliefStateRow.player_id == player_id)
                .order_by(SkillBeliefStateRow.skill_id)
            ).scalars()
            return {row.skill_id: row.to_state() for row in rows}

    def _commit_once(self, player_id: str, skill_id: str, fn: StateUpdate) -> SkillBeliefState:
        with session_scope(self.session_factory) as session:
            row = session.execute(
                self._select(player_id, skill_id).with_for_update()
            ).scalar_one_or_none()
            current = row.to_state() if row is not None else None
            new_state = fn(current)

            if current is None:
                committed = replace(new_state, version=1)
                session.add(SkillBeliefStateRow.from_state(committed))
                session.flush()
                return committed

            committed = replace(new_state, version=current.version + 1)
            values = SkillBeliefStateRow.column_values(committed)
            result = session.execute(
                update(SkillBeliefStateRow)
                .where(
                    SkillBeliefStateRow.player_id == player_id,
                    SkillBeliefStateRow.skill_id == skill_id,
                    SkillBeliefStateRow.version == current.version,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise _LostRace()
            return committed

    def update(self, player_id: str, skill_id: str, fn: StateUpdate) -> SkillBeliefState:
        for attempt in range(1, self.max_retries + 1):
            try:
                committed = self._commit_once(player_id, skill_id, fn)
            except (_LostRace, IntegrityError):
                logger.warning(
                    f"Write race on skill state {player_id}/{skill_id} "
                    f"(attempt {attempt}/{self.max_retries}), re-reading"
                )
                continue
            logger.debug(f"Committed skill state {player_id}/{skill_id} v{committed.version}")
            return committed
        raise StoreConflict(player_id, skill_id, self.max_retries)


class SqlDeferralStore:
    """Deferral rows; ``upsert`` replaces any existing row for the key."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None):
        self.session_factory = session_factory

    def get(self, player_id: str, skill_id: str) -> ProgressionDeferral | None:
        with session_scope(self.session_factory) as session:
            row = session.get(ProgressionDeferralRow, (player_id, skill_id))
            return row.to_deferral() if row is not None else None

    def upsert(self, deferral: ProgressionDeferral) -> ProgressionDeferral:
        with session_scope(self.session_factory) as session:
            session.merge(
                ProgressionDeferralRow(
                    player_id=deferral.player_id,
                    skill_id=deferral.skill_id,
                    deferred_at=_as_utc(deferral.deferred_at),
                    expires_at=_as_utc(deferral.expires_at),
                )
            )
        return deferral

    def delete(self, player_id: str, skill_id: str) -> bool:
        with session_scope(self.session_factory) as session:
            result = session.execute(
                delete(ProgressionDeferralRow).where(
                    ProgressionDeferralRow.player_id == player_id,
                    ProgressionDeferralRow.skill_id == skill_id,
                )
            )
            return result.rowcount > 0

    def list_for_player(self, player_id: str) -> list[ProgressionDeferral]:
        with session_scope(self.session_factory) as session:
            rows = session.execute(
                select(ProgressionDeferralRow)
                .where(ProgressionDeferralRow.player_id == player_id)
                .order_by(ProgressionDeferralRow.skill_id)
            ).scalars()
            return [row.to_deferral() for row in rows]

    def delete_expired(self, now: datetime) -> int:
        with session_scope(self.session_factory) as session:
            result = session.execute(
                delete(ProgressionDeferralRow).where(
                    ProgressionDeferralRow.expires_at <= _as_utc(now)
                )
            )
            return result.rowcount


class SqlSkipLog:
    """Tutorial skip rows."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None):
        self.session_factory = session_factory

    def append(self, event: SkipEvent) -> None:
        with session_scope(self.session_factory) as session:
            session.add(
                TutorialSkipRow(
                    player_id=event.player_id,
                    skill_id=event.skill_id,
                    skipped_at=_as_utc(event.skipped_at),
                )
            )

    def list_for_player(self, player_id: str) -> list[SkipEvent]:
        with session_scope(self.session_factory) as session:
            rows = session.execute(
                select(TutorialSkipRow)
                .where(TutorialSkipRow.player_id == player_id)
                .order_by(TutorialSkipRow.skipped_at, TutorialSkipRow.id)
            ).scalars()
            return [row.to_event() for row in rows]
