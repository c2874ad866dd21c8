"""
Mastery Engine Models.

SQLAlchemy models for the persisted engine state:
- Skill belief state per player per skill (optimistic ``version`` column)
- Progression deferrals (one live row per player and skill)
- Tutorial skip log
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Float, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from mastery_engine.core.models import (
    DEFAULT_ACCURACY_WINDOW,
    DEFAULT_SPEED_WINDOW,
    ProgressionDeferral,
    RollingWindow,
    SkillBeliefState,
    SkipEvent,
    ensure_utc,
)

from .base import Base


def _utc_or_none(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns
    return ensure_utc(value) if value is not None else None


def _stored_utc(value: datetime | None) -> datetime | None:
    return ensure_utc(value).astimezone(UTC) if value is not None else None


class SkillBeliefStateRow(Base):
    """
    Current BKT belief for one player and one skill.

    Rolling windows are stored oldest-first as JSON lists of outcomes.
    """

    __tablename__ = "skill_belief_states"

    player_id: Mapped[str] = mapped_column(Text, primary_key=True)
    skill_id: Mapped[str] = mapped_column(Text, primary_key=True)

    p_known: Mapped[float] = mapped_column(Float, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, default=0.0)
    opportunities: Mapped[int] = mapped_column(Integer, default=0)
    success_count: Mapped[int] = mapped_column(Integer, default=0)
    session_ids: Mapped[list[str]] = mapped_column(JSON, default=list)

    speed_window_size: Mapped[int] = mapped_column(Integer, default=DEFAULT_SPEED_WINDOW)
    speed_window: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    accuracy_window_size: Mapped[int] = mapped_column(Integer, default=DEFAULT_ACCURACY_WINDOW)
    accuracy_window: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)

    last_practiced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_correct_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (Index("idx_skill_state_player", "player_id"),)

    def __repr__(self) -> str:
        return f"<SkillBeliefStateRow player={self.player_id} skill={self.skill_id} v{self.version}>"

    @staticmethod
    def column_values(state: SkillBeliefState) -> dict[str, Any]:
        """Column values for ``state`` (everything except the primary key)."""
        return {
            "p_known": state.p_known,
            "confidence": state.confidence,
            "opportunities": state.opportunities,
            "success_count": state.success_count,
            "session_ids": sorted(state.session_ids),
            "speed_window_size": state.speed_window.capacity,
            "speed_window": state.speed_window.to_list(),
            "accuracy_window_size": state.accuracy_window.capacity,
            "accuracy_window": state.accuracy_window.to_list(),
            "last_practiced_at": _stored_utc(state.last_practiced_at),
            "last_correct_at": _stored_utc(state.last_correct_at),
            "version": state.version,
        }

    @classmethod
    def from_state(cls, state: SkillBeliefState) -> SkillBeliefStateRow:
        return cls(player_id=state.player_id, skill_id=state.skill_id, **cls.column_values(state))

    def to_state(self) -> SkillBeliefState:
        return SkillBeliefState(
            player_id=self.player_id,
            skill_id=self.skill_id,
            p_known=self.p_known,
            confidence=self.confidence,
            opportunities=self.opportunities,
            success_count=self.success_count,
            session_ids=frozenset(self.session_ids or ()),
            speed_window=RollingWindow.from_list(self.speed_window_size, self.speed_window or ()),
            accuracy_window=RollingWindow.from_list(
                self.accuracy_window_size, self.accuracy_window or ()
            ),
            last_practiced_at=_utc_or_none(self.last_practiced_at),
            last_correct_at=_utc_or_none(self.last_correct_at),
            version=self.version,
        )


class ProgressionDeferralRow(Base):
    """Teacher deferral of progression past a skill; upserted by key."""

    __tablename__ = "progression_deferrals"

    player_id: Mapped[str] = mapped_column(Text, primary_key=True)
    skill_id: Mapped[str] = mapped_column(Text, primary_key=True)
    deferred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_deferral_expires", "expires_at"),)

    def to_deferral(self) -> ProgressionDeferral:
        return ProgressionDeferral(
            player_id=self.player_id,
            skill_id=self.skill_id,
            deferred_at=ensure_utc(self.deferred_at),
            expires_at=ensure_utc(self.expires_at),
        )


class TutorialSkipRow(Base):
    """Append-only log of tutorial skips."""

    __tablename__ = "tutorial_skips"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_id: Mapped[str] = mapped_column(Text, nullable=False)
    skill_id: Mapped[str] = mapped_column(Text, nullable=False)
    skipped_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_tutorial_skip_player", "player_id", "skill_id"),)

    def to_event(self) -> SkipEvent:
        return SkipEvent(
            player_id=self.player_id,
            skill_id=self.skill_id,
            skipped_at=ensure_utc(self.skipped_at),
        )
