"""
Core domain records for the mastery engine.

Design:
- Skill: immutable catalog entry
- AttemptRecord: one validated practice attempt (the unit the BKT updater consumes)
- AttemptOutcome: compact attempt summary kept in rolling windows
- RollingWindow: fixed-capacity ring buffer of outcomes
- SkillBeliefState: per (player, skill) belief, replaced (never mutated) on update
- ProgressionDeferral: time-bounded veto on progression for one skill
- SkipEvent: one tutorial bypass
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import Any

from mastery_engine.core.errors import InvalidAttempt, InvalidDeferral

DEFAULT_SPEED_WINDOW = 10
DEFAULT_ACCURACY_WINDOW = 15


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so aware and naive values compare."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _parse_datetime(value: str | datetime | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(value))


def _format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


# =============================================================================
# Catalog
# =============================================================================


@dataclass(frozen=True)
class Skill:
    """A named, categorized unit of abacus arithmetic competence."""

    skill_id: str
    display_name: str
    category: str
    prerequisites: tuple[str, ...] = ()


# =============================================================================
# Attempts
# =============================================================================


@dataclass(frozen=True)
class AttemptRecord:
    """
    A single practice attempt at a skill.

    Attributes:
        skill_id: Catalog id of the exercised skill
        is_correct: Whether the answer was correct
        response_time_ms: Time to answer, None when not measured
        used_help: Whether the learner used help (hints, on-screen abacus guide)
        timestamp: When the attempt happened
        session_id: Practice session the attempt belongs to
        term_count: Number of terms in the problem (for seconds-per-term)
        is_retry: True for a second try at the same problem
        problem_id: Optional problem identifier
    """

    skill_id: str
    is_correct: bool
    response_time_ms: int | None
    used_help: bool
    timestamp: datetime
    session_id: str
    term_count: int = 1
    is_retry: bool = False
    problem_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "timestamp", ensure_utc(self.timestamp))

    def validate(self) -> None:
        """Raise InvalidAttempt when the record cannot be applied."""
        if not self.skill_id or not self.skill_id.strip():
            raise InvalidAttempt("skill_id is empty")
        if self.response_time_ms is not None and self.response_time_ms < 0:
            raise InvalidAttempt(
                f"negative response time {self.response_time_ms}ms", self.skill_id
            )
        if self.term_count < 1:
            raise InvalidAttempt(f"term_count must be >= 1, got {self.term_count}", self.skill_id)
        if not self.session_id:
            raise InvalidAttempt("session_id is empty", self.skill_id)


@dataclass(frozen=True)
class AttemptOutcome:
    """What a rolling window remembers about one attempt."""

    is_correct: bool
    response_time_ms: int | None
    used_help: bool
    term_count: int
    timestamp: datetime

    @classmethod
    def from_attempt(cls, attempt: AttemptRecord) -> AttemptOutcome:
        return cls(
            is_correct=attempt.is_correct,
            response_time_ms=attempt.response_time_ms,
            used_help=attempt.used_help,
            term_count=attempt.term_count,
            timestamp=attempt.timestamp,
        )

    @property
    def seconds_per_term(self) -> float | None:
        """Response time normalised by problem length."""
        if self.response_time_ms is None:
            return None
        return self.response_time_ms / (self.term_count * 1000)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_correct": self.is_correct,
            "response_time_ms": self.response_time_ms,
            "used_help": self.used_help,
            "term_count": self.term_count,
            "timestamp": _format_datetime(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AttemptOutcome:
        return cls(
            is_correct=bool(data["is_correct"]),
            response_time_ms=data.get("response_time_ms"),
            used_help=bool(data.get("used_help", False)),
            term_count=int(data.get("term_count", 1)),
            timestamp=_parse_datetime(data["timestamp"]),
        )


class RollingWindow:
    """
    Fixed-capacity ring buffer of attempt outcomes.

    Slots are preallocated and written by position; once full, each new
    outcome overwrites the oldest one. ``appended`` returns a new window so
    belief states stay immutable.
    """

    __slots__ = ("capacity", "_slots", "_head", "_count")

    def __init__(self, capacity: int, outcomes: Iterable[AttemptOutcome] = ()):
        if capacity < 1:
            raise ValueError(f"Window capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._slots: list[AttemptOutcome | None] = [None] * capacity
        self._head = 0  # next write position
        self._count = 0
        for outcome in outcomes:
            self._write(outcome)

    def _write(self, outcome: AttemptOutcome) -> None:
        self._slots[self._head] = outcome
        self._head = (self._head + 1) % self.capacity
        self._count = min(self._count + 1, self.capacity)

    def appended(self, outcome: AttemptOutcome) -> RollingWindow:
        """Return a copy of this window with ``outcome`` as the newest entry."""
        clone = RollingWindow.__new__(RollingWindow)
        clone.capacity = self.capacity
        clone._slots = list(self._slots)
        clone._head = self._head
        clone._count = self._count
        clone._write(outcome)
        return clone

    def resized(self, capacity: int) -> RollingWindow:
        """Copy with a new capacity; the newest outcomes survive a shrink."""
        if capacity == self.capacity:
            return self
        return RollingWindow(capacity, self)

    def recent(self, n: int | None = None) -> list[AttemptOutcome]:
        """Most recent outcomes first, at most ``n`` of them."""
        size = self._count if n is None else max(0, min(n, self._count))
        return [self._slots[(self._head - 1 - i) % self.capacity] for i in range(size)]

    @property
    def is_full(self) -> bool:
        return self._count == self.capacity

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[AttemptOutcome]:
        """Oldest first."""
        return reversed(self.recent())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RollingWindow):
            return NotImplemented
        return self.capacity == other.capacity and list(self) == list(other)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"RollingWindow(capacity={self.capacity}, size={self._count})"

    def to_list(self) -> list[dict[str, Any]]:
        return [outcome.to_dict() for outcome in self]

    @classmethod
    def from_list(cls, capacity: int, items: Iterable[dict[str, Any]]) -> RollingWindow:
        return cls(capacity, (AttemptOutcome.from_dict(item) for item in items))


# =============================================================================
# Belief state
# =============================================================================


@dataclass(frozen=True)
class SkillBeliefState:
    """
    Current belief about one player's command of one skill.

    The BKT updater never mutates a state; it returns a replacement.
    ``version`` is owned by the stores for optimistic concurrency.
    """

    player_id: str
    skill_id: str
    p_known: float
    confidence: float = 0.0
    opportunities: int = 0
    success_count: int = 0
    session_ids: frozenset[str] = frozenset()
    # Windows compare by contents but stay out of the hash.
    speed_window: RollingWindow = field(
        default_factory=lambda: RollingWindow(DEFAULT_SPEED_WINDOW), hash=False
    )
    accuracy_window: RollingWindow = field(
        default_factory=lambda: RollingWindow(DEFAULT_ACCURACY_WINDOW), hash=False
    )
    last_practiced_at: datetime | None = None
    last_correct_at: datetime | None = None
    version: int = 0

    @property
    def session_count(self) -> int:
        return len(self.session_ids)

    def with_min_windows(self, speed_capacity: int, accuracy_capacity: int) -> SkillBeliefState:
        """Grow either window to at least the given capacity, keeping its outcomes."""
        speed = self.speed_window.resized(max(self.speed_window.capacity, speed_capacity))
        accuracy = self.accuracy_window.resized(
            max(self.accuracy_window.capacity, accuracy_capacity)
        )
        if speed is self.speed_window and accuracy is self.accuracy_window:
            return self
        return replace(self, speed_window=speed, accuracy_window=accuracy)

    def recent_accuracy(self, window_size: int | None = None) -> float | None:
        """Fraction correct over the most recent outcomes, None without data."""
        recent = self.accuracy_window.recent(window_size)
        if not recent:
            return None
        return sum(1 for o in recent if o.is_correct) / len(recent)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "player_id": self.player_id,
            "skill_id": self.skill_id,
            "p_known": self.p_known,
            "confidence": self.confidence,
            "opportunities": self.opportunities,
            "success_count": self.success_count,
            "session_ids": sorted(self.session_ids),
            "speed_window": {
                "capacity": self.speed_window.capacity,
                "outcomes": self.speed_window.to_list(),
            },
            "accuracy_window": {
                "capacity": self.accuracy_window.capacity,
                "outcomes": self.accuracy_window.to_list(),
            },
            "last_practiced_at": _format_datetime(self.last_practiced_at),
            "last_correct_at": _format_datetime(self.last_correct_at),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SkillBeliefState:
        speed = data.get("speed_window") or {}
        accuracy = data.get("accuracy_window") or {}
        return cls(
            player_id=data["player_id"],
            skill_id=data["skill_id"],
            p_known=float(data["p_known"]),
            confidence=float(data.get("confidence", 0.0)),
            opportunities=int(data.get("opportunities", 0)),
            success_count=int(data.get("success_count", 0)),
            session_ids=frozenset(data.get("session_ids", ())),
            speed_window=RollingWindow.from_list(
                speed.get("capacity", DEFAULT_SPEED_WINDOW), speed.get("outcomes", ())
            ),
            accuracy_window=RollingWindow.from_list(
                accuracy.get("capacity", DEFAULT_ACCURACY_WINDOW), accuracy.get("outcomes", ())
            ),
            last_practiced_at=_parse_datetime(data.get("last_practiced_at")),
            last_correct_at=_parse_datetime(data.get("last_correct_at")),
            version=int(data.get("version", 0)),
        )


# =============================================================================
# Deferrals and skips
# =============================================================================


@dataclass(frozen=True)
class ProgressionDeferral:
    """A teacher's veto on advancing past a skill, valid until ``expires_at``."""

    player_id: str
    skill_id: str
    deferred_at: datetime
    expires_at: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "deferred_at", ensure_utc(self.deferred_at))
        object.__setattr__(self, "expires_at", ensure_utc(self.expires_at))
        if self.expires_at <= self.deferred_at:
            raise InvalidDeferral(
                f"Deferral for {self.skill_id} must expire after it starts "
                f"({self.deferred_at.isoformat()} -> {self.expires_at.isoformat()})"
            )

    @classmethod
    def starting(
        cls, player_id: str, skill_id: str, now: datetime, duration: timedelta
    ) -> ProgressionDeferral:
        now = ensure_utc(now)
        return cls(player_id, skill_id, deferred_at=now, expires_at=now + duration)

    def is_active(self, now: datetime) -> bool:
        """Expiry is computed on read; nothing needs to sweep old rows."""
        return ensure_utc(now) < self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "skill_id": self.skill_id,
            "deferred_at": _format_datetime(self.deferred_at),
            "expires_at": _format_datetime(self.expires_at),
        }


@dataclass(frozen=True)
class SkipEvent:
    """A learner bypassed the tutorial for a skill."""

    player_id: str
    skill_id: str
    skipped_at: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "skipped_at", ensure_utc(self.skipped_at))
