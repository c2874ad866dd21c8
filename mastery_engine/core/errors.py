"""
Error taxonomy for the mastery engine.

Everything the engine raises derives from EngineError so callers can catch
engine failures without swallowing unrelated bugs.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for all mastery engine errors."""


class InvalidAttempt(EngineError, ValueError):
    """Raised when an attempt record is malformed (never retried)."""

    def __init__(self, reason: str, skill_id: str | None = None):
        self.reason = reason
        self.skill_id = skill_id
        prefix = f"Invalid attempt for skill {skill_id!r}" if skill_id else "Invalid attempt"
        super().__init__(f"{prefix}: {reason}")


class UnknownSkill(EngineError, KeyError):
    """Raised when a skill id is not present in the catalog."""

    def __init__(self, skill_id: str):
        self.skill_id = skill_id
        super().__init__(skill_id)

    def __str__(self) -> str:
        return f"Unknown skill: {self.skill_id!r}"


class InvalidDeferral(EngineError, ValueError):
    """Raised when a deferral would not expire after it was created."""


class StoreConflict(EngineError):
    """Raised when a read-modify-write keeps losing races for one key."""

    def __init__(self, player_id: str, skill_id: str, attempts: int):
        self.player_id = player_id
        self.skill_id = skill_id
        self.attempts = attempts
        super().__init__(
            f"Concurrent writes for player={player_id} skill={skill_id} "
            f"not resolved after {attempts} attempts"
        )
