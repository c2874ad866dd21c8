"""
In-memory implementations of the storage contracts.

Thread-safe within one process: each (player, skill) key has its own lock,
so writers to one key are serialised while different keys proceed in
parallel.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import replace
from datetime import datetime

from loguru import logger

from mastery_engine.core.models import (
    ProgressionDeferral,
    SkillBeliefState,
    SkipEvent,
    ensure_utc,
)
from mastery_engine.store.base import StateUpdate


class InMemorySkillStateStore:
    """Dictionary-backed skill state rows."""

    def __init__(self) -> None:
        self._rows: dict[tuple[str, str], SkillBeliefState] = {}
        self._locks: dict[tuple[str, str], threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: tuple[str, str]) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def get(self, player_id: str, skill_id: str) -> SkillBeliefState | None:
        return self._rows.get((player_id, skill_id))

    def list_for_player(self, player_id: str) -> dict[str, SkillBeliefState]:
        with self._registry_lock:
            snapshot = dict(self._rows)
        return {
            skill_id: state
            for (pid, skill_id), state in snapshot.items()
            if pid == player_id
        }

    def update(self, player_id: str, skill_id: str, fn: StateUpdate) -> SkillBeliefState:
        key = (player_id, skill_id)
        with self._lock_for(key):
            current = self._rows.get(key)
            new_state = fn(current)
            version = current.version + 1 if current is not None else 1
            committed = replace(new_state, version=version)
            with self._registry_lock:
                self._rows[key] = committed
        logger.debug(f"Committed skill state {player_id}/{skill_id} v{version}")
        return committed


class InMemoryDeferralStore:
    """Dictionary-backed deferral rows with upsert semantics."""

    def __init__(self) -> None:
        self._rows: dict[tuple[str, str], ProgressionDeferral] = {}
        self._lock = threading.Lock()

    def get(self, player_id: str, skill_id: str) -> ProgressionDeferral | None:
        with self._lock:
            return self._rows.get((player_id, skill_id))

    def upsert(self, deferral: ProgressionDeferral) -> ProgressionDeferral:
        with self._lock:
            self._rows[(deferral.player_id, deferral.skill_id)] = deferral
        return deferral

    def delete(self, player_id: str, skill_id: str) -> bool:
        with self._lock:
            return self._rows.pop((player_id, skill_id), None) is not None

    def list_for_player(self, player_id: str) -> list[ProgressionDeferral]:
        with self._lock:
            return [d for (pid, _), d in self._rows.items() if pid == player_id]

    def delete_expired(self, now: datetime) -> int:
        now = ensure_utc(now)
        with self._lock:
            expired = [key for key, d in self._rows.items() if not d.is_active(now)]
            for key in expired:
                del self._rows[key]
        return len(expired)


class InMemorySkipLog:
    """List-backed tutorial skip log."""

    def __init__(self) -> None:
        self._events: defaultdict[str, list[SkipEvent]] = defaultdict(list)
        self._lock = threading.Lock()

    def append(self, event: SkipEvent) -> None:
        with self._lock:
            self._events[event.player_id].append(event)

    def list_for_player(self, player_id: str) -> list[SkipEvent]:
        with self._lock:
            return list(self._events.get(player_id, ()))
