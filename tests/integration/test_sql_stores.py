"""
Integration Tests for the SQL stores.

Runs against a throwaway SQLite file so that separate sessions really are
separate connections, which the write-race tests rely on.
"""

from datetime import timedelta

import pytest

from conftest import T0, TEN_COMPLEMENT_9, make_attempt
from mastery_engine.bkt.params import BKTParams
from mastery_engine.bkt.updater import apply_attempt, new_belief_state
from mastery_engine.core.errors import StoreConflict
from mastery_engine.core.models import ProgressionDeferral, SkipEvent
from mastery_engine.db.database import build_engine, init_db, make_session_factory
from mastery_engine.db.store import SqlDeferralStore, SqlSkillStateStore, SqlSkipLog

pytestmark = pytest.mark.integration

PARAMS = BKTParams()


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'mastery.db'}")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def state_store(session_factory):
    return SqlSkillStateStore(session_factory, max_retries=3)


def apply(attempt):
    """Update function applying one attempt (creating the state if needed)."""

    def update(current):
        base = current or new_belief_state("player-1", attempt.skill_id, PARAMS)
        return apply_attempt(base, attempt, PARAMS)

    return update


class TestSkillStateStore:
    def test_first_write_inserts(self, state_store):
        committed = state_store.update("player-1", TEN_COMPLEMENT_9, apply(make_attempt()))

        assert committed.version == 1
        stored = state_store.get("player-1", TEN_COMPLEMENT_9)
        assert stored == committed

    def test_round_trip_keeps_windows_and_times(self, state_store):
        for i in range(12):
            attempt = make_attempt(
                is_correct=i % 3 != 0,
                response_time_ms=1000 + i,
                used_help=i == 11,
                timestamp=T0 + timedelta(minutes=i),
                session_id=f"s{i % 2}",
            )
            state_store.update("player-1", TEN_COMPLEMENT_9, apply(attempt))

        stored = state_store.get("player-1", TEN_COMPLEMENT_9)
        assert stored.version == 12
        assert stored.opportunities == 12
        assert stored.session_ids == frozenset({"s0", "s1"})
        assert len(stored.speed_window) == 10
        assert stored.speed_window.recent(1)[0].response_time_ms == 1011
        assert stored.accuracy_window.recent(1)[0].used_help is True
        assert stored.last_practiced_at == T0 + timedelta(minutes=11)
        assert stored.last_practiced_at.tzinfo is not None

    def test_get_missing(self, state_store):
        assert state_store.get("player-1", TEN_COMPLEMENT_9) is None

    def test_list_for_player(self, state_store):
        state_store.update("player-1", TEN_COMPLEMENT_9, apply(make_attempt()))
        state_store.update(
            "player-1", "basic.heavenBead", apply(make_attempt(skill_id="basic.heavenBead"))
        )

        states = state_store.list_for_player("player-1")
        assert sorted(states) == ["basic.heavenBead", TEN_COMPLEMENT_9]
        assert state_store.list_for_player("player-2") == {}

    def test_lost_update_is_reapplied(self, session_factory, state_store):
        """A writer that commits between our read and our write is not overwritten."""
        state_store.update("player-1", TEN_COMPLEMENT_9, apply(make_attempt()))
        rival = SqlSkillStateStore(session_factory)
        calls = []

        def update(current):
            calls.append(current.version)
            if len(calls) == 1:
                rival.update("player-1", TEN_COMPLEMENT_9, apply(make_attempt(is_correct=False)))
            return apply(make_attempt(session_id="session-2"))(current)

        committed = state_store.update("player-1", TEN_COMPLEMENT_9, update)

        assert calls == [1, 2]
        assert committed.version == 3
        assert committed.opportunities == 3
        assert committed.session_ids == frozenset({"session-1", "session-2"})

    def test_concurrent_first_insert(self, session_factory, state_store):
        rival = SqlSkillStateStore(session_factory)
        calls = []

        def update(current):
            calls.append(current)
            if len(calls) == 1:
                rival.update("player-1", TEN_COMPLEMENT_9, apply(make_attempt()))
            return apply(make_attempt())(current)

        committed = state_store.update("player-1", TEN_COMPLEMENT_9, update)

        assert calls[0] is None
        assert committed.opportunities == 2
        assert committed.version == 2

    def test_conflict_after_retry_budget(self, session_factory, state_store):
        state_store.update("player-1", TEN_COMPLEMENT_9, apply(make_attempt()))
        rival = SqlSkillStateStore(session_factory)

        def always_interfere(current):
            rival.update("player-1", TEN_COMPLEMENT_9, apply(make_attempt()))
            return apply(make_attempt())(current)

        with pytest.raises(StoreConflict) as exc_info:
            state_store.update("player-1", TEN_COMPLEMENT_9, always_interfere)

        assert exc_info.value.attempts == 3
        # only the rival's three writes landed
        assert state_store.get("player-1", TEN_COMPLEMENT_9).opportunities == 4

    def test_retry_budget_must_be_positive(self, session_factory):
        with pytest.raises(ValueError):
            SqlSkillStateStore(session_factory, max_retries=0)


class TestDeferralStore:
    def test_upsert_replaces(self, session_factory):
        store = SqlDeferralStore(session_factory)
        first = ProgressionDeferral.starting("p1", TEN_COMPLEMENT_9, T0, timedelta(days=7))
        second = ProgressionDeferral.starting("p1", TEN_COMPLEMENT_9, T0 + timedelta(days=3), timedelta(days=7))

        store.upsert(first)
        store.upsert(second)

        assert store.get("p1", TEN_COMPLEMENT_9) == second
        assert len(store.list_for_player("p1")) == 1

    def test_delete(self, session_factory):
        store = SqlDeferralStore(session_factory)
        store.upsert(ProgressionDeferral.starting("p1", TEN_COMPLEMENT_9, T0, timedelta(days=7)))

        assert store.delete("p1", TEN_COMPLEMENT_9) is True
        assert store.delete("p1", TEN_COMPLEMENT_9) is False
        assert store.get("p1", TEN_COMPLEMENT_9) is None

    def test_delete_expired(self, session_factory):
        store = SqlDeferralStore(session_factory)
        store.upsert(ProgressionDeferral.starting("p1", "basic.heavenBead", T0, timedelta(days=1)))
        store.upsert(ProgressionDeferral.starting("p1", TEN_COMPLEMENT_9, T0, timedelta(days=7)))
        store.upsert(ProgressionDeferral.starting("p2", TEN_COMPLEMENT_9, T0, timedelta(hours=1)))

        assert store.delete_expired(T0 + timedelta(days=2)) == 2
        assert [d.skill_id for d in store.list_for_player("p1")] == [TEN_COMPLEMENT_9]
        assert store.list_for_player("p2") == []


class TestSkipLog:
    def test_append_and_list(self, session_factory):
        log = SqlSkipLog(session_factory)
        log.append(SkipEvent("p1", TEN_COMPLEMENT_9, T0 + timedelta(minutes=5)))
        log.append(SkipEvent("p1", TEN_COMPLEMENT_9, T0))
        log.append(SkipEvent("p2", TEN_COMPLEMENT_9, T0))

        events = log.list_for_player("p1")
        assert [e.skipped_at for e in events] == [T0, T0 + timedelta(minutes=5)]
        assert all(e.skipped_at.tzinfo is not None for e in events)
