"""
Unit tests for core records: rolling windows, attempts, belief state serialisation.
"""

from datetime import datetime, timedelta

import pytest

from conftest import T0, build_state, make_attempt, outcome
from mastery_engine.core.errors import InvalidAttempt
from mastery_engine.core.models import (
    RollingWindow,
    SkillBeliefState,
    SkipEvent,
    ensure_utc,
)


def numbered(n):
    """Outcomes distinguishable by response time."""
    return [outcome(response_time_ms=i) for i in range(n)]


class TestRollingWindow:
    def test_fills_then_evicts_oldest(self):
        window = RollingWindow(3)
        for item in numbered(5):
            window = window.appended(item)

        assert len(window) == 3
        assert window.is_full
        assert [o.response_time_ms for o in window] == [2, 3, 4]

    def test_recent_is_newest_first(self):
        window = RollingWindow(5, numbered(4))

        assert [o.response_time_ms for o in window.recent(2)] == [3, 2]
        assert [o.response_time_ms for o in window.recent()] == [3, 2, 1, 0]
        assert len(window.recent(10)) == 4
        assert window.recent(0) == []

    def test_appended_leaves_original(self):
        window = RollingWindow(2, numbered(2))
        newer = window.appended(outcome(response_time_ms=99))

        assert [o.response_time_ms for o in window] == [0, 1]
        assert [o.response_time_ms for o in newer] == [1, 99]

    def test_equality_by_contents(self):
        assert RollingWindow(3, numbered(2)) == RollingWindow(3, numbered(2))
        assert RollingWindow(3, numbered(2)) != RollingWindow(4, numbered(2))

    def test_list_form_keeps_order(self):
        window = RollingWindow(3, numbered(5))
        restored = RollingWindow.from_list(3, window.to_list())
        assert restored == window

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            RollingWindow(0)

    def test_resized_grows_and_keeps_outcomes(self):
        window = RollingWindow(3, numbered(3))
        grown = window.resized(5)

        assert grown.capacity == 5
        assert not grown.is_full
        assert [o.response_time_ms for o in grown] == [0, 1, 2]
        grown = grown.appended(outcome(response_time_ms=3))
        assert len(grown) == 4

    def test_resized_shrink_keeps_newest(self):
        window = RollingWindow(5, numbered(5))
        assert [o.response_time_ms for o in window.resized(2)] == [3, 4]

    def test_resized_same_capacity_is_identity(self):
        window = RollingWindow(3, numbered(2))
        assert window.resized(3) is window


class TestAttemptRecord:
    def test_naive_timestamp_becomes_utc(self):
        attempt = make_attempt(timestamp=datetime(2026, 1, 1, 12, 0))
        assert attempt.timestamp.utcoffset() == timedelta(0)

    def test_valid_attempt_passes(self):
        make_attempt().validate()

    def test_whitespace_skill_rejected(self):
        with pytest.raises(InvalidAttempt, match="skill_id"):
            make_attempt(skill_id="   ").validate()

    def test_error_carries_skill(self):
        with pytest.raises(InvalidAttempt) as exc_info:
            make_attempt(response_time_ms=-5).validate()
        assert exc_info.value.skill_id == make_attempt().skill_id

    def test_invalid_attempt_is_value_error(self):
        with pytest.raises(ValueError):
            make_attempt(term_count=0).validate()


class TestSkillBeliefState:
    def test_hashable(self):
        state = build_state()
        assert hash(state) == hash(build_state())
        assert len({state, build_state()}) == 1

    def test_with_min_windows_grows_only(self):
        state = build_state()
        grown = state.with_min_windows(12, 20)

        assert grown.speed_window.capacity == 12
        assert grown.accuracy_window.capacity == 20
        assert list(grown.accuracy_window) == list(state.accuracy_window)
        assert state.with_min_windows(5, 5) is state

    def test_dict_form(self):
        state = build_state()
        data = state.to_dict()

        assert data["session_ids"] == sorted(state.session_ids)
        assert data["accuracy_window"]["capacity"] == 15
        assert len(data["speed_window"]["outcomes"]) == 10
        assert SkillBeliefState.from_dict(data) == state

    def test_recent_accuracy_without_data(self):
        state = build_state(outcomes=[])
        assert state.recent_accuracy() is None

    def test_seconds_per_term(self):
        assert outcome(response_time_ms=4500, term_count=3).seconds_per_term == pytest.approx(1.5)
        assert outcome(response_time_ms=None).seconds_per_term is None


class TestTimeHelpers:
    def test_ensure_utc_keeps_aware(self):
        assert ensure_utc(T0) is T0

    def test_skip_event_normalised(self):
        event = SkipEvent("p1", "basic.heavenBead", datetime(2026, 1, 1))
        assert event.skipped_at.tzinfo is not None
