"""
Unit tests for the session mode planner.
"""

from datetime import timedelta

import pytest

from conftest import T0, TEN_COMPLEMENT_9, build_state, outcome
from mastery_engine.core.catalog import default_catalog
from mastery_engine.core.models import ProgressionDeferral
from mastery_engine.planning.modes import SessionMode
from mastery_engine.planning.session_mode import (
    PlannerConfig,
    find_struggling_skills,
    plan_session_mode,
)

NOW = T0 + timedelta(hours=1)
WEAK_SKILL = "fiveComplements.3=5-2"


def struggling_state(player_id="player-1", skill_id=WEAK_SKILL):
    # 2 of 6 correct
    outcomes = [outcome(is_correct=c) for c in (False, True, False, False, True, False)]
    return build_state(
        player_id=player_id,
        skill_id=skill_id,
        p_known=0.2,
        confidence=0.4,
        opportunities=6,
        sessions=1,
        outcomes=outcomes,
    )


def developing_state(skill_id="basic.heavenBead"):
    """Accurate but not yet solid (too few opportunities)."""
    return build_state(skill_id=skill_id, opportunities=8, outcomes=[outcome() for _ in range(8)])


def deferral_for(skill_id, player_id="player-1", start=T0, days=7):
    return ProgressionDeferral.starting(player_id, skill_id, start, timedelta(days=days))


class TestModeSelection:
    def test_remediation_beats_solid_skill(self):
        result = plan_session_mode([build_state(), struggling_state()], [], NOW)

        assert result.mode is SessionMode.REMEDIATION
        assert [s.skill_id for s in result.struggling_skills] == [WEAK_SKILL]
        assert result.ready_skill_ids == (TEN_COMPLEMENT_9,)

    def test_progression_with_solid_undeferred_skill(self):
        result = plan_session_mode([build_state(), developing_state()], [], NOW)

        assert result.mode is SessionMode.PROGRESSION
        assert result.ready_skill_ids == (TEN_COMPLEMENT_9,)
        assert result.struggling_skills == ()

    def test_maintenance_when_nothing_ready(self):
        result = plan_session_mode([developing_state()], [], NOW)
        assert result.mode is SessionMode.MAINTENANCE

    def test_maintenance_with_no_skills(self):
        result = plan_session_mode({}, [], NOW)

        assert result.mode is SessionMode.MAINTENANCE
        assert result.comfort_overall == pytest.approx(0.3)
        assert all(c == pytest.approx(0.3) for c in result.comfort_by_mode.values())

    def test_deferred_solid_skill_gives_maintenance(self):
        """The only solid skill is deferred, so progression is vetoed."""
        state = build_state()
        result = plan_session_mode({state.skill_id: state}, [deferral_for(state.skill_id)], NOW)

        assert result.mode is SessionMode.MAINTENANCE
        assert result.deferred_skill_ids == (TEN_COMPLEMENT_9,)
        assert result.ready_skill_ids == ()

    def test_one_undeferred_solid_skill_is_enough(self):
        a = build_state(skill_id="basic.directAddition")
        b = build_state(skill_id="basic.heavenBead")
        result = plan_session_mode([a, b], [deferral_for("basic.directAddition")], NOW)

        assert result.mode is SessionMode.PROGRESSION
        assert result.ready_skill_ids == ("basic.heavenBead",)
        assert result.deferred_skill_ids == ("basic.directAddition",)

    def test_expired_deferral_ignored(self):
        state = build_state()
        expired = deferral_for(state.skill_id, start=T0 - timedelta(days=10))
        result = plan_session_mode([state], [expired], NOW)

        assert result.mode is SessionMode.PROGRESSION

    def test_other_players_deferral_ignored(self):
        state = build_state()
        result = plan_session_mode([state], [deferral_for(state.skill_id, player_id="someone-else")], NOW)

        assert result.mode is SessionMode.PROGRESSION

    def test_deferral_does_not_hide_struggling(self):
        weak = struggling_state()
        result = plan_session_mode([weak], [deferral_for(WEAK_SKILL)], NOW)

        assert result.mode is SessionMode.REMEDIATION


class TestStruggling:
    def test_floor_is_exclusive(self):
        outcomes = [outcome(is_correct=c) for c in (True, False, True, False)]
        state = build_state(outcomes=outcomes, opportunities=4)
        assert find_struggling_skills([state], PlannerConfig()) == []

    def test_single_miss_counts_by_default(self):
        state = build_state(outcomes=[outcome(is_correct=False)], opportunities=1)
        found = find_struggling_skills([state], PlannerConfig())

        assert len(found) == 1
        assert found[0].recent_accuracy == 0.0
        assert found[0].attempts == 1

    def test_min_attempts(self):
        state = build_state(outcomes=[outcome(is_correct=False)] * 2, opportunities=2)
        assert find_struggling_skills([state], PlannerConfig(struggling_min_attempts=3)) == []

    def test_only_recent_window_counts(self):
        outcomes = [outcome(is_correct=False)] * 8 + [outcome()] * 5
        state = build_state(outcomes=outcomes, opportunities=13)

        assert find_struggling_skills([state], PlannerConfig(struggling_window_size=5)) == []
        assert len(find_struggling_skills([state], PlannerConfig(struggling_window_size=15))) == 1

    def test_worst_first(self):
        bad = build_state(skill_id="basic.directAddition", outcomes=[outcome(is_correct=False)] * 4)
        weak = struggling_state()
        found = find_struggling_skills([weak, bad], PlannerConfig())

        assert [s.skill_id for s in found] == ["basic.directAddition", WEAK_SKILL]

    def test_config_validation(self):
        with pytest.raises(ValueError):
            PlannerConfig(struggling_floor=1.2)
        with pytest.raises(ValueError):
            PlannerConfig(struggling_min_attempts=0)

    def test_config_from_settings(self, settings):
        assert PlannerConfig.from_settings(settings) == PlannerConfig()


class TestExplanation:
    def test_focus_uses_display_names(self):
        result = plan_session_mode([struggling_state()], [], NOW, catalog=default_catalog())
        assert result.focus_description == "Strengthening: Add 3 (5-2)"

    def test_focus_lists_ready_skills(self):
        a = build_state(skill_id="basic.directAddition")
        b = build_state(skill_id="basic.heavenBead")
        result = plan_session_mode([a, b], [], NOW)

        assert result.focus_description == "Ready to advance: basic.directAddition and basic.heavenBead"

    def test_focus_mentions_deferred(self):
        state = build_state()
        result = plan_session_mode([state], [deferral_for(state.skill_id)], NOW)
        assert "deferred" in result.focus_description

    def test_to_dict(self):
        result = plan_session_mode([build_state(), struggling_state()], [], NOW)
        data = result.to_dict()

        assert data["mode"] == "remediation"
        assert set(data["comfort_by_mode"]) == {"remediation", "progression", "maintenance"}
        assert data["struggling_skills"][0]["skill_id"] == WEAK_SKILL


class TestComfortDoesNotDecide:
    def test_mode_unchanged_by_confidence(self):
        """Comfort shifts with confidence weights; the mode does not."""
        states = [build_state(confidence=0.99), struggling_state()]
        low = [build_state(confidence=0.01), struggling_state()]

        high_result = plan_session_mode(states, [], NOW)
        low_result = plan_session_mode(low, [], NOW)

        assert high_result.mode is low_result.mode is SessionMode.REMEDIATION
        assert high_result.comfort_by_mode[SessionMode.MAINTENANCE] != pytest.approx(
            low_result.comfort_by_mode[SessionMode.MAINTENANCE]
        )
