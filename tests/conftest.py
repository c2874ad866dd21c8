"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from mastery_engine.core.models import (  # noqa: E402
    AttemptOutcome,
    AttemptRecord,
    RollingWindow,
    SkillBeliefState,
)

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)
TEN_COMPLEMENT_9 = "tenComplements.9=10-1"


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


def outcome(
    is_correct: bool = True,
    response_time_ms: int | None = 1500,
    used_help: bool = False,
    term_count: int = 1,
    timestamp: datetime = T0,
) -> AttemptOutcome:
    return AttemptOutcome(
        is_correct=is_correct,
        response_time_ms=response_time_ms,
        used_help=used_help,
        term_count=term_count,
        timestamp=timestamp,
    )


def solid_outcomes() -> list[AttemptOutcome]:
    """15 outcomes, oldest first: one early miss then 14 fast correct answers."""
    return [outcome(is_correct=False)] + [outcome() for _ in range(14)]


def build_state(
    player_id: str = "player-1",
    skill_id: str = TEN_COMPLEMENT_9,
    p_known: float = 0.9,
    confidence: float = 0.8,
    opportunities: int = 25,
    sessions: int = 4,
    outcomes: list[AttemptOutcome] | None = None,
    last_practiced_at: datetime | None = T0,
    last_correct_at: datetime | None = T0,
) -> SkillBeliefState:
    """
    Belief state built directly (not through BKT).

    Defaults describe a skill that clears every readiness dimension.
    """
    outcomes = solid_outcomes() if outcomes is None else outcomes
    return SkillBeliefState(
        player_id=player_id,
        skill_id=skill_id,
        p_known=p_known,
        confidence=confidence,
        opportunities=opportunities,
        success_count=sum(1 for o in outcomes if o.is_correct),
        session_ids=frozenset(f"session-{i}" for i in range(sessions)),
        speed_window=RollingWindow(10, outcomes),
        accuracy_window=RollingWindow(15, outcomes),
        last_practiced_at=last_practiced_at,
        last_correct_at=last_correct_at,
    )


def make_attempt(
    skill_id: str = TEN_COMPLEMENT_9,
    is_correct: bool = True,
    response_time_ms: int | None = 2000,
    used_help: bool = False,
    timestamp: datetime = T0,
    session_id: str = "session-1",
    term_count: int = 1,
    is_retry: bool = False,
) -> AttemptRecord:
    return AttemptRecord(
        skill_id=skill_id,
        is_correct=is_correct,
        response_time_ms=response_time_ms,
        used_help=used_help,
        timestamp=timestamp,
        session_id=session_id,
        term_count=term_count,
        is_retry=is_retry,
    )


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def now():
    """Fixed evaluation time."""
    return T0 + timedelta(hours=1)


@pytest.fixture
def settings():
    """Default settings, isolated from any MASTERY_* environment."""
    from config import Settings

    return Settings(_env_file=None)
