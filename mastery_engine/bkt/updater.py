"""
BKT Updater.

Applies one practice attempt to a skill's belief state using standard
Bayesian Knowledge Tracing with slip/guess:

    correct:   P(L|obs) = P(L)(1-S) / [P(L)(1-S) + (1-P(L))G]
    incorrect: P(L|obs) = P(L)S / [P(L)S + (1-P(L))(1-G)]
    learning:  P(L') = P(L|obs) + (1 - P(L|obs)) T

Everything here is pure: states go in, new states come out. Persisting the
result (and doing so atomically per key) is the store's job.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from mastery_engine.bkt.params import BKTParams
from mastery_engine.core.errors import InvalidAttempt
from mastery_engine.core.models import (
    DEFAULT_ACCURACY_WINDOW,
    DEFAULT_SPEED_WINDOW,
    AttemptOutcome,
    AttemptRecord,
    RollingWindow,
    SkillBeliefState,
)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def bkt_evidence(p_known: float, is_correct: bool, params: BKTParams) -> float:
    """Posterior P(known) after observing one answer."""
    if is_correct:
        numerator = p_known * (1 - params.slip)
        denominator = numerator + (1 - p_known) * params.guess
    else:
        numerator = p_known * params.slip
        denominator = numerator + (1 - p_known) * (1 - params.guess)

    if denominator <= 0:
        # The observation is impossible under these params; keep the prior.
        return _clamp(p_known)
    return _clamp(numerator / denominator)


def apply_learning(p_evidence: float, transit: float) -> float:
    """Chance of having acquired the skill before the next opportunity."""
    return _clamp(p_evidence + (1 - p_evidence) * transit)


def bkt_update(p_known: float, is_correct: bool, params: BKTParams) -> float:
    """Evidence step followed by learning step, clamped to [0, 1]."""
    return apply_learning(bkt_evidence(p_known, is_correct, params), params.transit)


def compute_confidence(opportunities: int, params: BKTParams) -> float:
    """
    Evidence behind the estimate, from opportunity count alone.

    n / (n + k): 0 with no evidence, 0.5 at k opportunities, never 1.
    Deliberately independent of P(known).
    """
    if opportunities <= 0:
        return 0.0
    return opportunities / (opportunities + params.confidence_scale)


def new_belief_state(
    player_id: str,
    skill_id: str,
    params: BKTParams,
    speed_window_size: int = DEFAULT_SPEED_WINDOW,
    accuracy_window_size: int = DEFAULT_ACCURACY_WINDOW,
) -> SkillBeliefState:
    """State for a skill the player has never attempted."""
    return SkillBeliefState(
        player_id=player_id,
        skill_id=skill_id,
        p_known=params.p_init,
        confidence=0.0,
        speed_window=RollingWindow(speed_window_size),
        accuracy_window=RollingWindow(accuracy_window_size),
    )


def apply_attempt(
    state: SkillBeliefState, attempt: AttemptRecord, params: BKTParams
) -> SkillBeliefState:
    """
    Fold one attempt into a belief state.

    Args:
        state: Current belief (latest committed read)
        attempt: Validated attempt at ``state.skill_id``
        params: Fixed BKT parameters for the skill

    Returns:
        A new SkillBeliefState; ``state`` is left untouched.

    Raises:
        InvalidAttempt: negative response time, empty ids, bad term count,
            or an attempt at a different skill than the state tracks.
    """
    attempt.validate()
    if attempt.skill_id != state.skill_id:
        raise InvalidAttempt(
            f"attempt is for {attempt.skill_id!r} but state tracks {state.skill_id!r}",
            attempt.skill_id,
        )

    last_practiced = state.last_practiced_at
    if last_practiced is None or attempt.timestamp > last_practiced:
        last_practiced = attempt.timestamp
    session_ids = state.session_ids | {attempt.session_id}

    if attempt.is_retry:
        # The first try at this problem already counted as the opportunity.
        return replace(state, session_ids=session_ids, last_practiced_at=last_practiced)

    opportunities = state.opportunities + 1
    outcome = AttemptOutcome.from_attempt(attempt)
    last_correct = state.last_correct_at
    if attempt.is_correct and (last_correct is None or attempt.timestamp > last_correct):
        last_correct = attempt.timestamp

    return replace(
        state,
        p_known=bkt_update(state.p_known, attempt.is_correct, params),
        confidence=compute_confidence(opportunities, params),
        opportunities=opportunities,
        success_count=state.success_count + (1 if attempt.is_correct else 0),
        session_ids=session_ids,
        speed_window=state.speed_window.appended(outcome),
        accuracy_window=state.accuracy_window.appended(outcome),
        last_practiced_at=last_practiced,
        last_correct_at=last_correct,
    )


def replay_attempts(
    state: SkillBeliefState, attempts: Iterable[AttemptRecord], params: BKTParams
) -> SkillBeliefState:
    """Apply attempts in order, each one seeing the previous result."""
    for attempt in attempts:
        state = apply_attempt(state, attempt, params)
    return state
