"""
Bayesian Knowledge Tracing.

Components:
- params: BKTParams, per-category priors, classify_skill
- updater: apply_attempt / replay_attempts (pure belief updates)
"""

from mastery_engine.bkt.params import (
    BKT_THRESHOLDS,
    CATEGORY_PRIORS,
    BKTParams,
    classify_skill,
    default_params_for,
)
from mastery_engine.bkt.updater import (
    apply_attempt,
    apply_learning,
    bkt_evidence,
    bkt_update,
    compute_confidence,
    new_belief_state,
    replay_attempts,
)

__all__ = [
    "BKT_THRESHOLDS",
    "CATEGORY_PRIORS",
    "BKTParams",
    "apply_attempt",
    "apply_learning",
    "bkt_evidence",
    "bkt_update",
    "classify_skill",
    "compute_confidence",
    "default_params_for",
    "new_belief_state",
    "replay_attempts",
]
