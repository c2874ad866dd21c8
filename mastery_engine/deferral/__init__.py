"""Teacher-controlled, time-bounded vetoes on progression."""

from mastery_engine.deferral.registry import (
    DEFAULT_DEFERRAL_DURATION,
    DeferralRegistry,
    clear_deferral,
    is_active_deferral,
)

__all__ = [
    "DEFAULT_DEFERRAL_DURATION",
    "DeferralRegistry",
    "clear_deferral",
    "is_active_deferral",
]
