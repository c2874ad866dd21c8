"""Teacher-facing anomaly detection over a player's skills."""

from mastery_engine.anomaly.detector import (
    MASTERED_NOT_PRACTICED,
    REPEATEDLY_SKIPPED,
    AnomalyConfig,
    SkillAnomaly,
    detect_anomalies,
)

__all__ = [
    "MASTERED_NOT_PRACTICED",
    "REPEATEDLY_SKIPPED",
    "AnomalyConfig",
    "SkillAnomaly",
    "detect_anomalies",
]
