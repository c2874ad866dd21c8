"""Four-dimension readiness gate (mastery, volume, speed, consistency)."""

from mastery_engine.readiness.assessor import (
    ConsistencyDimension,
    MasteryDimension,
    ReadinessDimensions,
    ReadinessResult,
    SpeedDimension,
    VolumeDimension,
    assess,
    assess_all,
    readiness_map_to_record,
)
from mastery_engine.readiness.thresholds import DEFAULT_THRESHOLDS, ReadinessThresholds

__all__ = [
    "DEFAULT_THRESHOLDS",
    "ConsistencyDimension",
    "MasteryDimension",
    "ReadinessDimensions",
    "ReadinessResult",
    "ReadinessThresholds",
    "SpeedDimension",
    "VolumeDimension",
    "assess",
    "assess_all",
    "readiness_map_to_record",
]
