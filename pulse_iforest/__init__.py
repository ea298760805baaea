"""Heart-rate anomaly detection package.

This package provides:
- isolation: Isolation Forest scoring of a single scalar series
- monitor: windowing of timestamped heart-rate samples on top of the forest
"""

from . import isolation
from .errors import ForestBuildCancelled, InvalidParameterError, PulseForestError
from .isolation import AnomalyVerdict, IsolationForest
from .monitor import HeartRateMonitor, HeartRateSample

__all__ = [
    "isolation",
    "AnomalyVerdict",
    "ForestBuildCancelled",
    "HeartRateMonitor",
    "HeartRateSample",
    "InvalidParameterError",
    "IsolationForest",
    "PulseForestError",
]
