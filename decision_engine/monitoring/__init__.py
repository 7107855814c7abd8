"""
Monitoring Module: prediction logging and retrospective accuracy.
"""

from .prediction_log import PredictionLog, PredictionLogEntry
from .accuracy_tracker import AccuracyTracker, AccuracyMetrics

__all__ = [
    "PredictionLog",
    "PredictionLogEntry",
    "AccuracyTracker",
    "AccuracyMetrics",
]
