"""
Pipeline Module: ordered strategy evaluation and confidence helpers.
"""

from .strategy_pipeline import (
    PredictionCandidate,
    PredictionResult,
    Strategy,
    StrategyPipeline,
)
from .confidence import (
    clamp_confidence,
    merchant_confidence,
    should_auto_apply,
    to_result,
)

__all__ = [
    "PredictionCandidate",
    "PredictionResult",
    "Strategy",
    "StrategyPipeline",
    "clamp_confidence",
    "merchant_confidence",
    "should_auto_apply",
    "to_result",
]
