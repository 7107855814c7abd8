"""
Confidence helpers shared by the prediction engines.
"""

from typing import Optional

from .strategy_pipeline import PredictionCandidate, PredictionResult


def clamp_confidence(value: float) -> float:
    """Clamp a confidence score into [0, 1]."""
    return max(0.0, min(1.0, value))


def merchant_confidence(
    count: int,
    min_occurrences: int = 3,
    base: float = 0.7,
    step: float = 0.05,
    cap: float = 0.95,
) -> float:
    """
    Confidence for a repeated merchant pattern.

    Grows by `step` per occurrence above `min_occurrences`, capped at `cap`:
    3 -> 0.70, 5 -> 0.80, 8 or more -> 0.95.
    """
    # Rounded so 0.7 + 0.05 * 2 compares equal to 0.8
    return round(clamp_confidence(min(cap, base + step * (count - min_occurrences))), 4)


def should_auto_apply(confidence: float, threshold: float) -> bool:
    """True when a prediction is confident enough to apply without review."""
    return confidence >= threshold


def to_result(
    candidate: Optional[PredictionCandidate],
    auto_apply_threshold: float,
) -> Optional[PredictionResult]:
    """Convert a pipeline candidate into a PredictionResult."""
    if candidate is None:
        return None
    return PredictionResult(
        payload=candidate.payload,
        confidence=candidate.confidence,
        strategy_name=candidate.strategy_name,
        reasoning=candidate.reasoning,
        auto_apply=should_auto_apply(candidate.confidence, auto_apply_threshold),
    )
