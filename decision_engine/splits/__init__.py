"""
Splits Module: predicted allocation of shared household expenses.
"""

from .split_engine import (
    SplitPredictionEngine,
    SplitStrategy,
    SplitSuggestion,
    SplitContext,
    average_split_ratios,
    reconcile_split_amounts,
)

__all__ = [
    "SplitPredictionEngine",
    "SplitStrategy",
    "SplitSuggestion",
    "SplitContext",
    "average_split_ratios",
    "reconcile_split_amounts",
]
