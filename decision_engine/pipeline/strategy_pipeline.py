"""
Ordered strategy evaluation shared by the prediction engines.

Strategies are evaluated in priority order; the first one that does not
abstain wins. Confidence is never used to override priority.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PredictionCandidate:
    """Output of a single strategy evaluation."""
    strategy_name: str
    confidence: float  # 0.0 to 1.0
    payload: Any
    reasoning: str


@dataclass
class PredictionResult:
    """Winning candidate plus the auto-apply decision."""
    payload: Any
    confidence: float
    strategy_name: str
    reasoning: str
    auto_apply: bool = False


@dataclass(frozen=True)
class Strategy:
    """A named heuristic. evaluate(context) returns a candidate or None to abstain."""
    name: str
    evaluate: Callable[[Any], Optional[PredictionCandidate]]


class StrategyPipeline:
    """Evaluates strategies in order until one produces a candidate."""

    def __init__(self, strategies: List[Strategy], fallback: Optional[Strategy] = None):
        """
        Args:
            strategies: Strategies in priority order, highest first
            fallback: Optional strategy used when every strategy abstains
        """
        self.strategies = list(strategies)
        self.fallback = fallback

    @property
    def strategy_names(self) -> List[str]:
        names = [s.name for s in self.strategies]
        if self.fallback is not None:
            names.append(self.fallback.name)
        return names

    def run(self, context: Any) -> Optional[PredictionCandidate]:
        """
        Evaluate strategies in priority order.

        Returns:
            First non-abstaining candidate, the fallback's candidate when all
            abstain, or None ("no prediction").
        """
        for strategy in self.strategies:
            candidate = strategy.evaluate(context)
            if candidate is not None:
                logger.debug(
                    "Strategy %s produced a candidate (confidence %.2f)",
                    strategy.name, candidate.confidence,
                )
                return candidate
            logger.debug("Strategy %s abstained", strategy.name)

        if self.fallback is not None:
            logger.debug("All strategies abstained, using fallback %s", self.fallback.name)
            return self.fallback.evaluate(context)

        return None

    def evaluate_all(self, context: Any) -> List[Tuple[str, Optional[PredictionCandidate]]]:
        """Evaluate every strategy (fallback included) for diagnostics."""
        outcomes = [(s.name, s.evaluate(context)) for s in self.strategies]
        if self.fallback is not None:
            outcomes.append((self.fallback.name, self.fallback.evaluate(context)))
        return outcomes
