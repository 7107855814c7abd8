"""
Prediction accuracy tracking.

Compares logged predictions against user-confirmed values over a time window,
overall or grouped by strategy (categorization) or by user (splits), to show
which strategy underperforms.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

import pandas as pd

from ..config.engine_config import ACCURACY_CONFIG
from ..exceptions import InvalidConfigurationError

logger = logging.getLogger(__name__)

_COLUMNS = ["kind", "strategy_name", "user_id", "confidence", "correct"]


@dataclass
class AccuracyMetrics:
    """Accuracy summary for a period."""
    total_predictions: int
    correct_predictions: int
    accuracy_rate: float  # 0.0 when there are no predictions
    period_start: datetime
    period_end: datetime
    average_confidence: float = 0.0


class AccuracyTracker:
    """Computes accuracy of engine output against confirmed values."""

    def __init__(
        self,
        prediction_log,
        window_days: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
        amount_tolerance: Optional[float] = None,
    ):
        """
        Args:
            prediction_log: Source of entries (anything with load_entries)
            window_days: Default lookback window in days
            clock: Callable returning the current time
            amount_tolerance: Max difference for a split amount to count as correct

        Raises:
            InvalidConfigurationError: If the window or tolerance is invalid
        """
        self.prediction_log = prediction_log
        self.window_days = ACCURACY_CONFIG["window_days"] if window_days is None else window_days
        self.amount_tolerance = (
            ACCURACY_CONFIG["amount_tolerance"] if amount_tolerance is None else amount_tolerance
        )
        self.clock = clock or datetime.now

        self._validate_window(self.window_days)
        if self.amount_tolerance < 0:
            raise InvalidConfigurationError(
                f"amount_tolerance must be >= 0, got {self.amount_tolerance}"
            )

    def get_accuracy(
        self,
        kind: Optional[str] = None,
        strategy_name: Optional[str] = None,
        user_id: Optional[str] = None,
        window_days: Optional[int] = None,
        period_end: Optional[datetime] = None,
    ) -> AccuracyMetrics:
        """
        Accuracy of confirmed predictions in the window.

        Args:
            kind: "categorization" or "split" (default: both)
            strategy_name: Restrict to one strategy
            user_id: Restrict to one household member (split predictions)
            window_days: Lookback window (default: tracker's window)
            period_end: End of the window (default: now)
        """
        period_start, period_end = self._period(window_days, period_end)
        frame = self._confirmed_frame(period_start, period_end, kind)

        if strategy_name is not None:
            frame = frame[frame["strategy_name"] == strategy_name]
        if user_id is not None:
            frame = frame[frame["user_id"] == user_id]

        return self._metrics(frame, period_start, period_end)

    def get_accuracy_by_strategy(
        self,
        kind: str = "categorization",
        window_days: Optional[int] = None,
        period_end: Optional[datetime] = None,
    ) -> Dict[str, AccuracyMetrics]:
        """Accuracy per strategy name."""
        return self._grouped("strategy_name", kind, window_days, period_end)

    def get_accuracy_by_user(
        self,
        kind: str = "split",
        window_days: Optional[int] = None,
        period_end: Optional[datetime] = None,
    ) -> Dict[str, AccuracyMetrics]:
        """Accuracy per household member."""
        return self._grouped("user_id", kind, window_days, period_end)

    # ----------------------------
    # Internals
    # ----------------------------
    def _grouped(self, column, kind, window_days, period_end) -> Dict[str, AccuracyMetrics]:
        period_start, period_end = self._period(window_days, period_end)
        frame = self._confirmed_frame(period_start, period_end, kind)
        frame = frame[frame[column].notna()]

        return {
            str(name): self._metrics(group, period_start, period_end)
            for name, group in frame.groupby(column, sort=True)
        }

    def _period(self, window_days, period_end):
        window_days = self.window_days if window_days is None else window_days
        self._validate_window(window_days)
        period_end = period_end or self.clock()
        return period_end - timedelta(days=window_days), period_end

    def _confirmed_frame(self, period_start, period_end, kind) -> pd.DataFrame:
        entries = self.prediction_log.load_entries(period_start, period_end, kind=kind)
        rows = [
            {
                "kind": e.kind,
                "strategy_name": e.strategy_name,
                "user_id": e.user_id,
                "confidence": e.confidence,
                "correct": self._is_correct(e),
            }
            for e in entries
            if e.is_confirmed
        ]
        logger.debug(
            "Accuracy window %s to %s: %d logged, %d confirmed",
            period_start.isoformat(), period_end.isoformat(), len(entries), len(rows),
        )
        return pd.DataFrame(rows, columns=_COLUMNS)

    def _is_correct(self, entry) -> bool:
        if entry.kind == "split":
            try:
                return abs(float(entry.predicted) - float(entry.confirmed)) <= self.amount_tolerance + 1e-9
            except (TypeError, ValueError):
                return False
        return entry.predicted == entry.confirmed

    @staticmethod
    def _metrics(frame: pd.DataFrame, period_start, period_end) -> AccuracyMetrics:
        total = len(frame)
        correct = int(frame["correct"].sum()) if total else 0
        return AccuracyMetrics(
            total_predictions=total,
            correct_predictions=correct,
            accuracy_rate=correct / total if total > 0 else 0.0,
            period_start=period_start,
            period_end=period_end,
            average_confidence=round(float(frame["confidence"].mean()), 4) if total else 0.0,
        )

    @staticmethod
    def _validate_window(window_days) -> None:
        if isinstance(window_days, bool) or not isinstance(window_days, (int, float)) or window_days <= 0:
            raise InvalidConfigurationError(f"window_days must be > 0, got {window_days!r}")
