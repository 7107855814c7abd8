"""
Prediction Log for categorization and split predictions.

Records every prediction the engines make together with the value the user
eventually confirmed, so accuracy can be measured retrospectively.

Usage:
    log = PredictionLog()
    engine = CategorizationEngine(prediction_log=log)
    engine.predict(transaction, history)
    log.confirm(transaction["id"], "Groceries")
"""

import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class PredictionLogEntry:
    """Single prediction log entry."""
    prediction_id: str
    kind: str  # categorization, split
    subject_id: str  # Transaction id
    predicted: Any
    confidence: float
    strategy_name: str
    timestamp: datetime
    user_id: Optional[str] = None  # Split entries only
    confirmed: Any = None
    confirmed_at: Optional[datetime] = None

    @property
    def is_confirmed(self) -> bool:
        return self.confirmed_at is not None


class PredictionLog:
    """Thread-safe in-memory prediction log."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self.clock = clock or datetime.now
        self._entries: List[PredictionLogEntry] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def log_prediction(
        self,
        kind: str,
        subject_id: str,
        predicted: Any,
        confidence: float,
        strategy_name: str,
        user_id: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> PredictionLogEntry:
        """
        Log a prediction.

        Args:
            kind: "categorization" or "split"
            subject_id: Transaction identifier
            predicted: Predicted category, or predicted split amount
            confidence: Confidence of the prediction
            strategy_name: Strategy that produced it
            user_id: Household member (split predictions)
            timestamp: When the prediction was made (default: now)
        """
        entry = PredictionLogEntry(
            prediction_id=uuid.uuid4().hex,
            kind=kind,
            subject_id=subject_id,
            predicted=predicted,
            confidence=confidence,
            strategy_name=strategy_name,
            timestamp=timestamp or self.clock(),
            user_id=user_id,
        )
        with self._lock:
            self._entries.append(entry)
        return entry

    def confirm(
        self,
        subject_id: str,
        confirmed: Any,
        kind: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> int:
        """
        Record the user-confirmed value for a transaction's predictions.

        Returns:
            Number of entries updated (0 when nothing was logged for it)
        """
        now = self.clock()
        updated = 0
        with self._lock:
            for entry in self._entries:
                if entry.subject_id != subject_id:
                    continue
                if kind is not None and entry.kind != kind:
                    continue
                if user_id is not None and entry.user_id != user_id:
                    continue
                entry.confirmed = confirmed
                entry.confirmed_at = now
                updated += 1

        if not updated:
            logger.debug("No logged prediction to confirm for %s", subject_id)
        return updated

    def load_entries(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        kind: Optional[str] = None,
    ) -> List[PredictionLogEntry]:
        """
        Load entries for a date range (inclusive at both ends).

        Args:
            start_date: Earliest prediction time (default: unbounded)
            end_date: Latest prediction time (default: unbounded)
            kind: Restrict to one prediction kind
        """
        with self._lock:
            entries = list(self._entries)
        return [
            e for e in entries
            if (start_date is None or e.timestamp >= start_date)
            and (end_date is None or e.timestamp <= end_date)
            and (kind is None or e.kind == kind)
        ]
