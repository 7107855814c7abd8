"""
Split Prediction Engine for shared household expenses.

Suggests how a transaction should be divided between household members,
learning from how similar expenses were split before. Strategies in priority
order:
    1. merchant_pattern   (>= 3 past splits at the merchant, confidence 0.90)
    2. category_pattern   (>= 5 past splits in the category, confidence 0.75)
    3. household_pattern  (>= 10 past splits overall, confidence 0.60)
    4. equal_split        (always available, confidence 0.50)
"""

import logging
import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from enum import Enum
from typing import Dict, List, Optional, Union

from ..categorisation.preprocess import (
    get_amount,
    get_merchant,
    normalize_merchant,
    sort_most_recent_first,
)
from ..config.engine_config import get_split_config
from ..config.merchant_mapping_loader import build_merchant_mapping
from ..pipeline.strategy_pipeline import PredictionCandidate, Strategy, StrategyPipeline

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

Member = Union[str, Dict]


class SplitStrategy(Enum):
    """Split prediction strategies, in priority order."""
    MERCHANT_PATTERN = "merchant_pattern"
    CATEGORY_PATTERN = "category_pattern"
    HOUSEHOLD_PATTERN = "household_pattern"
    EQUAL_SPLIT = "equal_split"


@dataclass
class SplitSuggestion:
    """Suggested share of a transaction for one household member."""
    user_id: str
    suggested_amount: Decimal  # 2dp
    suggested_percentage: float  # 1dp, display only
    confidence: float
    reasoning: str
    strategy_name: str = ""


@dataclass
class SplitContext:
    """Inputs shared by every split strategy."""
    transaction: Dict
    member_ids: List[str]
    merchant: str
    category: Optional[str]
    total: Decimal
    history: List[Dict]  # Newest first


def reconcile_split_amounts(suggestions: List[SplitSuggestion], total: Decimal) -> None:
    """
    Make rounded suggestions sum exactly to `total`.

    Any remainder goes to the largest suggestion (first one on ties).
    """
    if not suggestions:
        return
    difference = total - sum((s.suggested_amount for s in suggestions), Decimal("0.00"))
    if difference == 0:
        return

    largest = suggestions[0]
    for suggestion in suggestions[1:]:
        if suggestion.suggested_amount > largest.suggested_amount:
            largest = suggestion
    largest.suggested_amount = (largest.suggested_amount + difference).quantize(CENT)
    logger.debug("Applied rounding correction of %s to %s", difference, largest.user_id)


def average_split_ratios(records: List[Dict]) -> Dict[str, float]:
    """
    Average percentage of the transaction each user paid across records.

    Records with a zero amount are skipped.
    """
    totals: Dict[str, float] = {}
    counts: Dict[str, int] = {}
    for record in records:
        record_amount = abs(record["amount"])
        if record_amount == 0:
            continue
        for user_id, split_amount in record["splits"].items():
            percentage = abs(split_amount) / record_amount * 100
            totals[user_id] = totals.get(user_id, 0.0) + percentage
            counts[user_id] = counts.get(user_id, 0) + 1

    return {user_id: totals[user_id] / counts[user_id] for user_id in totals}


class SplitPredictionEngine:
    """Predicts expense splits from historical household split patterns."""

    def __init__(
        self,
        config: Optional[Dict] = None,
        prediction_log=None,
        merchant_mapping: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Overrides for SPLIT_CONFIG
            prediction_log: Optional PredictionLog recording each member's suggestion
            merchant_mapping: Extra merchant variant -> canonical name entries

        Raises:
            InvalidConfigurationError: If a gate or confidence is out of range
        """
        self.config = get_split_config(config)
        self.strategy_config = self.config["strategies"]
        self.min_members = self.config["min_members"]
        self.prediction_log = prediction_log
        self.merchant_patterns = sorted(
            build_merchant_mapping(merchant_mapping).items(),
            key=lambda x: len(x[0]),
            reverse=True
        )

        self.pipeline = StrategyPipeline(
            [
                Strategy(SplitStrategy.MERCHANT_PATTERN.value, self._merchant_pattern),
                Strategy(SplitStrategy.CATEGORY_PATTERN.value, self._category_pattern),
                Strategy(SplitStrategy.HOUSEHOLD_PATTERN.value, self._household_pattern),
            ],
            fallback=Strategy(SplitStrategy.EQUAL_SPLIT.value, self._equal_split),
        )

    def predict_split(
        self,
        transaction: Dict,
        household_members: List[Member],
        history: List[Dict],
    ) -> List[SplitSuggestion]:
        """
        Suggest split amounts for a transaction.

        Args:
            transaction: Transaction dict (amount, merchant_name, category, id)
            household_members: User ids, or member dicts with `user_id`/`id`
                and an optional `active` flag
            history: Past split records, each with `amount` and
                `splits` ({user_id: amount})

        Returns:
            One SplitSuggestion per active member, or [] when there is
            nothing to split
        """
        member_ids = self._active_member_ids(household_members)
        if len(member_ids) < self.min_members:
            return []

        amount = get_amount(transaction)
        if amount is None:
            logger.debug("Cannot split transaction %s without an amount", transaction.get("id"))
            return []

        try:
            total = Decimal(str(abs(amount))).quantize(CENT, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            logger.debug("Cannot split transaction %s with amount %r", transaction.get("id"), amount)
            return []

        context = SplitContext(
            transaction=transaction,
            member_ids=member_ids,
            merchant=normalize_merchant(get_merchant(transaction), self.merchant_patterns),
            category=transaction.get("category"),
            total=total,
            history=self._usable_history(history),
        )

        candidate = self.pipeline.run(context)
        suggestions = candidate.payload if candidate is not None else []
        if candidate is not None:
            logger.debug(
                "Split for %s via %s (confidence %.2f)",
                transaction.get("id", "<no id>"), candidate.strategy_name, candidate.confidence,
            )
        self._log_suggestions(transaction, suggestions)
        return suggestions

    # ----------------------------
    # Strategies
    # ----------------------------
    def _merchant_pattern(self, ctx: SplitContext) -> Optional[PredictionCandidate]:
        if not ctx.merchant:
            return None
        records = [r for r in ctx.history if r["merchant"] == ctx.merchant]
        return self._pattern_candidate(
            SplitStrategy.MERCHANT_PATTERN, ctx, records,
            lambda count: f"Based on {count} past transactions at {ctx.merchant}",
        )

    def _category_pattern(self, ctx: SplitContext) -> Optional[PredictionCandidate]:
        if not ctx.category:
            return None
        records = [r for r in ctx.history if r["category"] == ctx.category]
        return self._pattern_candidate(
            SplitStrategy.CATEGORY_PATTERN, ctx, records,
            lambda count: f"Based on {count} past {ctx.category} expenses",
        )

    def _household_pattern(self, ctx: SplitContext) -> Optional[PredictionCandidate]:
        return self._pattern_candidate(
            SplitStrategy.HOUSEHOLD_PATTERN, ctx, ctx.history,
            lambda count: f"Based on {count} overall household expenses",
        )

    def _equal_split(self, ctx: SplitContext) -> Optional[PredictionCandidate]:
        settings = self.strategy_config[SplitStrategy.EQUAL_SPLIT.value]
        reasoning = "Equal split (no historical pattern found)"
        suggestions = self._build_suggestions(
            {user_id: 1.0 for user_id in ctx.member_ids},
            ctx,
            settings["confidence"],
            reasoning,
            SplitStrategy.EQUAL_SPLIT.value,
        )
        return PredictionCandidate(
            strategy_name=SplitStrategy.EQUAL_SPLIT.value,
            confidence=settings["confidence"],
            payload=suggestions,
            reasoning=reasoning,
        )

    # ----------------------------
    # Helpers
    # ----------------------------
    def _pattern_candidate(self, variant: SplitStrategy, ctx: SplitContext, records, describe):
        settings = self.strategy_config[variant.value]
        records = records[:settings["max_history"]]
        if len(records) < settings["min_records"]:
            return None

        reasoning = describe(len(records))
        suggestions = self._build_suggestions(
            average_split_ratios(records), ctx, settings["confidence"], reasoning, variant.value
        )
        if suggestions is None:
            return None

        return PredictionCandidate(
            strategy_name=variant.value,
            confidence=settings["confidence"],
            payload=suggestions,
            reasoning=reasoning,
        )

    def _build_suggestions(
        self,
        ratios: Dict[str, float],
        ctx: SplitContext,
        confidence: float,
        reasoning: str,
        strategy_name: str,
    ) -> Optional[List[SplitSuggestion]]:
        """
        Turn per-user ratios into reconciled suggestions for current members.

        Ratios are renormalised over the members; a zero sum returns None.
        """
        member_ratios = [(user_id, max(ratios.get(user_id, 0.0), 0.0)) for user_id in ctx.member_ids]
        ratio_sum = sum(ratio for _, ratio in member_ratios)
        if ratio_sum <= 0:
            logger.debug("Split ratios for current members sum to zero, abstaining")
            return None

        suggestions = []
        for user_id, ratio in member_ratios:
            share = ratio / ratio_sum
            amount = (ctx.total * Decimal(str(share))).quantize(CENT, rounding=ROUND_HALF_UP)
            suggestions.append(SplitSuggestion(
                user_id=user_id,
                suggested_amount=amount,
                suggested_percentage=round(share * 100, 1),
                confidence=confidence,
                reasoning=reasoning,
                strategy_name=strategy_name,
            ))

        reconcile_split_amounts(suggestions, ctx.total)
        return suggestions

    def _usable_history(self, history: List[Dict]) -> List[Dict]:
        rows = []
        for record in sort_most_recent_first(history):
            amount = get_amount(record)
            splits = record.get("splits")
            if amount is None or not splits:
                continue
            try:
                splits = {str(user_id): float(value) for user_id, value in splits.items()}
            except (AttributeError, TypeError, ValueError):
                logger.debug("Skipping split record with malformed splits: %r", splits)
                continue
            if not all(math.isfinite(value) for value in splits.values()):
                logger.debug("Skipping split record with non-finite splits: %r", splits)
                continue
            rows.append({
                "merchant": normalize_merchant(get_merchant(record), self.merchant_patterns),
                "category": record.get("category"),
                "amount": amount,
                "splits": splits,
            })
        return rows

    @staticmethod
    def _active_member_ids(members: List[Member]) -> List[str]:
        ids = []
        for member in members:
            if isinstance(member, dict):
                if not member.get("active", True):
                    continue
                user_id = member.get("user_id")
                if user_id is None:
                    user_id = member.get("id")
            else:
                user_id = member
            if user_id is not None and str(user_id) not in ids:
                ids.append(str(user_id))
        return ids

    def _log_suggestions(self, transaction: Dict, suggestions: List[SplitSuggestion]) -> None:
        if self.prediction_log is None or not suggestions:
            return
        subject_id = transaction.get("id")
        if subject_id is None:
            return
        for suggestion in suggestions:
            self.prediction_log.log_prediction(
                kind="split",
                subject_id=str(subject_id),
                predicted=float(suggestion.suggested_amount),
                confidence=suggestion.confidence,
                strategy_name=suggestion.strategy_name,
                user_id=suggestion.user_id,
            )
