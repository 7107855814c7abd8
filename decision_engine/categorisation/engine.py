"""
Transaction Categorization Engine.
Predicts a transaction's category from the household's own categorised history.

Strategies run in a fixed priority order and each needs a minimum amount of
evidence before it will predict:
    1. exact_merchant  - same normalised merchant, confidence grows with repetition
    2. fuzzy_merchant  - substring-related merchant names
    3. keyword         - description keyword overlap with a category
    4. amount_pattern  - amount within one standard deviation of a category
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from ..config.engine_config import get_categorization_config
from ..config.merchant_mapping_loader import build_merchant_mapping
from ..pipeline.confidence import merchant_confidence, to_result
from ..pipeline.strategy_pipeline import (
    PredictionCandidate,
    PredictionResult,
    Strategy,
    StrategyPipeline,
)
from .pattern_matching import (
    best_similar_merchant,
    find_substring_merchants,
    keyword_overlap,
    merchant_similarity,
    most_frequent_category,
)
from .preprocess import (
    extract_keywords,
    get_amount,
    get_description,
    get_merchant,
    normalize_merchant,
    same_direction,
    sort_most_recent_first,
)

logger = logging.getLogger(__name__)


class CategorizationStrategy(Enum):
    """Categorization strategies, in priority order."""
    EXACT_MERCHANT = "exact_merchant"
    FUZZY_MERCHANT = "fuzzy_merchant"
    KEYWORD = "keyword"
    AMOUNT_PATTERN = "amount_pattern"


@dataclass
class CategorizationContext:
    """Everything the strategies need for one transaction."""
    transaction: Dict
    merchant: str  # Normalised
    description: str
    amount: Optional[float]
    history: List[Dict] = field(default_factory=list)  # Same direction, newest first


@dataclass
class AutoCategorizationResult:
    """Outcome of auto_categorize."""
    categorized: bool
    category: Optional[str] = None
    confidence: Optional[float] = None
    prediction: Optional[PredictionResult] = None


class CategorizationEngine:
    """Predicts transaction categories from historical categorisations."""

    def __init__(
        self,
        config: Optional[Dict] = None,
        category_writer: Optional[Callable[[Dict, PredictionResult], None]] = None,
        prediction_log=None,
        merchant_mapping: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Overrides for CATEGORIZATION_CONFIG
            category_writer: Called with (transaction, prediction) when a
                prediction is auto-applied
            prediction_log: Optional PredictionLog that records every prediction
            merchant_mapping: Extra merchant variant -> canonical name entries

        Raises:
            InvalidConfigurationError: If a threshold is out of range
        """
        self.config = get_categorization_config(config)
        self.strategy_config = self.config["strategies"]
        self.auto_apply_threshold = self.config["auto_apply_threshold"]
        self.category_writer = category_writer
        self.prediction_log = prediction_log
        self.merchant_patterns = sorted(
            build_merchant_mapping(merchant_mapping).items(),
            key=lambda x: len(x[0]),
            reverse=True
        )

        evaluators = {
            CategorizationStrategy.EXACT_MERCHANT: self._exact_merchant_match,
            CategorizationStrategy.FUZZY_MERCHANT: self._fuzzy_merchant_match,
            CategorizationStrategy.KEYWORD: self._keyword_match,
            CategorizationStrategy.AMOUNT_PATTERN: self._amount_pattern_match,
        }
        self.pipeline = StrategyPipeline(
            [Strategy(variant.value, evaluators[variant]) for variant in CategorizationStrategy]
        )

    def predict(self, transaction: Dict, history: List[Dict]) -> Optional[PredictionResult]:
        """
        Predict the category of a transaction.

        Args:
            transaction: Transaction dict (description/name, merchant_name, amount)
            history: Historical transaction dicts carrying a `category`

        Returns:
            PredictionResult, or None when no strategy has enough evidence
        """
        context = self._build_context(transaction, history)
        result = to_result(self.pipeline.run(context), self.auto_apply_threshold)

        if result is None:
            logger.debug("No confident category for %r", context.description or context.merchant)
            return None

        logger.debug(
            "Predicted %s for %r via %s (confidence %.2f)",
            result.payload, context.description or context.merchant,
            result.strategy_name, result.confidence,
        )
        self._log_prediction(transaction, result)
        return result

    def auto_categorize(self, transaction: Dict, history: List[Dict]) -> AutoCategorizationResult:
        """
        Predict and, when confidence reaches the auto-apply threshold, write
        the category through the configured writer.

        Lower-confidence predictions are returned for user confirmation.
        """
        prediction = self.predict(transaction, history)
        if prediction is None:
            return AutoCategorizationResult(categorized=False)

        if not prediction.auto_apply:
            return AutoCategorizationResult(
                categorized=False,
                category=prediction.payload,
                confidence=prediction.confidence,
                prediction=prediction,
            )

        if self.category_writer is not None:
            self.category_writer(transaction, prediction)

        logger.info(
            "Auto-categorized transaction %s as %s (confidence: %.2f)",
            transaction.get("id", "<no id>"), prediction.payload, prediction.confidence,
        )
        return AutoCategorizationResult(
            categorized=True,
            category=prediction.payload,
            confidence=prediction.confidence,
            prediction=prediction,
        )

    def predict_batch(
        self,
        transactions: List[Dict],
        history: List[Dict],
    ) -> List[Tuple[Dict, Optional[PredictionResult]]]:
        """Predict categories for a list of transactions against one history."""
        return [(txn, self.predict(txn, history)) for txn in transactions]

    # ----------------------------
    # Strategies
    # ----------------------------
    def _exact_merchant_match(self, ctx: CategorizationContext) -> Optional[PredictionCandidate]:
        settings = self.strategy_config["exact_merchant"]
        if not ctx.merchant:
            return None

        matches = [r for r in ctx.history if r["merchant"] == ctx.merchant][:settings["max_history"]]
        top = most_frequent_category(matches)
        if top is None or top[1] < settings["min_occurrences"]:
            return None

        category, count = top
        return PredictionCandidate(
            strategy_name=CategorizationStrategy.EXACT_MERCHANT.value,
            confidence=merchant_confidence(
                count,
                min_occurrences=settings["min_occurrences"],
                base=settings["base_confidence"],
                step=settings["confidence_step"],
                cap=settings["max_confidence"],
            ),
            payload=category,
            reasoning=f"{ctx.merchant} consistently categorized based on {count} past transactions",
        )

    def _fuzzy_merchant_match(self, ctx: CategorizationContext) -> Optional[PredictionCandidate]:
        settings = self.strategy_config["fuzzy_merchant"]
        if not ctx.merchant:
            return None

        known = []
        for record in ctx.history:
            if record["merchant"] and record["merchant"] not in known:
                known.append(record["merchant"])
                if len(known) >= settings["max_merchants"]:
                    break

        best = best_similar_merchant(ctx.merchant, find_substring_merchants(ctx.merchant, known))
        if best is None:
            return None

        top = most_frequent_category([r for r in ctx.history if r["merchant"] == best])
        if top is None:
            return None

        similarity = merchant_similarity(ctx.merchant, best)
        return PredictionCandidate(
            strategy_name=CategorizationStrategy.FUZZY_MERCHANT.value,
            confidence=settings["confidence"],
            payload=top[0],
            reasoning=f'Similar to "{best}" ({similarity * 100:.0f}% match)',
        )

    def _keyword_match(self, ctx: CategorizationContext) -> Optional[PredictionCandidate]:
        settings = self.strategy_config["keyword"]
        keywords = set(self._keywords(ctx.description))
        if not keywords:
            return None

        pooled: Dict[str, set] = {}
        seen: Dict[str, int] = {}
        for record in ctx.history:
            category = record["category"]
            if seen.get(category, 0) >= settings["max_history_per_category"]:
                continue
            seen[category] = seen.get(category, 0) + 1
            pooled.setdefault(category, set()).update(self._keywords(record["description"]))

        best_category = None
        best_score = 0.0
        for category, category_keywords in pooled.items():
            score = keyword_overlap(keywords, category_keywords)
            if score > best_score:
                best_category, best_score = category, score

        if best_category is None or best_score < settings["min_overlap"]:
            return None

        return PredictionCandidate(
            strategy_name=CategorizationStrategy.KEYWORD.value,
            confidence=settings["confidence"],
            payload=best_category,
            reasoning=f"Description matches pattern for {best_category} ({best_score * 100:.0f}% keyword overlap)",
        )

    def _amount_pattern_match(self, ctx: CategorizationContext) -> Optional[PredictionCandidate]:
        settings = self.strategy_config["amount_pattern"]
        if ctx.amount is None:
            return None
        absolute_amount = abs(ctx.amount)

        by_category: Dict[str, List[float]] = {}
        for record in ctx.history:
            amounts = by_category.setdefault(record["category"], [])
            if len(amounts) < settings["max_history_per_category"]:
                amounts.append(abs(record["amount"]))

        best = None
        for category, amounts in by_category.items():
            if len(amounts) < settings["min_occurrences"]:
                continue
            mean = float(np.mean(amounts))
            std_dev = float(np.std(amounts))
            if std_dev == 0:
                # Identical amounts give no spread to compare against
                logger.debug("Skipping %s amount pattern: zero standard deviation", category)
                continue
            z_score = abs((absolute_amount - mean) / std_dev)
            if z_score < settings["max_z_score"] and (best is None or z_score < best[1]):
                best = (category, z_score, mean)

        if best is None:
            return None

        category, z_score, mean = best
        return PredictionCandidate(
            strategy_name=CategorizationStrategy.AMOUNT_PATTERN.value,
            confidence=settings["confidence"],
            payload=category,
            reasoning=(
                f"Amount ({absolute_amount:.2f}) common for {category} "
                f"(average {mean:.2f}, z-score {z_score:.2f})"
            ),
        )

    # ----------------------------
    # Helpers
    # ----------------------------
    def _keywords(self, description: str) -> List[str]:
        settings = self.strategy_config["keyword"]
        return extract_keywords(
            description,
            max_keywords=settings["max_keywords"],
            min_token_length=settings["min_token_length"],
        )

    def _build_context(self, transaction: Dict, history: List[Dict]) -> CategorizationContext:
        """Narrow history to categorised records flowing the same direction."""
        amount = get_amount(transaction)
        rows = []
        for record in sort_most_recent_first(history):
            category = record.get("category")
            record_amount = get_amount(record)
            if not category or record_amount is None:
                continue
            # Income and expenses at one merchant can carry different categories
            if amount is not None and not same_direction(amount, record_amount):
                continue
            rows.append({
                "category": category,
                "merchant": normalize_merchant(get_merchant(record), self.merchant_patterns),
                "description": get_description(record),
                "amount": record_amount,
            })

        return CategorizationContext(
            transaction=transaction,
            merchant=normalize_merchant(get_merchant(transaction), self.merchant_patterns),
            description=get_description(transaction),
            amount=amount,
            history=rows,
        )

    def _log_prediction(self, transaction: Dict, result: PredictionResult) -> None:
        if self.prediction_log is None:
            return
        subject_id = transaction.get("id")
        if subject_id is None:
            logger.debug("Not logging prediction for transaction without id")
            return
        self.prediction_log.log_prediction(
            kind="categorization",
            subject_id=str(subject_id),
            predicted=result.payload,
            confidence=result.confidence,
            strategy_name=result.strategy_name,
        )
