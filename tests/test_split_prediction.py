"""
Test suite for shared expense split prediction.

Tests cover:
- Strategy evidence gates and priority order
- Exact money reconciliation
- Equal split fallback
- Household membership edge cases
"""

import unittest
from decimal import Decimal

from decision_engine.splits.split_engine import (
    SplitPredictionEngine,
    SplitStrategy,
    SplitSuggestion,
    average_split_ratios,
    reconcile_split_amounts,
)
from decision_engine.monitoring.prediction_log import PredictionLog
from decision_engine.exceptions import InvalidConfigurationError


def _splits(count, splits, merchant="COSTCO", category="Groceries", amount=-100.0, start_day=1):
    """Build `count` past split records with identical splits."""
    return [
        {
            "merchant_name": merchant,
            "category": category,
            "amount": amount,
            "date": f"2025-02-{start_day + i:02d}",
            "splits": dict(splits),
        }
        for i in range(count)
    ]


def _total(suggestions):
    return sum((s.suggested_amount for s in suggestions), Decimal("0.00"))


class TestEqualSplit(unittest.TestCase):
    """Test the equal split fallback."""

    def setUp(self):
        self.engine = SplitPredictionEngine()

    def test_three_way_equal_split_sums_exactly(self):
        """Test that $100 split three ways sums to exactly 100.00."""
        suggestions = self.engine.predict_split(
            {"id": "t1", "amount": -100.0}, ["alice", "bob", "carol"], []
        )

        self.assertEqual(len(suggestions), 3)
        self.assertEqual(_total(suggestions), Decimal("100.00"))
        self.assertEqual(
            [s.suggested_amount for s in suggestions],
            [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")],
        )
        for suggestion in suggestions:
            self.assertEqual(suggestion.confidence, 0.5)
            self.assertEqual(suggestion.strategy_name, SplitStrategy.EQUAL_SPLIT.value)
            self.assertEqual(suggestion.suggested_percentage, 33.3)

    def test_two_way_equal_split(self):
        suggestions = self.engine.predict_split({"amount": 45.5}, ["alice", "bob"], [])

        self.assertEqual([s.suggested_amount for s in suggestions], [Decimal("22.75"), Decimal("22.75")])

    def test_single_member_returns_empty(self):
        self.assertEqual(self.engine.predict_split({"amount": -100.0}, ["alice"], []), [])

    def test_no_members_returns_empty(self):
        self.assertEqual(self.engine.predict_split({"amount": -100.0}, [], []), [])

    def test_missing_amount_returns_empty(self):
        self.assertEqual(self.engine.predict_split({"id": "t1"}, ["alice", "bob"], []), [])


class TestPatternStrategies(unittest.TestCase):
    """Test merchant, category and household pattern strategies."""

    def setUp(self):
        self.engine = SplitPredictionEngine()
        self.members = ["alice", "bob"]

    def test_merchant_pattern(self):
        """Test that 3 past splits at the merchant drive a 60/40 suggestion."""
        history = _splits(3, {"alice": -60.0, "bob": -40.0})
        transaction = {"merchant_name": "Costco", "category": "Groceries", "amount": -250.0}

        suggestions = self.engine.predict_split(transaction, self.members, history)

        self.assertEqual(suggestions[0].strategy_name, SplitStrategy.MERCHANT_PATTERN.value)
        self.assertEqual(suggestions[0].confidence, 0.9)
        self.assertEqual(suggestions[0].suggested_amount, Decimal("150.00"))
        self.assertEqual(suggestions[1].suggested_amount, Decimal("100.00"))
        self.assertEqual(suggestions[0].suggested_percentage, 60.0)
        self.assertEqual(_total(suggestions), Decimal("250.00"))

    def test_two_merchant_records_fall_to_category(self):
        """Test the category pattern when the merchant gate is not met."""
        history = (
            _splits(2, {"alice": -70.0, "bob": -30.0}, merchant="COSTCO")
            + _splits(3, {"alice": -70.0, "bob": -30.0}, merchant="SAFEWAY", start_day=10)
        )
        transaction = {"merchant_name": "COSTCO", "category": "Groceries", "amount": -100.0}

        suggestions = self.engine.predict_split(transaction, self.members, history)

        self.assertEqual(suggestions[0].strategy_name, SplitStrategy.CATEGORY_PATTERN.value)
        self.assertEqual(suggestions[0].confidence, 0.75)
        self.assertEqual(suggestions[0].suggested_amount, Decimal("70.00"))
        self.assertEqual(suggestions[1].suggested_amount, Decimal("30.00"))

    def test_household_pattern(self):
        """Test the household pattern across 10 unrelated expenses."""
        history = []
        for i in range(10):
            history += _splits(
                1, {"alice": -80.0, "bob": -20.0},
                merchant=f"SHOP {chr(65 + i)}", category=f"Cat {i}", start_day=i + 1,
            )
        transaction = {"merchant_name": "NEW SHOP", "category": "Travel", "amount": -50.0}

        suggestions = self.engine.predict_split(transaction, self.members, history)

        self.assertEqual(suggestions[0].strategy_name, SplitStrategy.HOUSEHOLD_PATTERN.value)
        self.assertEqual(suggestions[0].confidence, 0.6)
        self.assertEqual(suggestions[0].suggested_amount, Decimal("40.00"))
        self.assertEqual(suggestions[1].suggested_amount, Decimal("10.00"))

    def test_insufficient_history_falls_back_to_equal(self):
        history = _splits(2, {"alice": -90.0, "bob": -10.0})

        suggestions = self.engine.predict_split({"merchant_name": "COSTCO", "amount": -10.0}, self.members, history)

        self.assertEqual(suggestions[0].strategy_name, SplitStrategy.EQUAL_SPLIT.value)

    def test_ratios_are_renormalised(self):
        """Test that splits covering 90% of past totals are scaled to 100%."""
        history = _splits(3, {"alice": -45.0, "bob": -45.0})

        suggestions = self.engine.predict_split({"merchant_name": "COSTCO", "amount": -250.0}, self.members, history)

        self.assertEqual([s.suggested_amount for s in suggestions], [Decimal("125.00"), Decimal("125.00")])

    def test_thirds_history_reconciles(self):
        """Test that 33.33/33.33/33.34 history splits $100 to exactly 100.00."""
        history = _splits(3, {"alice": -33.33, "bob": -33.33, "carol": -33.34})

        suggestions = self.engine.predict_split(
            {"merchant_name": "COSTCO", "amount": -100.0}, ["alice", "bob", "carol"], history
        )

        self.assertEqual(suggestions[0].strategy_name, SplitStrategy.MERCHANT_PATTERN.value)
        self.assertEqual(_total(suggestions), Decimal("100.00"))

    def test_member_missing_from_pattern_gets_zero(self):
        history = _splits(3, {"alice": -50.0, "bob": -50.0})

        suggestions = self.engine.predict_split(
            {"merchant_name": "COSTCO", "amount": -80.0}, ["alice", "bob", "carol"], history
        )

        self.assertEqual(
            [s.suggested_amount for s in suggestions],
            [Decimal("40.00"), Decimal("40.00"), Decimal("0.00")],
        )

    def test_pattern_for_former_members_only_abstains(self):
        """Test that ratios summing to zero for current members use the next strategy."""
        history = _splits(3, {"dave": -50.0, "erin": -50.0})

        suggestions = self.engine.predict_split({"merchant_name": "COSTCO", "amount": -80.0}, self.members, history)

        self.assertEqual(suggestions[0].strategy_name, SplitStrategy.EQUAL_SPLIT.value)
        self.assertEqual(_total(suggestions), Decimal("80.00"))

    def test_malformed_records_are_skipped(self):
        history = _splits(3, {"alice": -60.0, "bob": -40.0}) + [
            {"merchant_name": "COSTCO", "amount": -10.0, "splits": "alice"},
            {"merchant_name": "COSTCO", "amount": None, "splits": {"alice": -10.0}},
        ]

        suggestions = self.engine.predict_split({"merchant_name": "COSTCO", "amount": -100.0}, self.members, history)

        self.assertEqual(suggestions[0].suggested_amount, Decimal("60.00"))


class TestMembership(unittest.TestCase):
    """Test household member handling."""

    def setUp(self):
        self.engine = SplitPredictionEngine()

    def test_inactive_members_excluded(self):
        members = [
            {"user_id": "alice", "active": True},
            {"user_id": "bob", "active": True},
            {"user_id": "carol", "active": False},
        ]

        suggestions = self.engine.predict_split({"amount": -60.0}, members, [])

        self.assertEqual([s.user_id for s in suggestions], ["alice", "bob"])
        self.assertEqual(_total(suggestions), Decimal("60.00"))

    def test_only_one_active_member_returns_empty(self):
        members = [{"id": "alice"}, {"id": "bob", "active": False}]

        self.assertEqual(self.engine.predict_split({"amount": -60.0}, members, []), [])

    def test_duplicate_members_counted_once(self):
        suggestions = self.engine.predict_split({"amount": -60.0}, ["alice", "bob", "alice"], [])

        self.assertEqual([s.user_id for s in suggestions], ["alice", "bob"])


class TestReconciliation(unittest.TestCase):
    """Test rounding reconciliation."""

    def _suggestion(self, user_id, amount):
        return SplitSuggestion(
            user_id=user_id,
            suggested_amount=Decimal(amount),
            suggested_percentage=0.0,
            confidence=0.5,
            reasoning="",
        )

    def test_remainder_goes_to_first_largest(self):
        suggestions = [self._suggestion(u, "33.33") for u in ("alice", "bob", "carol")]

        reconcile_split_amounts(suggestions, Decimal("100.00"))

        self.assertEqual(suggestions[0].suggested_amount, Decimal("33.34"))
        self.assertEqual(_total(suggestions), Decimal("100.00"))

    def test_negative_remainder_taken_from_largest(self):
        suggestions = [self._suggestion("alice", "10.00"), self._suggestion("bob", "50.01")]

        reconcile_split_amounts(suggestions, Decimal("60.00"))

        self.assertEqual(suggestions[1].suggested_amount, Decimal("50.00"))

    def test_exact_total_unchanged(self):
        suggestions = [self._suggestion("alice", "25.00"), self._suggestion("bob", "75.00")]

        reconcile_split_amounts(suggestions, Decimal("100.00"))

        self.assertEqual([s.suggested_amount for s in suggestions], [Decimal("25.00"), Decimal("75.00")])

    def test_average_split_ratios_skip_zero_amounts(self):
        records = [
            {"amount": -100.0, "splits": {"alice": -60.0, "bob": -40.0}},
            {"amount": 0.0, "splits": {"alice": 0.0}},
            {"amount": -50.0, "splits": {"alice": -20.0, "bob": -30.0}},
        ]

        ratios = average_split_ratios(records)

        self.assertAlmostEqual(ratios["alice"], 50.0)
        self.assertAlmostEqual(ratios["bob"], 50.0)


class TestSplitLoggingAndConfig(unittest.TestCase):

    def test_each_member_suggestion_is_logged(self):
        log = PredictionLog()
        engine = SplitPredictionEngine(prediction_log=log)

        engine.predict_split({"id": "t7", "amount": -30.0}, ["alice", "bob"], [])

        entries = log.load_entries(kind="split")
        self.assertEqual(sorted(e.user_id for e in entries), ["alice", "bob"])
        self.assertTrue(all(e.predicted == 15.0 for e in entries))
        self.assertTrue(all(e.strategy_name == "equal_split" for e in entries))

    def test_custom_gate(self):
        engine = SplitPredictionEngine(config={"strategies": {"merchant_pattern": {"min_records": 1}}})

        suggestions = engine.predict_split(
            {"merchant_name": "COSTCO", "amount": -10.0}, ["alice", "bob"],
            _splits(1, {"alice": -9.0, "bob": -1.0}),
        )

        self.assertEqual(suggestions[0].strategy_name, SplitStrategy.MERCHANT_PATTERN.value)
        self.assertEqual(suggestions[0].suggested_amount, Decimal("9.00"))

    def test_invalid_confidence_rejected(self):
        with self.assertRaises(InvalidConfigurationError):
            SplitPredictionEngine(config={"strategies": {"equal_split": {"confidence": 2.0}}})


class TestUnusableInputs(unittest.TestCase):
    """Test that unusable amounts, dates and ids never raise."""

    def setUp(self):
        self.engine = SplitPredictionEngine()

    def test_nan_amount_returns_empty(self):
        self.assertEqual(self.engine.predict_split({"amount": "nan"}, ["alice", "bob"], []), [])
        self.assertEqual(self.engine.predict_split({"amount": float("nan")}, ["alice", "bob"], []), [])

    def test_infinite_amount_returns_empty(self):
        self.assertEqual(self.engine.predict_split({"amount": float("inf")}, ["alice", "bob"], []), [])
        self.assertEqual(self.engine.predict_split({"amount": "-inf"}, ["alice", "bob"], []), [])

    def test_non_finite_split_values_are_skipped(self):
        """Test that a record with a NaN share is ignored rather than poisoning the ratios."""
        history = _splits(3, {"alice": -60.0, "bob": -40.0}) + [
            {"merchant_name": "COSTCO", "amount": -100.0, "date": "2025-03-01",
             "splits": {"alice": float("nan"), "bob": -40.0}},
            {"merchant_name": "COSTCO", "amount": float("nan"), "date": "2025-03-02",
             "splits": {"alice": -50.0, "bob": -50.0}},
        ]

        suggestions = self.engine.predict_split({"merchant_name": "COSTCO", "amount": -100.0}, ["alice", "bob"], history)

        self.assertEqual(suggestions[0].strategy_name, SplitStrategy.MERCHANT_PATTERN.value)
        self.assertEqual([s.suggested_amount for s in suggestions], [Decimal("60.00"), Decimal("40.00")])

    def test_mixed_date_offsets_in_history(self):
        history = _splits(2, {"alice": -70.0, "bob": -30.0}) + [
            {"merchant_name": "COSTCO", "amount": -100.0, "date": "2025-02-10T09:00:00+01:00",
             "splits": {"alice": -70.0, "bob": -30.0}},
        ]

        suggestions = self.engine.predict_split({"merchant_name": "COSTCO", "amount": -10.0}, ["alice", "bob"], history)

        self.assertEqual(suggestions[0].strategy_name, SplitStrategy.MERCHANT_PATTERN.value)
        self.assertEqual(suggestions[0].suggested_amount, Decimal("7.00"))

    def test_falsy_member_ids_are_kept(self):
        """Test that a user id of 0 is a real member and wins over `id`."""
        members = [{"user_id": 0, "id": "legacy-0"}, {"user_id": 1}]

        suggestions = self.engine.predict_split({"amount": -20.0}, members, [])

        self.assertEqual([s.user_id for s in suggestions], ["0", "1"])
        self.assertEqual(_total(suggestions), Decimal("20.00"))


if __name__ == "__main__":
    unittest.main()
