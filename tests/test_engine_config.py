"""
Test suite for engine configuration and merchant mapping loading.
"""

import os
import tempfile
import unittest

from decision_engine.config import (
    CATEGORIZATION_CONFIG,
    HEALTH_CONFIG,
    build_merchant_mapping,
    get_categorization_config,
    get_health_config,
    get_split_config,
    load_merchant_mapping_csv,
)
from decision_engine.exceptions import InvalidConfigurationError


class TestConfigOverrides(unittest.TestCase):
    """Test merging overrides into the default configuration."""

    def test_defaults(self):
        config = get_health_config()

        self.assertEqual(config["failure_threshold"], 5)
        self.assertEqual(config["timeout_seconds"], 60)
        self.assertEqual(config["monitoring_window_seconds"], 300)

    def test_override_does_not_mutate_defaults(self):
        config = get_categorization_config({"strategies": {"keyword": {"min_overlap": 0.5}}})

        self.assertEqual(config["strategies"]["keyword"]["min_overlap"], 0.5)
        self.assertEqual(config["strategies"]["keyword"]["confidence"], 0.7)
        self.assertEqual(CATEGORIZATION_CONFIG["strategies"]["keyword"]["min_overlap"], 0.3)
        self.assertEqual(HEALTH_CONFIG["failure_threshold"], 5)

    def test_unknown_nested_key_rejected(self):
        with self.assertRaises(InvalidConfigurationError):
            get_split_config({"strategies": {"vendor_pattern": {"min_records": 2}}})

    def test_invalid_error_is_value_error(self):
        """Test that configuration errors can be caught as ValueError."""
        with self.assertRaises(ValueError):
            get_health_config({"failure_rate_threshold": 1.5})


class TestConfigValidation(unittest.TestCase):
    """Test fail-fast validation of thresholds."""

    def test_non_integer_threshold(self):
        with self.assertRaises(InvalidConfigurationError):
            get_health_config({"failure_threshold": 2.5})

    def test_boolean_is_not_a_count(self):
        with self.assertRaises(InvalidConfigurationError):
            get_split_config({"min_members": True})

    def test_negative_confidence(self):
        with self.assertRaises(InvalidConfigurationError):
            get_categorization_config({"strategies": {"fuzzy_merchant": {"confidence": -0.1}}})

    def test_zero_z_score(self):
        with self.assertRaises(InvalidConfigurationError):
            get_categorization_config({"strategies": {"amount_pattern": {"max_z_score": 0}}})

    def test_zero_timeout_allowed(self):
        self.assertEqual(get_health_config({"timeout_seconds": 0})["timeout_seconds"], 0)


class TestMerchantMappingLoader(unittest.TestCase):
    """Test loading merchant mappings from CSV."""

    def setUp(self):
        handle, self.path = tempfile.mkstemp(suffix=".csv")
        with os.fdopen(handle, "w", encoding="utf-8") as f:
            f.write("pattern,canonical\n")
            f.write("tesco stores,Tesco\n")
            f.write("TESCO EXPRESS,TESCO\n")
            f.write(",MISSING\n")

    def tearDown(self):
        os.remove(self.path)

    def test_load_mapping(self):
        mapping = load_merchant_mapping_csv(self.path)

        self.assertEqual(mapping, {"TESCO STORES": "TESCO", "TESCO EXPRESS": "TESCO"})

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_merchant_mapping_csv(self.path + ".missing")

    def test_build_mapping_merges_builtins(self):
        mapping = build_merchant_mapping(load_merchant_mapping_csv(self.path))

        self.assertEqual(mapping["TESCO STORES"], "TESCO")
        self.assertEqual(mapping["AMZN MKTP"], "AMAZON")

    def test_extra_entries_override_builtins(self):
        mapping = build_merchant_mapping({"sbux": "Starbucks Coffee"})

        self.assertEqual(mapping["SBUX"], "STARBUCKS COFFEE")


if __name__ == "__main__":
    unittest.main()
