"""
Configuration module for the decision engine.

This module contains the configuration dictionaries for circuit breaking,
categorization and split prediction, plus their validators.
"""

from .engine_config import (
    HEALTH_CONFIG,
    CATEGORIZATION_CONFIG,
    SPLIT_CONFIG,
    ACCURACY_CONFIG,
    KEYWORD_STOP_WORDS,
    MERCHANT_PREFIXES,
    MERCHANT_CANONICAL_NAMES,
    get_health_config,
    get_categorization_config,
    get_split_config,
    validate_health_config,
    validate_categorization_config,
    validate_split_config,
)
from .merchant_mapping_loader import load_merchant_mapping_csv, build_merchant_mapping

__all__ = [
    "HEALTH_CONFIG",
    "CATEGORIZATION_CONFIG",
    "SPLIT_CONFIG",
    "ACCURACY_CONFIG",
    "KEYWORD_STOP_WORDS",
    "MERCHANT_PREFIXES",
    "MERCHANT_CANONICAL_NAMES",
    "get_health_config",
    "get_categorization_config",
    "get_split_config",
    "validate_health_config",
    "validate_categorization_config",
    "validate_split_config",
    "load_merchant_mapping_csv",
    "build_merchant_mapping",
]
