"""
Engine configuration for the decision core.
Contains circuit breaker thresholds, strategy evidence gates and confidences.
"""

import copy
from typing import Dict, Optional

from ..exceptions import InvalidConfigurationError


# Circuit breaker configuration (per HealthTracker instance)
HEALTH_CONFIG = {
    "failure_threshold": 5,  # Failures in window before the circuit can open
    "success_threshold": 2,  # Must stay positive
    "timeout_seconds": 60,  # Open -> half-open cooldown
    "monitoring_window_seconds": 300,  # 5 minute rolling window
    "failure_rate_threshold": 0.5,  # Failure rate must be strictly above this
    "default_region": "US",
}

# Categorization strategies, in priority order
CATEGORIZATION_CONFIG = {
    "auto_apply_threshold": 0.9,
    "strategies": {
        "exact_merchant": {
            "min_occurrences": 3,
            "base_confidence": 0.7,
            "confidence_step": 0.05,
            "max_confidence": 0.95,
            "max_history": 50,
        },
        "fuzzy_merchant": {
            "confidence": 0.7,
            "max_merchants": 500,
        },
        "keyword": {
            "confidence": 0.7,
            "min_overlap": 0.3,  # Intersection over current keyword set
            "max_keywords": 5,
            "min_token_length": 3,
            "max_history_per_category": 100,
        },
        "amount_pattern": {
            "confidence": 0.5,
            "min_occurrences": 5,
            "max_z_score": 1.0,
            "max_history_per_category": 50,
        },
    },
}

# Split prediction strategies, in priority order
SPLIT_CONFIG = {
    "strategies": {
        "merchant_pattern": {
            "min_records": 3,
            "confidence": 0.9,
            "max_history": 20,
        },
        "category_pattern": {
            "min_records": 5,
            "confidence": 0.75,
            "max_history": 30,
        },
        "household_pattern": {
            "min_records": 10,
            "confidence": 0.6,
            "max_history": 50,
        },
        "equal_split": {
            "confidence": 0.5,
        },
    },
    "min_members": 2,
}

# Retrospective accuracy reporting
ACCURACY_CONFIG = {
    "window_days": 90,
    "amount_tolerance": 0.01,  # Split amounts within a cent count as correct
}

# Words dropped before keyword overlap scoring
KEYWORD_STOP_WORDS = frozenset([
    "the", "a", "an", "and", "or", "but", "in", "on",
    "at", "to", "for", "of", "with", "by",
])

# Payment processor prefixes stripped before merchant matching.
# Value replaces the prefix ("" drops it).
MERCHANT_PREFIXES = {
    "POS DEBIT": "",
    "POS PURCHASE": "",
    "DEBIT CARD PURCHASE": "",
    "CHECK CARD PURCHASE": "",
    "CARD PAYMENT TO": "",
    "VISA PURCHASE": "",
    "MASTERCARD PURCHASE": "",
    "RECURRING PAYMENT": "",
    "DIRECT DEBIT": "",
    "ACH DEBIT": "",
    "ACH CREDIT": "",
    "PAYPAL *": "PAYPAL ",
    "SQ *": "",
    "TST*": "",
}

# Merchant Canonical Name Mappings
# Maps variations of merchant names to a single canonical identifier
MERCHANT_CANONICAL_NAMES = {
    "AMZN MKTP": "AMAZON",
    "AMAZON.COM": "AMAZON",
    "AMAZON MKTPLACE": "AMAZON",
    "AMZN DIGITAL": "AMAZON",
    "AMAZON PRIME": "AMAZON PRIME",
    "WAL-MART": "WALMART",
    "WMT": "WALMART",
    "MCDONALD'S": "MCDONALDS",
    "SBUX": "STARBUCKS",
    "UBER EATS": "UBER EATS",
    "UBER *EATS": "UBER EATS",
    "UBER TRIP": "UBER",
    "LYFT *RIDE": "LYFT",
    "NETFLIX.COM": "NETFLIX",
    "SPOTIFY USA": "SPOTIFY",
    "DISNEY PLUS": "DISNEY+",
    "DISNEYPLUS": "DISNEY+",
    "APPLE.COM/BILL": "APPLE",
    "GOOGLE *": "GOOGLE",
    "MSFT *": "MICROSOFT",
    "ZOOM.US": "ZOOM",
}


def get_health_config(overrides: Optional[Dict] = None) -> Dict:
    """Return a validated copy of HEALTH_CONFIG with overrides applied."""
    config = _merge(HEALTH_CONFIG, overrides)
    validate_health_config(config)
    return config


def get_categorization_config(overrides: Optional[Dict] = None) -> Dict:
    """Return a validated copy of CATEGORIZATION_CONFIG with overrides applied."""
    config = _merge(CATEGORIZATION_CONFIG, overrides)
    validate_categorization_config(config)
    return config


def get_split_config(overrides: Optional[Dict] = None) -> Dict:
    """Return a validated copy of SPLIT_CONFIG with overrides applied."""
    config = _merge(SPLIT_CONFIG, overrides)
    validate_split_config(config)
    return config


def validate_health_config(config: Dict) -> None:
    """
    Validate circuit breaker settings.

    Raises:
        InvalidConfigurationError: If any threshold is out of range
    """
    _require_positive_int(config, "failure_threshold")
    _require_positive_int(config, "success_threshold")
    if config["timeout_seconds"] < 0:
        raise InvalidConfigurationError(
            f"timeout_seconds must be >= 0, got {config['timeout_seconds']}"
        )
    if config["monitoring_window_seconds"] <= 0:
        raise InvalidConfigurationError(
            f"monitoring_window_seconds must be > 0, got {config['monitoring_window_seconds']}"
        )
    _require_unit_interval(config["failure_rate_threshold"], "failure_rate_threshold")


def validate_categorization_config(config: Dict) -> None:
    """
    Validate categorization thresholds and confidences.

    Raises:
        InvalidConfigurationError: If any value is out of range
    """
    _require_unit_interval(config["auto_apply_threshold"], "auto_apply_threshold")
    strategies = config["strategies"]

    exact = strategies["exact_merchant"]
    _require_positive_int(exact, "min_occurrences")
    _require_positive_int(exact, "max_history")
    for key in ("base_confidence", "confidence_step", "max_confidence"):
        _require_unit_interval(exact[key], f"exact_merchant.{key}")

    _require_unit_interval(strategies["fuzzy_merchant"]["confidence"], "fuzzy_merchant.confidence")
    _require_positive_int(strategies["fuzzy_merchant"], "max_merchants")

    keyword = strategies["keyword"]
    _require_unit_interval(keyword["confidence"], "keyword.confidence")
    _require_unit_interval(keyword["min_overlap"], "keyword.min_overlap")
    _require_positive_int(keyword, "max_keywords")
    _require_positive_int(keyword, "min_token_length")
    _require_positive_int(keyword, "max_history_per_category")

    amount = strategies["amount_pattern"]
    _require_unit_interval(amount["confidence"], "amount_pattern.confidence")
    _require_positive_int(amount, "min_occurrences")
    _require_positive_int(amount, "max_history_per_category")
    if amount["max_z_score"] <= 0:
        raise InvalidConfigurationError(
            f"amount_pattern.max_z_score must be > 0, got {amount['max_z_score']}"
        )


def validate_split_config(config: Dict) -> None:
    """
    Validate split prediction gates and confidences.

    Raises:
        InvalidConfigurationError: If any value is out of range
    """
    _require_positive_int(config, "min_members")
    for name, settings in config["strategies"].items():
        _require_unit_interval(settings["confidence"], f"{name}.confidence")
        if "min_records" in settings:
            _require_positive_int(settings, "min_records")
        if "max_history" in settings:
            _require_positive_int(settings, "max_history")


def _merge(defaults: Dict, overrides: Optional[Dict]) -> Dict:
    """Deep-merge overrides into a copy of defaults, rejecting unknown keys."""
    merged = copy.deepcopy(defaults)
    for key, value in (overrides or {}).items():
        if key not in merged:
            raise InvalidConfigurationError(f"Unknown configuration key: {key}")
        if isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _require_positive_int(config: Dict, key: str) -> None:
    value = config[key]
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidConfigurationError(f"{key} must be a positive integer, got {value!r}")


def _require_unit_interval(value: float, name: str) -> None:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or not 0.0 <= value <= 1.0:
        raise InvalidConfigurationError(f"{name} must be within [0, 1], got {value!r}")
