"""
Categorisation Module for the decision engine.

Orchestrates transaction categorization through:
- Preprocessing (merchant normalization, keyword extraction)
- Pattern matching (frequency, substring and keyword overlap)
- The ordered strategy pipeline in CategorizationEngine
"""

from .engine import (
    CategorizationEngine,
    CategorizationStrategy,
    CategorizationContext,
    AutoCategorizationResult,
)
from .preprocess import (
    normalize_text,
    normalize_merchant,
    extract_keywords,
    MERCHANT_PATTERNS_SORTED,
)
from .pattern_matching import (
    most_frequent_category,
    merchant_similarity,
    find_substring_merchants,
    best_similar_merchant,
    keyword_overlap,
)

__all__ = [
    # Main engine
    "CategorizationEngine",
    "CategorizationStrategy",
    "CategorizationContext",
    "AutoCategorizationResult",
    # Preprocessing utilities
    "normalize_text",
    "normalize_merchant",
    "extract_keywords",
    "MERCHANT_PATTERNS_SORTED",
    # Pattern matching utilities
    "most_frequent_category",
    "merchant_similarity",
    "find_substring_merchants",
    "best_similar_merchant",
    "keyword_overlap",
]
