"""
Generic Pattern Matching for Transaction Categorization.

Provides reusable frequency, substring and keyword-overlap matching over
historical transactions.
"""

from collections import Counter
from typing import Dict, Iterable, List, Optional, Set, Tuple

from rapidfuzz import fuzz


def most_frequent_category(records: List[Dict]) -> Optional[Tuple[str, int]]:
    """
    Find the most common category among records ordered newest first.

    Ties on count go to the category seen most recently.

    Returns:
        Tuple of (category, count) or None when no record carries a category
    """
    counts: Counter = Counter()
    first_seen: Dict[str, int] = {}
    for idx, record in enumerate(records):
        category = record.get("category")
        if not category:
            continue
        counts[category] += 1
        first_seen.setdefault(category, idx)

    if not counts:
        return None

    category = max(counts, key=lambda c: (counts[c], -first_seen[c]))
    return category, counts[category]


def merchant_similarity(first: str, second: str) -> float:
    """
    Similarity between two merchant names in [0, 1].

    Example:
        >>> merchant_similarity("STARBUCKS", "STARBUCKS COFFEE")
        0.72
    """
    if not first or not second:
        return 0.0
    return fuzz.ratio(first.lower(), second.lower()) / 100.0


def find_substring_merchants(merchant: str, known_merchants: Iterable[str]) -> List[str]:
    """
    Known merchants that contain, or are contained in, `merchant`.

    Comparison is case-insensitive; empty names never match. Input order is
    preserved.
    """
    target = merchant.lower().strip()
    if not target:
        return []
    matches = []
    for known in known_merchants:
        candidate = known.lower().strip()
        if candidate and (candidate in target or target in candidate):
            matches.append(known)
    return matches


def best_similar_merchant(merchant: str, candidates: List[str]) -> Optional[str]:
    """
    Pick the candidate most similar to `merchant`.

    Ties keep the earliest candidate, so callers pass candidates newest first.
    """
    best = None
    best_score = -1.0
    for candidate in candidates:
        score = merchant_similarity(merchant, candidate)
        if score > best_score:
            best_score = score
            best = candidate
    return best


def keyword_overlap(current: Set[str], other: Set[str]) -> float:
    """Share of `current` keywords also present in `other` (0.0 when empty)."""
    if not current:
        return 0.0
    return len(current & other) / len(current)
