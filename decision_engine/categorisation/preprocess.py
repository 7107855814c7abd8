"""
Preprocessing utilities for transaction categorization.
Handles text normalization, merchant canonicalisation, keyword extraction
and field access on raw transaction dicts.
"""

import logging
import math
import re
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from ..config.engine_config import (
    KEYWORD_STOP_WORDS,
    MERCHANT_CANONICAL_NAMES,
    MERCHANT_PREFIXES,
)

logger = logging.getLogger(__name__)


# Pre-computed sorted patterns (longest first) for efficient matching
MERCHANT_PATTERNS_SORTED = sorted(
    MERCHANT_CANONICAL_NAMES.items(),
    key=lambda x: len(x[0]),
    reverse=True
)

# Store numbers and reference suffixes: "WALMART #1234", "STARBUCKS - 789",
# "MCDONALDS (123)", "TARGET STORE 456", "SHELL 00451234"
_SUFFIX_PATTERNS = [
    re.compile(r"\s*#\s*\d+$"),
    re.compile(r"\s*STORE\s*#?\s*\d+$"),
    re.compile(r"\s*-\s*\d+$"),
    re.compile(r"\s*\(\d+\)$"),
    re.compile(r"\s*/\s*\d+$"),
    re.compile(r"\s+\d{4,}$"),
]

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9\s]")


def normalize_text(text: Optional[str]) -> str:
    """
    Normalize text for matching.

    Args:
        text: Raw text to normalize

    Returns:
        Normalized uppercase text with collapsed whitespace
    """
    if not text:
        return ""
    return " ".join(str(text).upper().split())


def normalize_merchant(
    merchant_name: Optional[str],
    mapping: Optional[List[Tuple[str, str]]] = None,
) -> str:
    """
    Normalize a merchant name to a canonical identifier.

    Strips payment-processor prefixes and store/reference numbers, then maps
    known variants to a canonical name (longest pattern first).

    Args:
        merchant_name: Raw merchant name
        mapping: Optional (pattern, canonical) pairs sorted longest first

    Returns:
        Canonical uppercase merchant name, or "" for empty input

    Example:
        >>> normalize_merchant("POS DEBIT Starbucks #1234")
        "STARBUCKS"
    """
    name = normalize_text(merchant_name)
    if not name:
        return ""

    for prefix, replacement in MERCHANT_PREFIXES.items():
        if name.startswith(prefix):
            name = (replacement + name[len(prefix):]).strip()
            break

    for pattern in _SUFFIX_PATTERNS:
        name = pattern.sub("", name)
    name = " ".join(name.split())

    for pattern, canonical in (mapping or MERCHANT_PATTERNS_SORTED):
        if pattern in name:
            return canonical

    return name


def extract_keywords(
    description: Optional[str],
    max_keywords: int = 5,
    min_token_length: int = 3,
    stop_words: Iterable[str] = KEYWORD_STOP_WORDS,
) -> List[str]:
    """
    Extract keywords from a transaction description.

    Lowercases, replaces non-alphanumerics with spaces, drops short tokens and
    stop words, and keeps the first `max_keywords` remaining tokens in order.

    Example:
        >>> extract_keywords("Paid the rent for the apartment")
        ["paid", "rent", "apartment"]
    """
    if not description:
        return []
    stop_words = set(stop_words)
    tokens = _NON_ALPHANUMERIC.sub(" ", str(description).lower()).split()
    keywords = [t for t in tokens if len(t) >= min_token_length and t not in stop_words]
    return keywords[:max_keywords]


def get_merchant(txn: Dict) -> str:
    """Merchant name from a transaction dict (PLAID `merchant_name` or `merchant`)."""
    return txn.get("merchant_name") or txn.get("merchant") or ""


def get_description(txn: Dict) -> str:
    """Description from a transaction dict, falling back to PLAID `name`."""
    return txn.get("description") or txn.get("name") or ""


def get_amount(txn: Dict) -> Optional[float]:
    """Signed amount as float, or None when missing, unparsable or non-finite."""
    value = txn.get("amount")
    if value is None:
        return None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        logger.debug("Skipping transaction with unparsable amount: %r", value)
        return None
    if not math.isfinite(amount):
        logger.debug("Skipping transaction with non-finite amount: %r", value)
        return None
    return amount


def parse_date(value) -> Optional[datetime]:
    """
    Parse a datetime or ISO date string; None when missing/unparsable.

    Offset-aware values are converted to naive UTC so every parsed date
    compares with every other.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError:
            logger.debug("Skipping unparsable date: %r", value)
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def same_direction(amount: float, other: float) -> bool:
    """True when both amounts are inflows or both are outflows."""
    return (amount < 0) == (other < 0)


def sort_most_recent_first(records: List[Dict]) -> List[Dict]:
    """
    Order records newest first.

    Records without a parsable date keep their relative order after dated ones.
    Python's sort is stable, so equal dates keep input order.
    """
    dated = []
    undated = []
    for record in records:
        parsed = parse_date(record.get("date"))
        if parsed is None:
            undated.append(record)
        else:
            dated.append((parsed, record))
    dated.sort(key=lambda pair: pair[0], reverse=True)
    return [record for _, record in dated] + undated
