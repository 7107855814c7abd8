"""
Merchant canonical-name mapping loader.
Loads CSV files that extend the built-in merchant name mappings.
"""

import csv
from typing import Dict, Optional
from pathlib import Path

from .engine_config import MERCHANT_CANONICAL_NAMES


def load_merchant_mapping_csv(csv_path: str) -> Dict[str, str]:
    """
    Load merchant name mappings from a CSV file.

    Args:
        csv_path: Path to CSV file containing merchant mappings

    Returns:
        Dictionary mapping uppercase merchant variants to canonical names

    Example CSV format:
        pattern,canonical
        TESCO STORES,TESCO
        TESCO EXPRESS,TESCO
    """
    mapping = {}

    csv_file = Path(csv_path)
    if not csv_file.exists():
        raise FileNotFoundError(f"Merchant mapping file not found: {csv_path}")

    with open(csv_path, 'r', encoding='utf-8') as f:
        reader = csv.DictReader(f)
        for row in reader:
            pattern = (row.get('pattern') or '').strip().upper()
            canonical = (row.get('canonical') or '').strip().upper()
            if pattern and canonical:
                mapping[pattern] = canonical

    return mapping


def build_merchant_mapping(extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """
    Combine the built-in merchant mappings with extra entries.

    Extra entries win over built-in ones for the same pattern.
    """
    mapping = dict(MERCHANT_CANONICAL_NAMES)
    if extra:
        mapping.update({k.upper(): v.upper() for k, v in extra.items()})
    return mapping
