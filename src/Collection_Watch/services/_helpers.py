"""Shared helpers for the marketplace and transport service modules.

Consolidates safe type conversions and the small parsing rules that more than
one service depends on (variant-suffix stripping, retry-after extraction).
"""

from __future__ import annotations

import math
import re
from typing import Final

# Telegram and friends put the advised wait in the error description
_RETRY_AFTER_PATTERN: Final[re.Pattern[str]] = re.compile(r"retry after (\d+(?:\.\d+)?)", re.I)


def safe_float(value: object) -> float:
    """Convert a numeric value to float, treating NaN/None/junk as 0.0."""
    if value is None:
        return 0.0
    try:
        float_val = float(str(value))
        if math.isnan(float_val) or math.isinf(float_val):
            return 0.0
        return float_val
    except (ValueError, TypeError):
        return 0.0


def safe_int(value: object) -> int:
    """Convert a numeric value to int, treating NaN/None/junk as 0."""
    return int(safe_float(value))


def strip_variant_suffix(item_slug: str) -> str:
    """Derive a collection slug from an item slug.

    Item slugs carry a trailing ``-<variant>`` marker
    (``"golden-goose-17"`` -> ``"golden-goose"``). Slugs without a dash are
    returned unchanged.
    """
    if not item_slug:
        return ""
    head, sep, _tail = item_slug.rpartition("-")
    return head if sep else item_slug


def parse_retry_after(text: str | None) -> float | None:
    """Extract ``retry after N`` seconds from an error description, if present."""
    if not text:
        return None
    match = _RETRY_AFTER_PATTERN.search(text)
    if match is None:
        return None
    return float(match.group(1))
