"""
Utility Functions for Race Analysis

This module provides helper functions for data conversion, rounding, and
sanitizing numeric values before they leave the analysis pipeline.
"""

import numpy as np
from typing import Iterable, List, Optional


def safe_float(value) -> float:
    """
    Safely convert a value to float, returning NaN on failure.

    Booleans are rejected so that a stray ``true`` in a feed is not read as 1.0.

    Args:
        value: Value to convert (string, number, etc.).

    Returns:
        Float value, or np.nan if conversion fails.
    """
    if isinstance(value, bool):
        return np.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return np.nan


def is_number(value) -> bool:
    """Return True for a finite int/float (NaN and Inf excluded)."""
    if value is None or isinstance(value, bool):
        return False
    try:
        return bool(np.isfinite(value))
    except TypeError:
        return False


def finite_values(values: Iterable) -> List[float]:
    """Keep only finite numeric values, as floats."""
    return [float(v) for v in values if is_number(v)]


def mean_or_zero(values: Iterable) -> float:
    """
    Compute mean of values, ignoring None, NaN and Inf.

    Args:
        values: Numeric values (may contain None or NaN).

    Returns:
        Mean of valid values, or 0.0 if no valid values exist.
    """
    cleaned = finite_values(values)
    if not cleaned:
        return 0.0
    return float(np.mean(cleaned))


def round_float(value, digits: int = 3) -> Optional[float]:
    """
    Round a float value, handling None, NaN, and Inf.

    Args:
        value: Value to round.
        digits: Number of decimal places. Default 3.

    Returns:
        Rounded float, or None if value is None, NaN, or Inf.
    """
    if not is_number(value):
        return None
    return round(float(value), digits)


def preserve_precision(value, digits: Optional[int] = None) -> Optional[float]:
    """
    Preserve or round precision of a float value.

    Args:
        value: Value to process.
        digits: Number of decimal places. If None, preserves original precision.

    Returns:
        Float value (rounded if digits specified), or None if value is None or NaN.
    """
    if not is_number(value):
        return None
    if digits is None:
        return float(value)
    return round(float(value), digits)


def parse_id_list(raw: Optional[str]) -> List[str]:
    """Split a comma-separated id list (``"1,2, 5"``) into clean string ids."""
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]
