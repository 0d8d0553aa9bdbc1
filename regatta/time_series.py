"""
Time Series Extraction for Race Analysis

This module flattens a boat's raw position feed into a time-ordered DataFrame
suitable for metric computation, normalizing the field names and units used
by the different tracking feeds.
"""

import numpy as np
import pandas as pd
from typing import Dict, List, Optional
from . import utils

POSITION_COLUMNS = ["timestamp_ms", "lat", "lon", "speed_kts", "heading_deg"]


def empty_position_frame() -> pd.DataFrame:
    """Return a frame with the position columns and no rows."""
    return pd.DataFrame({column: pd.Series(dtype="float64") for column in POSITION_COLUMNS})


def extract_timestamp_ms(sample: Dict) -> Optional[float]:
    """
    Extract a sample timestamp in epoch milliseconds.

    Prefers the ``timestamp`` field (milliseconds) and falls back to the
    tracker ``at`` field, which is expressed in seconds.

    Args:
        sample: Raw position sample dictionary.

    Returns:
        Timestamp in milliseconds as a float, or None if not found or malformed.
    """
    ts = utils.safe_float(sample.get("timestamp"))
    if utils.is_number(ts):
        return ts

    at = utils.safe_float(sample.get("at"))
    if utils.is_number(at):
        return at * 1000.0

    return None


def first_present(sample: Dict, *keys) -> float:
    """Return the first of ``keys`` present in ``sample`` as a float (NaN if malformed)."""
    for key in keys:
        if sample.get(key) is not None:
            return utils.safe_float(sample[key])
    return np.nan


def extract_sample_fields(sample: Dict) -> Dict[str, float]:
    """
    Extract position fields from one raw sample.

    Args:
        sample: Raw sample with ``lat``, ``lon``/``lng`` and optional
            ``speed``/``sog`` and ``heading``/``cog``.

    Returns:
        Dictionary with lat, lon, speed_kts and heading_deg (NaN when absent).
    """
    return {
        "lat": first_present(sample, "lat"),
        "lon": first_present(sample, "lon", "lng"),
        "speed_kts": first_present(sample, "speed", "sog"),
        "heading_deg": first_present(sample, "heading", "cog"),
    }


def extract_position_frame(raw_positions: Optional[List[Dict]]) -> pd.DataFrame:
    """
    Flatten a boat's raw position samples into a time-indexed DataFrame.

    Samples without a usable timestamp or coordinate pair are dropped; a
    malformed speed or heading is kept as NaN and sanitized later during
    aggregation. Latitude must lie in [-90, 90] and longitude in [-180, 180].

    Args:
        raw_positions: List of raw sample dictionaries from the position feed.

    Returns:
        DataFrame with columns timestamp_ms, lat, lon, speed_kts, heading_deg,
        sorted by timestamp (stable, so equal timestamps keep feed order).
    """
    rows = []

    for sample in raw_positions or []:
        if not isinstance(sample, dict):
            continue
        row = {"timestamp_ms": extract_timestamp_ms(sample)}
        row.update(extract_sample_fields(sample))
        rows.append(row)

    df = pd.DataFrame(rows, columns=POSITION_COLUMNS)
    if df.empty:
        return empty_position_frame()

    df = df.astype("float64")

    # Clean and sort by timestamp
    df = df.replace([np.inf, -np.inf], np.nan)
    df = df.dropna(subset=["timestamp_ms", "lat", "lon"])
    df = df[df["lat"].between(-90, 90) & df["lon"].between(-180, 180)]
    df = df.sort_values("timestamp_ms", kind="mergesort").reset_index(drop=True)

    return df


def sample_to_record(row) -> Dict:
    """
    Convert one position row into a JSON-ready sample dictionary.

    Args:
        row: A row of a position frame (Series or namedtuple).

    Returns:
        Dictionary with timestamp, lat, lon, speed and heading; a missing
        speed or heading is None.
    """
    return {
        "timestamp": int(row.timestamp_ms),
        "lat": utils.preserve_precision(row.lat),
        "lon": utils.preserve_precision(row.lon),
        "speed": utils.round_float(row.speed_kts, digits=2),
        "heading": utils.round_float(row.heading_deg, digits=1),
    }
