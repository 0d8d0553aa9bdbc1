"""
Speed Chart Series for Race Analysis

This module builds the speed-over-time rows used to compare selected boats.
"""

import pandas as pd
from typing import Dict, Iterable, List
from . import metrics
from . import telemetry
from . import utils


def boat_speed_lookup(df: pd.DataFrame) -> Dict[int, float]:
    """
    Map each sample timestamp to the boat's speed at that sample.

    Uses reported speeds when the trace reports any, otherwise the derived
    step speed, matching the average speed policy in metrics. When several
    samples share a timestamp the first one wins.
    """
    if df.empty:
        return {}

    if metrics.has_reported_speed(df):
        speeds = df["speed_kts"]
    else:
        speeds = metrics.compute_derived_metrics(df)["derived_speed_kts"]

    lookup: Dict[int, float] = {}
    for timestamp, speed in zip(df["timestamp_ms"], speeds):
        key = int(timestamp)
        if key in lookup:
            continue
        value = utils.round_float(speed, 2)
        if value is not None:
            lookup[key] = value
    return lookup


def format_clock(timestamp_ms: int) -> str:
    """Format an epoch-milliseconds timestamp as UTC ``HH:MM``."""
    return pd.to_datetime(timestamp_ms, unit="ms", utc=True).strftime("%H:%M")


def build_speed_series(race: Dict, boat_ids: Iterable[str]) -> List[Dict]:
    """
    Build chart rows of speed over time for the selected boats.

    Rows cover the sorted union of the selected boats' sample timestamps;
    each row holds ``timestamp``, ``time`` and one key per boat id that has a
    sample at exactly that timestamp.

    Args:
        race: Normalized race dictionary.
        boat_ids: Selected boat ids. An empty selection yields no rows.

    Returns:
        List of row dictionaries in timestamp order (empty when nothing is
        selected or none of the selected boats exist).
    """
    boat_ids = [str(boat_id) for boat_id in boat_ids or []]
    if not boat_ids:
        return []

    boats = telemetry.select_boats(race, boat_ids)
    if not boats:
        return []

    lookups = {boat["id"]: boat_speed_lookup(boat["positions"]) for boat in boats}
    timestamps = sorted({int(ts) for boat in boats for ts in boat["positions"]["timestamp_ms"]})

    rows = []
    for timestamp in timestamps:
        row = {"timestamp": timestamp, "time": format_clock(timestamp)}
        for boat_id, lookup in lookups.items():
            if timestamp in lookup:
                row[boat_id] = lookup[timestamp]
        rows.append(row)
    return rows
