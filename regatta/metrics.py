"""
Metrics Computation for Race Analysis

This module reduces each boat's GPS position trace to derived metrics:
distance sailed, speed statistics, elapsed time and leaderboard rank.

Average speed policy: when any sample in a boat's trace reports a speed,
the speed series is the reported speeds only (malformed entries dropped).
Otherwise it is derived from consecutive-sample distance over duration,
with zero-duration steps contributing 0. The two are never mixed.
"""

import numpy as np
import pandas as pd
from typing import Dict, List, Optional, Tuple
from . import constants
from . import replay
from . import utils


class NoSpeedDataError(ValueError):
    """Raised when a speed statistic is requested over an empty series."""


def latlon_to_xy(lat_series: pd.Series, lon_series: pd.Series,
                 ref_lat_rad: float, ref_lon_rad: float) -> Tuple[pd.Series, pd.Series]:
    """
    Convert latitude/longitude to local Cartesian coordinates (x, y).

    Uses a simple equirectangular projection approximation, suitable for
    short legs where Earth's curvature can be approximated as flat.

    Args:
        lat_series: Series of latitude values in degrees.
        lon_series: Series of longitude values in degrees.
        ref_lat_rad: Reference latitude in radians (typically first point).
        ref_lon_rad: Reference longitude in radians (typically first point).

    Returns:
        Tuple of (x_m, y_m) Series in meters, where x is east and y is north.
    """
    R = 6378137.0  # Earth radius in meters (WGS84)
    lat_rad = np.deg2rad(lat_series)
    lon_rad = np.deg2rad(lon_series)

    x = (lon_rad - ref_lon_rad) * np.cos(ref_lat_rad) * R
    y = (lat_rad - ref_lat_rad) * R

    return x, y


def haversine_m(lat1, lon1, lat2, lon2):
    """
    Calculate the great-circle distance between two points on Earth.

    Works on scalars or on numpy arrays of equal length.

    Args:
        lat1, lon1: Latitude and longitude of first point in degrees.
        lat2, lon2: Latitude and longitude of second point in degrees.

    Returns:
        Distance in meters between the two points.
    """
    R = constants.EARTH_RADIUS_M
    lat1_rad, lon1_rad = np.deg2rad(lat1), np.deg2rad(lon1)
    lat2_rad, lon2_rad = np.deg2rad(lat2), np.deg2rad(lon2)

    dlat = lat2_rad - lat1_rad
    dlon = lon2_rad - lon1_rad

    a = np.sin(dlat / 2) ** 2 + np.cos(lat1_rad) * np.cos(lat2_rad) * np.sin(dlon / 2) ** 2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))

    return R * c


def segment_distances_m(df: pd.DataFrame) -> pd.Series:
    """
    Distance from each sample to the previous one, in meters.

    The first sample has distance 0; any unusable segment counts as 0.
    """
    if len(df) < 2:
        return pd.Series(np.zeros(len(df)), index=df.index)

    lat = df["lat"].to_numpy(dtype=float)
    lon = df["lon"].to_numpy(dtype=float)
    steps = haversine_m(lat[:-1], lon[:-1], lat[1:], lon[1:])
    segments = pd.Series(np.concatenate([[0.0], steps]), index=df.index)
    return segments.replace([np.inf, -np.inf], np.nan).fillna(0.0)


def total_distance_m(df: pd.DataFrame) -> float:
    """Cumulative distance sailed in meters; 0 for fewer than two samples."""
    if len(df) < 2:
        return 0.0
    return float(segment_distances_m(df).sum())


def derived_step_speeds_kts(df: pd.DataFrame) -> pd.Series:
    """
    Speed over each consecutive-sample step, in knots.

    One value per step (``len(df) - 1`` values). Zero-duration steps yield 0
    instead of NaN or Inf.
    """
    if len(df) < 2:
        return pd.Series(dtype="float64")

    distances = segment_distances_m(df).iloc[1:]
    dt_s = df["timestamp_ms"].diff().iloc[1:] / 1000.0
    speeds = (distances / dt_s) * constants.MPS_TO_KNOTS
    speeds[dt_s <= 0] = 0.0
    return speeds.replace([np.inf, -np.inf], np.nan).fillna(0.0).reset_index(drop=True)


def has_reported_speed(df: pd.DataFrame) -> bool:
    """True when at least one sample carries a usable reported speed."""
    if "speed_kts" not in df.columns or df.empty:
        return False
    reported = df["speed_kts"].replace([np.inf, -np.inf], np.nan)
    return bool(reported.notna().any())


def speed_series(df: pd.DataFrame) -> pd.Series:
    """
    Speed series used for average and max speed.

    Args:
        df: Position frame.

    Returns:
        Reported speeds (invalid entries dropped) if any sample reports a
        speed, otherwise derived step speeds.
    """
    if has_reported_speed(df):
        reported = df["speed_kts"].replace([np.inf, -np.inf], np.nan).dropna()
        return reported.reset_index(drop=True)
    return derived_step_speeds_kts(df)


def current_speed(df: pd.DataFrame) -> Optional[float]:
    """
    Speed at the last sample of a trace, in knots.

    Follows the same source rule as speed_series(): the last sample's
    reported speed when the trace reports any, otherwise the derived speed
    of the step ending at the last sample (0 for a single sample).
    None for an empty trace or a malformed last reported speed.
    """
    if df.empty:
        return None
    if has_reported_speed(df):
        return utils.preserve_precision(df["speed_kts"].iloc[-1])
    steps = derived_step_speeds_kts(df)
    return float(steps.iloc[-1]) if len(steps) else 0.0


def average_speed(df: pd.DataFrame) -> float:
    """Mean of the speed series in knots; 0.0 for fewer than two samples."""
    if len(df) < 2:
        return 0.0
    return utils.mean_or_zero(speed_series(df))


def max_speed(series: pd.Series) -> float:
    """
    Maximum of a speed series.

    Raises:
        NoSpeedDataError: If the series has no usable values.
    """
    values = utils.finite_values(series)
    if not values:
        raise NoSpeedDataError("No speed data to reduce")
    return max(values)


def compute_boat_metrics(boat: Dict, race_start_ms: Optional[float] = None,
                         cursor_ms: Optional[float] = None) -> Dict:
    """
    Reduce one boat's position trace to its derived metrics.

    Only samples at or before ``cursor_ms`` count when a cursor is given.
    Fewer than two counted samples give zero distance, an average speed of 0
    and a max speed of None (the "no data" sentinel).

    Args:
        boat: Boat dictionary with a ``positions`` frame.
        race_start_ms: Race start used for elapsed time. Defaults to the
            boat's first sample.
        cursor_ms: Optional replay cursor.

    Returns:
        Dictionary with boat identity and distance_m, distance_km,
        distance_nm, average_speed_kts, max_speed_kts, elapsed_s,
        sample_count, current_position and status. distance_m is kept at
        full precision since ranking compares it directly.
    """
    df = replay.window(boat["positions"], cursor_ms)
    current = replay.current_position_at(df, None)

    distance_m = total_distance_m(df)
    avg_speed = average_speed(df)
    top_speed = None
    if len(df) >= 2:
        try:
            top_speed = max_speed(speed_series(df))
        except NoSpeedDataError:
            top_speed = None

    elapsed_s = 0.0
    if current is not None:
        start = race_start_ms if utils.is_number(race_start_ms) else df["timestamp_ms"].iloc[0]
        elapsed_s = max(0.0, (current["timestamp"] - start) / 1000.0)

    return {
        "boat_id": boat["id"],
        "name": boat.get("name"),
        "sail_number": boat.get("sail_number"),
        "class": boat.get("class"),
        "color": boat.get("color"),
        "country": boat.get("country"),
        "distance_m": distance_m,
        "distance_km": utils.round_float(distance_m / 1000.0, 3) or 0.0,
        "distance_nm": utils.round_float(distance_m / constants.METERS_PER_NM, 3) or 0.0,
        "average_speed_kts": utils.round_float(avg_speed, 2) or 0.0,
        "max_speed_kts": utils.round_float(top_speed, 2),
        "elapsed_s": utils.round_float(elapsed_s, 1) or 0.0,
        "sample_count": int(len(df)),
        "current_position": current,
        "status": constants.STATUS_RACING if len(df) else constants.STATUS_NOT_STARTED,
    }


def rank_boats(entries: List[Dict]) -> List[Dict]:
    """
    Order entries by descending distance and assign 1-based ranks.

    Ties keep the input (roster) order. Entries with no counted samples are
    not ranked: they get ``rank=None`` and follow the ranked entries, still
    in roster order.

    Args:
        entries: Metric dictionaries from compute_boat_metrics(), roster order.

    Returns:
        New list in leaderboard order.
    """
    started = [entry for entry in entries if entry["sample_count"] > 0]
    not_started = [entry for entry in entries if entry["sample_count"] == 0]

    ordered = sorted(started, key=lambda entry: -entry["distance_m"])
    for index, entry in enumerate(ordered):
        entry["rank"] = index + 1
    for entry in not_started:
        entry["rank"] = None
        entry["status"] = constants.STATUS_NOT_STARTED

    return ordered + not_started


def rank_by_class(entries: List[Dict]) -> List[Dict]:
    """
    Assign ``class_rank`` within each class, following the overall order.

    Args:
        entries: Entries already in leaderboard order.

    Returns:
        The same list, with class_rank set (None for unranked entries).
    """
    counters: Dict[str, int] = {}
    for entry in entries:
        if entry.get("rank") is None:
            entry["class_rank"] = None
            continue
        key = entry.get("class") or ""
        counters[key] = counters.get(key, 0) + 1
        entry["class_rank"] = counters[key]
    return entries


def compute_derived_metrics(df: pd.DataFrame) -> pd.DataFrame:
    """
    Compute per-sample derived metrics from a position frame.

    Calculates:
    - Elapsed time from the first sample
    - Local Cartesian coordinates (x, y)
    - Segment distances and cumulative distance
    - Derived speed over the preceding step (knots)
    - Course over ground from position change

    Args:
        df: Position frame from time_series.extract_position_frame().

    Returns:
        Copy of the frame with additional columns: elapsed_s, x_m, y_m,
        segment_distance_m, distance_along_m, derived_speed_kts, course_deg.
    """
    df = df.copy()
    if df.empty:
        for column in ["elapsed_s", "x_m", "y_m", "segment_distance_m",
                       "distance_along_m", "derived_speed_kts", "course_deg"]:
            df[column] = pd.Series(dtype="float64")
        return df

    # Compute elapsed time from first timestamp
    df["elapsed_s"] = (df["timestamp_ms"] - df["timestamp_ms"].iloc[0]) / 1000.0

    # Convert to local Cartesian coordinates around the first fix
    ref_lat = np.deg2rad(df["lat"].iloc[0])
    ref_lon = np.deg2rad(df["lon"].iloc[0])
    df["x_m"], df["y_m"] = latlon_to_xy(df["lat"], df["lon"], ref_lat, ref_lon)

    # Segment distances and cumulative distance
    df["segment_distance_m"] = segment_distances_m(df)
    df["distance_along_m"] = df["segment_distance_m"].cumsum()

    # Derived speed over the step ending at each sample
    step_speeds = derived_step_speeds_kts(df).to_numpy()
    df["derived_speed_kts"] = np.concatenate([[0.0], step_speeds])

    # Course over ground (0 = north, clockwise)
    dx = df["x_m"].diff().fillna(0)
    dy = df["y_m"].diff().fillna(0)
    df["course_deg"] = np.rad2deg(np.arctan2(dx, dy)) % 360

    return df
