"""
Race Statistics for Race Analysis

This module computes fleet-wide summary statistics: fleet composition,
current speeds, the fastest boat and race progress.
"""

from typing import Dict, Optional
from . import metrics
from . import replay
from . import utils


def build_race_stats(race: Dict, cursor_ms: Optional[float] = None) -> Dict:
    """
    Build the summary statistics panel for a race.

    Active boats are those with a current position at the cursor. Averages
    over an empty set are 0 and the ETA is None when the fleet is not moving.
    Each boat's current speed follows metrics.current_speed(), so a trace
    without reported speeds uses its derived step speed.

    Args:
        race: Normalized race dictionary.
        cursor_ms: Optional replay cursor. None uses the end of each trace.

    Returns:
        Dictionary with fleet_size, classes, active_boats, average_speed_kts,
        fastest_boat, elapsed_s, distance_nm and eta_hours.
    """
    boats = race.get("boats", [])

    classes: Dict[str, int] = {}
    for boat in boats:
        key = boat.get("class") or "Unclassified"
        classes[key] = classes.get(key, 0) + 1

    current = replay.positions_at(race, cursor_ms)
    active = [boat for boat in boats if current.get(boat["id"]) is not None]

    speeds = {
        boat["id"]: metrics.current_speed(replay.window(boat["positions"], cursor_ms))
        for boat in active
    }
    average_speed = utils.mean_or_zero(speeds.values())

    fastest = None
    top_speed = None
    for boat in active:
        speed = speeds[boat["id"]]
        if not utils.is_number(speed):
            continue
        if top_speed is None or speed > top_speed:
            top_speed = speed
            fastest = {"boat_id": boat["id"], "name": boat.get("name"),
                       "speed_kts": utils.round_float(speed, 2)}

    bounds = replay.time_range(race)
    elapsed_s = 0.0
    if bounds is not None:
        reference = bounds[1] if cursor_ms is None else replay.clamp_cursor(cursor_ms, bounds)
        start = race.get("start_time_ms")
        if not utils.is_number(start):
            start = bounds[0]
        elapsed_s = max(0.0, (reference - start) / 1000.0)

    distance_nm = race.get("distance_nm")
    eta_hours = None
    if utils.is_number(distance_nm) and average_speed > 0:
        eta_hours = utils.round_float(distance_nm / average_speed, 1)

    return {
        "race_id": race.get("id"),
        "name": race.get("name"),
        "fleet_size": len(boats),
        "classes": classes,
        "active_boats": len(active),
        "average_speed_kts": utils.round_float(average_speed, 2) or 0.0,
        "fastest_boat": fastest,
        "elapsed_s": utils.round_float(elapsed_s, 1) or 0.0,
        "distance_nm": distance_nm,
        "eta_hours": eta_hours,
    }
