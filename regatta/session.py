"""
Race Payload Builder for Race Analysis

This module combines every derived view of a race into the single payload
consumed by the dashboard.
"""

from typing import Dict, Iterable, Optional
from . import leaderboard
from . import replay
from . import speed_chart
from . import stats
from . import telemetry


def build_replay_state(race: Dict, cursor_ms: Optional[float] = None) -> Dict:
    """
    Describe the replay window and each boat's position at the cursor.

    Args:
        race: Normalized race dictionary.
        cursor_ms: Requested cursor; clamped to the race's time range. None
            selects the upper bound.

    Returns:
        Dictionary with start, end, cursor and positions. Without samples,
        start/end/cursor are None and every position is absent.
    """
    bounds = replay.time_range(race)
    if bounds is None:
        return {
            "start": None,
            "end": None,
            "cursor": None,
            "positions": {boat["id"]: None for boat in race.get("boats", [])},
        }

    cursor = bounds[1] if cursor_ms is None else replay.clamp_cursor(cursor_ms, bounds)
    return {
        "start": bounds[0],
        "end": bounds[1],
        "cursor": cursor,
        "positions": replay.positions_at(race, cursor),
    }


def race_summary(race: Dict) -> Dict:
    """Race identity and course, without the per-boat frames."""
    return {
        "id": race["id"],
        "name": race.get("name"),
        "start_time": race.get("start_time_ms"),
        "end_time": race.get("end_time_ms"),
        "location": race.get("location"),
        "description": race.get("description"),
        "distance_nm": race.get("distance_nm"),
        "course": race.get("course"),
        "boats": [
            {key: boat.get(key) for key in ("id", "name", "sail_number", "class", "color", "country")}
            for boat in race.get("boats", [])
        ],
    }


def build_race_payload(race: Dict, cursor_ms: Optional[float] = None,
                       boat_ids: Optional[Iterable[str]] = None) -> Dict:
    """
    Build the complete race payload with every derived view.

    Main entry point for the dashboard:
    1. Resolves the replay window and cursor
    2. Builds the leaderboard at the cursor
    3. Builds the track map GeoJSON
    4. Builds the speed chart rows for the selected boats
    5. Computes fleet statistics

    Args:
        race: Normalized race dictionary from data_loading.load_race().
        cursor_ms: Optional replay cursor (clamped to the race's time range).
        boat_ids: Optional boat selection for the map and speed chart.

    Returns:
        Dictionary containing race, replay, leaderboard, track, speed and stats.
    """
    boat_ids = list(boat_ids or [])
    replay_state = build_replay_state(race, cursor_ms)
    cursor = replay_state["cursor"] if cursor_ms is not None else None

    return {
        "race": race_summary(race),
        "replay": replay_state,
        "leaderboard": leaderboard.build_leaderboard(race, cursor),
        "track": telemetry.race_to_geojson(race, cursor, boat_ids),
        "speed": speed_chart.build_speed_series(race, boat_ids),
        "stats": stats.build_race_stats(race, cursor),
    }
