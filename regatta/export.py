"""
Export Functions for Race Analysis

This module exports leaderboards and boat tracks to CSV for external
analysis or backup.
"""

import csv
import io
from typing import Dict, List
from . import telemetry

LEADERBOARD_COLUMNS = [
    "rank",
    "class_rank",
    "boat_id",
    "name",
    "sail_number",
    "class",
    "status",
    "distance_km",
    "distance_nm",
    "average_speed_kts",
    "max_speed_kts",
    "elapsed_s",
    "dtf_nm",
    "source",
]

TRACK_COLUMNS = [
    "timestamp",
    "elapsed_s",
    "lat",
    "lon",
    "speed_kts",
    "derived_speed_kts",
    "heading_deg",
    "course_deg",
    "distance_m",
]


def export_leaderboard_csv(entries: List[Dict]) -> str:
    """
    Export leaderboard entries to CSV format.

    Args:
        entries: Entries from leaderboard.build_leaderboard().

    Returns:
        CSV string with one row per boat in leaderboard order.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(LEADERBOARD_COLUMNS)

    for entry in entries:
        writer.writerow([entry.get(column) for column in LEADERBOARD_COLUMNS])

    return buffer.getvalue()


def export_boat_track_csv(race: Dict, boat_id: str) -> str:
    """
    Export a single boat's track to CSV format.

    Args:
        race: Normalized race dictionary.
        boat_id: Boat to export.

    Returns:
        CSV string with the boat's track records.

    Raises:
        ValueError: If boat_id is not part of the race.
    """
    boat = next((boat for boat in race.get("boats", []) if boat["id"] == str(boat_id)), None)
    if boat is None:
        raise ValueError(f"Boat {boat_id} not found")

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(TRACK_COLUMNS)

    for record in telemetry.build_track_records(boat["positions"]):
        writer.writerow([record.get(column) for column in TRACK_COLUMNS])

    return buffer.getvalue()
