"""
Track Records and GeoJSON Conversion for Race Analysis

This module converts boat position traces into per-sample track records and
GeoJSON suitable for the track map and API responses.
"""

import pandas as pd
from typing import Dict, Iterable, List, Optional
from . import metrics
from . import replay
from . import utils


def build_track_records(df: pd.DataFrame) -> List[Dict]:
    """
    Convert a position frame to a list of track record dictionaries.

    Args:
        df: Position frame from time_series.extract_position_frame().

    Returns:
        List of dictionaries, each representing one sample with timestamp,
        position, reported and derived speed, heading, course and distance.
    """
    df = metrics.compute_derived_metrics(df)
    records = []

    for row in df.itertuples():
        record = {
            "timestamp": int(row.timestamp_ms),
            "elapsed_s": utils.round_float(row.elapsed_s),
            "lat": utils.preserve_precision(row.lat),
            "lon": utils.preserve_precision(row.lon),
            "speed_kts": utils.round_float(row.speed_kts, digits=2),
            "derived_speed_kts": utils.round_float(row.derived_speed_kts, digits=2),
            "heading_deg": utils.round_float(row.heading_deg, digits=1),
            "course_deg": utils.round_float(row.course_deg, digits=1),
            "distance_m": utils.round_float(row.distance_along_m, digits=1),
        }
        records.append(record)

    return records


def select_boats(race: Dict, boat_ids: Optional[Iterable[str]] = None) -> List[Dict]:
    """
    Pick boats by id, in roster order. An empty or missing selection means all boats.
    """
    wanted = {str(boat_id) for boat_id in boat_ids or []}
    boats = race.get("boats", [])
    if not wanted:
        return list(boats)
    return [boat for boat in boats if boat["id"] in wanted]


def point_feature(lat: float, lon: float, properties: Dict) -> Dict:
    """Build a GeoJSON Point feature ([lon, lat] order)."""
    return {
        "type": "Feature",
        "geometry": {
            "type": "Point",
            "coordinates": [lon, lat],
        },
        "properties": properties,
    }


def course_features(course: Optional[Dict]) -> List[Dict]:
    """
    Build Point features for the course: start, ordered marks, finish.

    Args:
        course: Normalized course dictionary, or None.

    Returns:
        List of GeoJSON Point features tagged with a ``marker`` property.
    """
    if not course:
        return []

    features = []
    start = course.get("start")
    if start:
        features.append(point_feature(start["lat"], start["lon"],
                                      {"marker": "start", "name": "Start Line"}))
    for order, mark in enumerate(course.get("marks", []), start=1):
        features.append(point_feature(mark["lat"], mark["lon"], {
            "marker": "mark",
            "id": mark["id"],
            "name": mark["name"],
            "order": order,
        }))
    finish = course.get("finish")
    if finish:
        features.append(point_feature(finish["lat"], finish["lon"],
                                      {"marker": "finish", "name": "Finish Line"}))
    return features


def race_to_geojson(race: Dict, cursor_ms: Optional[float] = None,
                    boat_ids: Optional[Iterable[str]] = None) -> Dict:
    """
    Convert a race to a GeoJSON FeatureCollection for the track map.

    Creates, for each selected boat, a LineString of its track up to the
    cursor (boats with fewer than two samples get no line) and a Point at its
    current position (omitted when absent), followed by the course markers.

    Args:
        race: Normalized race dictionary.
        cursor_ms: Optional replay cursor. None shows full tracks.
        boat_ids: Optional selection of boat ids. Empty means all boats.

    Returns:
        GeoJSON FeatureCollection.
    """
    features = []

    for boat in select_boats(race, boat_ids):
        df = replay.window(boat["positions"], cursor_ms)
        identity = {
            "boat_id": boat["id"],
            "name": boat.get("name"),
            "sail_number": boat.get("sail_number"),
            "class": boat.get("class"),
            "color": boat.get("color"),
        }

        if len(df) >= 2:
            coordinates = [[float(lon), float(lat)] for lat, lon in zip(df["lat"], df["lon"])]
            features.append({
                "type": "Feature",
                "geometry": {
                    "type": "LineString",
                    "coordinates": coordinates,
                },
                "properties": dict(identity, marker="track", sampleCount=len(coordinates)),
            })

        current = replay.current_position_at(df, None)
        if current is not None:
            features.append(point_feature(current["lat"], current["lon"], dict(
                identity,
                marker="boat",
                timestamp=current["timestamp"],
                speed=current["speed"],
                heading=current["heading"],
            )))

    features.extend(course_features(race.get("course")))

    return {
        "type": "FeatureCollection",
        "features": features,
    }
