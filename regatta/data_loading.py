"""
Data Loading for Race Analysis

This module loads the static JSON race files (race index, race setup,
leaderboard feed and position feed) and assembles them into a normalized
race dictionary. Load failures are logged and surface as an absent dataset
rather than an exception.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional
from . import constants
from . import time_series
from . import utils

logger = logging.getLogger(__name__)


def load_json(path: Path):
    """
    Read and decode a JSON file.

    Args:
        path: File to read.

    Returns:
        The decoded document, or None if the file is missing or malformed.
    """
    path = Path(path)
    if not path.exists():
        logger.warning("Race data file not found: %s", path)
        return None
    try:
        with path.open("r", encoding="utf-8") as file:
            return json.load(file)
    except (OSError, ValueError) as exc:
        logger.error("Failed to read race data file %s: %s", path, exc)
        return None


def load_race_index(data_dir: Path = constants.DATA_DIR) -> List[Dict]:
    """
    Load the list of available races.

    Args:
        data_dir: Root of the race data folder. Defaults to DATA_DIR.

    Returns:
        List of race info dictionaries (with string ids), or an empty list
        when the index is missing or malformed.
    """
    races = load_json(Path(data_dir) / constants.RACES_INDEX_FILE)
    if not isinstance(races, list):
        if races is not None:
            logger.error("Race index is not a list: %s", type(races).__name__)
        return []

    index = []
    for info in races:
        if isinstance(info, dict) and info.get("id") is not None:
            index.append(dict(info, id=str(info["id"])))
    return index


def find_race_info(race_id: str, data_dir: Path = constants.DATA_DIR) -> Optional[Dict]:
    """Return the index entry for ``race_id``, or None if it is not listed."""
    return next((info for info in load_race_index(data_dir) if info["id"] == str(race_id)), None)


def parse_team(team: Dict) -> Dict:
    """
    Normalize one roster record from RaceSetup.json.

    Args:
        team: Raw team dictionary.

    Returns:
        Boat identity dictionary (id, name, sail_number, class, color, country).
    """
    boat_class = team.get("class")
    if boat_class is None:
        tags = team.get("tags") or []
        boat_class = tags[0] if tags else None

    return {
        "id": str(team["id"]),
        "name": team.get("name") or f"Boat {team['id']}",
        "sail_number": team.get("sailNumber") or team.get("sail"),
        "class": None if boat_class is None else str(boat_class),
        "color": team.get("color") or team.get("colour"),
        "country": team.get("country") or team.get("flag"),
    }


def parse_point(point) -> Optional[Dict]:
    """Normalize a ``{lat, lon|lng}`` point; None when either coordinate is unusable."""
    if not isinstance(point, dict):
        return None
    lat = utils.safe_float(point.get("lat"))
    lon = utils.safe_float(point.get("lon", point.get("lng")))
    if not (utils.is_number(lat) and utils.is_number(lon)):
        return None
    return {"lat": lat, "lon": lon}


def parse_course(course) -> Optional[Dict]:
    """
    Normalize course geometry: start point, ordered named marks, finish point.

    Returns:
        Course dictionary, or None when no course is supplied.
    """
    if not isinstance(course, dict):
        return None

    marks = []
    for idx, mark in enumerate(course.get("marks") or []):
        point = parse_point(mark)
        if point is None:
            continue
        point["id"] = str(mark.get("id", idx))
        point["name"] = mark.get("name") or f"Mark {idx + 1}"
        marks.append(point)

    return {
        "start": parse_point(course.get("start")),
        "marks": marks,
        "finish": parse_point(course.get("finish")),
    }


def parse_leaderboard(raw) -> Optional[Dict[str, Dict]]:
    """
    Flatten the tag/team leaderboard feed into per-boat entries.

    Each tag is a class division; its name becomes the entry's class.

    Args:
        raw: Decoded leaderboard.json document.

    Returns:
        Dictionary keyed by boat id with rank, elapsed_s, dtf_nm, finished,
        started and class, or None if the feed has no usable tags.
    """
    if not isinstance(raw, dict) or not isinstance(raw.get("tags"), list):
        return None

    entries: Dict[str, Dict] = {}
    for tag in raw["tags"]:
        if not isinstance(tag, dict):
            continue
        for team in tag.get("teams") or []:
            if not isinstance(team, dict) or team.get("id") is None:
                continue
            boat_id = str(team["id"])
            if boat_id in entries:
                continue
            rank = utils.safe_float(team.get("rank"))
            entries[boat_id] = {
                "rank": int(rank) if utils.is_number(rank) else None,
                "elapsed_s": utils.round_float(utils.safe_float(team.get("elapsed")), 1),
                "dtf_nm": utils.round_float(utils.safe_float(team.get("dtf")), 3),
                "finished": bool(team.get("finished") or team.get("finishedAt")),
                "started": bool(team.get("started", True)),
                "class": tag.get("name"),
            }
    return entries


def build_boats(setup: Dict, positions) -> List[Dict]:
    """
    Join the roster with the position feed, preserving roster order.

    Boats present in the position feed but absent from the roster are
    appended with a placeholder identity.
    """
    feed: Dict[str, List] = {}
    for boat_feed in positions or []:
        if isinstance(boat_feed, dict) and boat_feed.get("id") is not None:
            raw = boat_feed.get("positions")
            if raw is None:
                raw = boat_feed.get("moments")
            feed[str(boat_feed["id"])] = raw or []

    boats = []
    seen = set()
    for team in setup.get("teams") or []:
        if not isinstance(team, dict) or team.get("id") is None:
            continue
        boat = parse_team(team)
        if boat["id"] in seen:
            continue
        seen.add(boat["id"])
        boat["positions"] = time_series.extract_position_frame(feed.get(boat["id"]))
        boats.append(boat)

    for boat_id, raw in feed.items():
        if boat_id in seen:
            continue
        logger.warning("Position feed has boat %s missing from the roster", boat_id)
        boat = parse_team({"id": boat_id})
        boat["positions"] = time_series.extract_position_frame(raw)
        boats.append(boat)

    return boats


def _first_number(*values) -> Optional[float]:
    """First value that parses to a finite number; null index fields fall through."""
    for value in values:
        number = utils.safe_float(value)
        if utils.is_number(number):
            return number
    return None


def load_race(race_id: str, data_dir: Path = constants.DATA_DIR) -> Optional[Dict]:
    """
    Load and normalize a complete race dataset.

    Reads the race index entry plus ``<race_id>/RaceSetup.json``,
    ``<race_id>/AllPositions3.json`` and the optional
    ``<race_id>/leaderboard.json``.

    Args:
        race_id: Race identifier as listed in races.json.
        data_dir: Root of the race data folder. Defaults to DATA_DIR.

    Returns:
        Race dictionary with id, name, start_time_ms, end_time_ms, location,
        distance_nm, course, boats and leaderboard, or None if the race is
        unknown or its setup/positions files cannot be read.
    """
    data_dir = Path(data_dir)
    info = find_race_info(race_id, data_dir)
    if info is None:
        logger.warning("Race %s is not listed in the race index", race_id)
        return None

    race_dir = data_dir / str(race_id)
    setup = load_json(race_dir / constants.RACE_SETUP_FILE)
    positions = load_json(race_dir / constants.POSITIONS_FILE)
    if not isinstance(setup, dict) or not isinstance(positions, list):
        logger.error("Race %s is missing its setup or position feed", race_id)
        return None

    leaderboard = None
    if (race_dir / constants.LEADERBOARD_FILE).exists():
        leaderboard = parse_leaderboard(load_json(race_dir / constants.LEADERBOARD_FILE))

    start = _first_number(info.get("startTime"), setup.get("startTime"))
    end = _first_number(info.get("endTime"), setup.get("endTime"))

    race = {
        "id": info["id"],
        "name": info.get("name") or setup.get("name") or info["id"],
        "start_time_ms": start,
        "end_time_ms": end,
        "location": info.get("location"),
        "description": info.get("description"),
        "distance_nm": utils.round_float(utils.safe_float(info.get("distance")), 1),
        "course": parse_course(setup.get("course") or info.get("course")),
        "boats": build_boats(setup, positions),
        "leaderboard": leaderboard,
    }

    logger.info("Loaded race %s with %d boats", race["id"], len(race["boats"]))
    return race


class RaceDataCache:
    """
    Cache of loaded races, keyed by race id.

    Owned by the data-access layer; entries live until ``invalidate()`` or
    ``clear()``. Failed loads are not cached so a later request can retry.
    """

    def __init__(self, data_dir: Path = constants.DATA_DIR):
        self.data_dir = Path(data_dir)
        self._races: Dict[str, Dict] = {}

    def __contains__(self, race_id) -> bool:
        return str(race_id) in self._races

    def __len__(self) -> int:
        return len(self._races)

    def list_races(self) -> List[Dict]:
        """Return the race index (always read fresh)."""
        return load_race_index(self.data_dir)

    def get(self, race_id: str) -> Optional[Dict]:
        """Return the race from cache, loading it on a miss."""
        race_id = str(race_id)
        if race_id in self._races:
            logger.debug("Race cache hit: %s", race_id)
            return self._races[race_id]

        logger.debug("Race cache miss: %s", race_id)
        race = load_race(race_id, self.data_dir)
        if race is not None:
            self._races[race_id] = race
        return race

    def invalidate(self, race_id: str) -> bool:
        """Drop one race from the cache; returns True if it was cached."""
        return self._races.pop(str(race_id), None) is not None

    def clear(self) -> None:
        """Drop every cached race."""
        self._races.clear()
