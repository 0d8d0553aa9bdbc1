from __future__ import annotations

import json
from pathlib import Path

import pytest

from regatta.time_series import extract_position_frame

METERS_PER_DEG_LAT = 111194.92664455873  # haversine radius 6371 km
RACE_START_MS = 1735000000000


def north_track(km: float, timestamps: list[int], speeds: list | None = None,
                lat0: float = 0.0, lon0: float = 0.0) -> list[dict]:
    """Samples evenly spaced due north, covering ``km`` between first and last."""
    n = len(timestamps)
    step_deg = (km * 1000.0 / METERS_PER_DEG_LAT) / max(n - 1, 1)
    samples = []
    for i, ts in enumerate(timestamps):
        sample = {"lat": lat0 + i * step_deg, "lon": lon0, "timestamp": ts}
        if speeds is not None:
            sample["speed"] = speeds[i]
        samples.append(sample)
    return samples


def make_boat(boat_id: str, samples: list[dict], boat_class: str | None = None) -> dict:
    return {
        "id": boat_id,
        "name": f"Yacht {boat_id}",
        "sail_number": f"AUS{boat_id}",
        "class": boat_class,
        "color": "#000000",
        "country": "AUS",
        "positions": extract_position_frame(samples),
    }


def make_race(boats: list[dict], start_ms: int | None = 0, **extra) -> dict:
    race = {
        "id": "test-race",
        "name": "Test Race",
        "start_time_ms": start_ms,
        "end_time_ms": None,
        "location": None,
        "description": None,
        "distance_nm": None,
        "course": None,
        "boats": boats,
        "leaderboard": None,
    }
    race.update(extra)
    return race


def write_race_files(data_dir: Path) -> Path:
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / "races.json").write_text(json.dumps([
        {
            "id": "harbour-2025",
            "name": "Harbour Race 2025",
            "startTime": RACE_START_MS,
            "endTime": RACE_START_MS + 600000,
            "location": "Sydney",
            "distance": 12,
        }
    ]))

    race_dir = data_dir / "harbour-2025"
    race_dir.mkdir()
    (race_dir / "RaceSetup.json").write_text(json.dumps({
        "teams": [
            {"id": 1, "name": "Wild Oats", "sail": "AUS10", "tags": ["IRC"], "colour": "#e11d48", "country": "AUS"},
            {"id": 2, "name": "Comanche", "sailNumber": "AUS11", "class": "ORCi", "color": "#2563eb"},
            {"id": 3, "name": "Scallywag", "sail": "HKG2", "class": "IRC"},
        ],
        "course": {
            "start": {"lat": -33.85, "lng": 151.21},
            "marks": [{"id": "m1", "name": "Sydney Heads", "lat": -33.83, "lng": 151.29}],
            "finish": {"lat": -33.80, "lng": 151.30},
        },
    }))
    (race_dir / "AllPositions3.json").write_text(json.dumps([
        {"id": 1, "moments": [
            {"lat": -33.85, "lon": 151.21, "at": 1735000000, "sog": 10.0},
            {"lat": -33.84, "lon": 151.21, "at": 1735000300, "sog": 12.0},
            {"lat": -33.83, "lon": 151.21, "at": 1735000600, "sog": 14.0},
        ]},
        {"id": 2, "positions": [
            {"lat": -33.85, "lng": 151.21, "timestamp": RACE_START_MS, "speed": 9.0},
            {"lat": -33.845, "lng": 151.21, "timestamp": RACE_START_MS + 300000, "speed": "bad"},
            {"lat": -33.84, "lng": 151.21, "timestamp": RACE_START_MS + 600000, "speed": 11.0},
        ]},
        {"id": 3, "positions": []},
    ]))
    (race_dir / "leaderboard.json").write_text(json.dumps({
        "tags": [
            {"id": 1, "name": "IRC", "teams": [{"id": 1, "rank": 2, "dtf": 6.0, "elapsed": 600}]},
            {"id": 2, "name": "ORCi", "teams": [{"id": 2, "rank": 1, "dtf": 5.0, "elapsed": 600, "finished": True}]},
        ]
    }))
    return data_dir


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return write_race_files(tmp_path / "race_data")
