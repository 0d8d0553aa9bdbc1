"""
Constants for Race Analysis

This module defines data paths, feed file names, unit conversions and replay
defaults used throughout the race analysis system.
"""

import os
from pathlib import Path

# Race data folder is one level up from regatta/, overridable per deployment
DATA_DIR = Path(os.getenv("REGATTA_DATA_DIR", Path(__file__).parent.parent / "race_data"))
RACES_INDEX_FILE = "races.json"
RACE_SETUP_FILE = "RaceSetup.json"
LEADERBOARD_FILE = "leaderboard.json"
POSITIONS_FILE = "AllPositions3.json"

# Unit conversions
EARTH_RADIUS_M = 6371000.0
METERS_PER_NM = 1852.0
MPS_TO_KNOTS = 1.0 / 0.514444

# Replay defaults: one minute of race time per 100 ms tick
DEFAULT_STEP_MS = 60_000
DEFAULT_TICK_INTERVAL_S = 0.1

# Leaderboard status values
STATUS_RACING = "racing"
STATUS_FINISHED = "finished"
STATUS_NOT_STARTED = "not_started"
