"""
Race Analysis Module

This module loads yacht race datasets, reduces each boat's position trace to
derived metrics, drives the race replay, and builds the leaderboard, track
map, speed chart and statistics views.

It re-exports the public functions of the individual modules so callers can
import everything from one place.
"""

# Import constants
from .constants import (
    DATA_DIR,
    DEFAULT_STEP_MS,
    DEFAULT_TICK_INTERVAL_S,
    STATUS_RACING,
    STATUS_FINISHED,
    STATUS_NOT_STARTED,
)

# Import utility functions
from .utils import (
    safe_float,
    mean_or_zero,
    round_float,
    preserve_precision,
    parse_id_list,
)

# Import data loading functions
from .data_loading import (
    load_json,
    load_race_index,
    load_race,
    parse_leaderboard,
    RaceDataCache,
)

# Import time series functions
from .time_series import (
    extract_timestamp_ms,
    extract_position_frame,
    sample_to_record,
)

# Import metrics functions
from .metrics import (
    NoSpeedDataError,
    latlon_to_xy,
    haversine_m,
    total_distance_m,
    speed_series,
    current_speed,
    average_speed,
    max_speed,
    compute_boat_metrics,
    rank_boats,
    rank_by_class,
    compute_derived_metrics,
)

# Import replay functions
from .replay import (
    ReplayClock,
    ReplayClosedError,
    time_range,
    clamp_cursor,
    current_position_at,
    positions_at,
)

# Import view builders
from .leaderboard import build_leaderboard
from .telemetry import build_track_records, race_to_geojson
from .speed_chart import build_speed_series
from .stats import build_race_stats

# Import export functions
from .export import (
    export_leaderboard_csv,
    export_boat_track_csv,
)

# Import payload builder functions
from .session import (
    build_race_payload,
    build_replay_state,
)

__all__ = [
    # Constants
    "DATA_DIR",
    "DEFAULT_STEP_MS",
    "DEFAULT_TICK_INTERVAL_S",
    "STATUS_RACING",
    "STATUS_FINISHED",
    "STATUS_NOT_STARTED",
    # Utilities
    "safe_float",
    "mean_or_zero",
    "round_float",
    "preserve_precision",
    "parse_id_list",
    # Data loading
    "load_json",
    "load_race_index",
    "load_race",
    "parse_leaderboard",
    "RaceDataCache",
    # Time series
    "extract_timestamp_ms",
    "extract_position_frame",
    "sample_to_record",
    # Metrics
    "NoSpeedDataError",
    "latlon_to_xy",
    "haversine_m",
    "total_distance_m",
    "speed_series",
    "current_speed",
    "average_speed",
    "max_speed",
    "compute_boat_metrics",
    "rank_boats",
    "rank_by_class",
    "compute_derived_metrics",
    # Replay
    "ReplayClock",
    "ReplayClosedError",
    "time_range",
    "clamp_cursor",
    "current_position_at",
    "positions_at",
    # Views
    "build_leaderboard",
    "build_track_records",
    "race_to_geojson",
    "build_speed_series",
    "build_race_stats",
    # Export
    "export_leaderboard_csv",
    "export_boat_track_csv",
    # Payload builder
    "build_race_payload",
    "build_replay_state",
]
