from __future__ import annotations

import math

import pandas as pd
import pytest

from conftest import METERS_PER_DEG_LAT, make_boat, north_track
from regatta import metrics
from regatta.time_series import extract_position_frame


def test_haversine_one_degree_of_latitude() -> None:
    assert metrics.haversine_m(0.0, 0.0, 1.0, 0.0) == pytest.approx(METERS_PER_DEG_LAT)
    assert metrics.haversine_m(-33.85, 151.21, -33.85, 151.21) == 0.0


def test_empty_and_single_sample_use_sentinels() -> None:
    empty = metrics.compute_boat_metrics(make_boat("C", []), race_start_ms=0)
    single = metrics.compute_boat_metrics(
        make_boat("D", north_track(0, [0], speeds=[12.0])), race_start_ms=0
    )

    for result in (empty, single):
        assert result["distance_m"] == 0.0
        assert result["average_speed_kts"] == 0.0
        assert result["max_speed_kts"] is None

    assert empty["status"] == "not_started"
    assert empty["current_position"] is None
    assert single["current_position"]["speed"] == 12.0


def test_total_distance_sums_consecutive_segments() -> None:
    df = extract_position_frame(north_track(10, [0, 5000, 10000]))

    assert metrics.total_distance_m(df) == pytest.approx(10000.0, rel=1e-9)
    assert metrics.segment_distances_m(df).iloc[0] == 0.0


def test_average_speed_uses_reported_speeds() -> None:
    df = extract_position_frame(north_track(10, [0, 5000, 10000], speeds=[5.0, 7.0, 9.0]))

    assert metrics.average_speed(df) == pytest.approx(7.0)
    assert metrics.max_speed(metrics.speed_series(df)) == 9.0


def test_malformed_reported_speed_is_dropped() -> None:
    df = extract_position_frame(north_track(1, [0, 1000, 2000], speeds=[10.0, "fast", 12.0]))

    assert metrics.average_speed(df) == pytest.approx(11.0)
    assert metrics.max_speed(metrics.speed_series(df)) == 12.0


def test_partial_reported_speeds_are_not_mixed_with_derived() -> None:
    samples = north_track(50, [0, 1000, 2000])
    samples[1]["speed"] = 6.0
    df = extract_position_frame(samples)

    # Only the reported value counts, not the (very fast) derived steps
    assert list(metrics.speed_series(df)) == [6.0]
    assert metrics.average_speed(df) == 6.0


def test_derived_speed_fallback_in_knots() -> None:
    one_nm_deg = 1852.0 / METERS_PER_DEG_LAT
    df = extract_position_frame([
        {"lat": 0.0, "lon": 0.0, "timestamp": 0},
        {"lat": one_nm_deg, "lon": 0.0, "timestamp": 3_600_000},
    ])

    assert metrics.average_speed(df) == pytest.approx(1.0, rel=1e-4)


def test_zero_duration_step_yields_zero_speed() -> None:
    df = extract_position_frame([
        {"lat": 0.0, "lon": 0.0, "timestamp": 1000},
        {"lat": 0.01, "lon": 0.0, "timestamp": 1000},
        {"lat": 0.02, "lon": 0.0, "timestamp": 61000},
    ])

    steps = metrics.derived_step_speeds_kts(df)
    assert steps.iloc[0] == 0.0
    assert all(math.isfinite(value) for value in steps)
    assert math.isfinite(metrics.average_speed(df))


def test_max_speed_fails_loudly_on_empty_series() -> None:
    with pytest.raises(metrics.NoSpeedDataError):
        metrics.max_speed(pd.Series(dtype="float64"))


def test_rank_by_distance_with_not_started_boat_last() -> None:
    boats = [
        make_boat("C", []),
        make_boat("B", north_track(8, [0, 5000, 10000], speeds=[8, 9, 10])),
        make_boat("A", north_track(10, [0, 5000, 10000], speeds=[10, 11, 12])),
    ]
    entries = [metrics.compute_boat_metrics(boat, race_start_ms=0) for boat in boats]

    ranked = metrics.rank_boats(entries)

    assert [(entry["boat_id"], entry["rank"]) for entry in ranked] == [("A", 1), ("B", 2), ("C", None)]
    assert ranked[0]["distance_km"] == pytest.approx(10.0, abs=1e-3)
    assert ranked[-1]["status"] == "not_started"


def test_rank_ties_keep_roster_order() -> None:
    boats = [make_boat(boat_id, north_track(5, [0, 1000])) for boat_id in ["X", "Y", "Z"]]
    entries = [metrics.compute_boat_metrics(boat) for boat in boats]

    ranked = metrics.rank_boats(entries)

    assert [entry["boat_id"] for entry in ranked] == ["X", "Y", "Z"]
    assert [entry["rank"] for entry in ranked] == [1, 2, 3]


def test_rank_separates_distances_closer_than_display_rounding() -> None:
    boats = [
        make_boat("B", north_track(10.00001, [0, 1000])),
        make_boat("A", north_track(10.00004, [0, 1000])),
    ]
    ranked = metrics.rank_boats([metrics.compute_boat_metrics(boat) for boat in boats])

    assert [entry["boat_id"] for entry in ranked] == ["A", "B"]
    assert ranked[0]["distance_m"] > ranked[1]["distance_m"]


def test_current_speed_follows_trace_speed_source() -> None:
    reported = extract_position_frame(north_track(2, [0, 300000, 600000], speeds=[5.0, 6.0, 7.5]))
    derived = extract_position_frame(north_track(2, [0, 300000, 600000]))
    single = extract_position_frame(north_track(0, [0]))

    assert metrics.current_speed(reported) == 7.5
    # 1 km in 5 minutes
    assert metrics.current_speed(derived) == pytest.approx(6.4795, abs=1e-3)
    assert metrics.current_speed(single) == 0.0
    assert metrics.current_speed(extract_position_frame([])) is None


def test_rank_by_class_follows_overall_order() -> None:
    boats = [
        make_boat("1", north_track(3, [0, 1000]), boat_class="IRC"),
        make_boat("2", north_track(9, [0, 1000]), boat_class="ORCi"),
        make_boat("3", north_track(6, [0, 1000]), boat_class="IRC"),
        make_boat("4", [], boat_class="IRC"),
    ]
    ranked = metrics.rank_boats([metrics.compute_boat_metrics(boat) for boat in boats])

    metrics.rank_by_class(ranked)

    by_id = {entry["boat_id"]: entry["class_rank"] for entry in ranked}
    assert by_id == {"2": 1, "3": 1, "1": 2, "4": None}


def test_metrics_respect_cursor_window() -> None:
    boat = make_boat("A", north_track(10, [0, 5000, 10000], speeds=[4.0, 6.0, 20.0]))

    result = metrics.compute_boat_metrics(boat, race_start_ms=0, cursor_ms=5000)

    assert result["sample_count"] == 2
    assert result["distance_km"] == pytest.approx(5.0, abs=1e-3)
    assert result["average_speed_kts"] == 5.0
    assert result["max_speed_kts"] == 6.0
    assert result["elapsed_s"] == 5.0
    assert result["current_position"]["timestamp"] == 5000


def test_cursor_before_first_sample_means_not_started() -> None:
    boat = make_boat("A", north_track(10, [5000, 10000]))

    result = metrics.compute_boat_metrics(boat, race_start_ms=0, cursor_ms=1000)

    assert result["sample_count"] == 0
    assert result["current_position"] is None
    assert result["status"] == "not_started"
    assert result["elapsed_s"] == 0.0


def test_compute_derived_metrics_adds_columns() -> None:
    df = extract_position_frame(north_track(2, [0, 60000, 120000]))

    derived = metrics.compute_derived_metrics(df)

    assert derived["elapsed_s"].tolist() == [0.0, 60.0, 120.0]
    assert derived["distance_along_m"].iloc[-1] == pytest.approx(2000.0, rel=1e-9)
    assert derived["derived_speed_kts"].iloc[0] == 0.0
    assert derived["course_deg"].iloc[1] == pytest.approx(0.0, abs=1e-6)
    assert metrics.compute_derived_metrics(extract_position_frame([])).empty
