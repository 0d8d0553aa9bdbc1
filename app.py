"""
FastAPI Web Application for Race Analysis

This module provides a REST API serving the race dashboard's views:
race listing, leaderboard, track map GeoJSON, speed chart series, fleet
statistics, replay state and CSV exports.
"""

import logging
from typing import Dict, Optional
from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import PlainTextResponse
from regatta import race_analysis

logger = logging.getLogger(__name__)


# ============================================================================
# APPLICATION SETUP
# ============================================================================

app = FastAPI(title="Regatta Race Analysis")

# Loaded races, owned by the data-access layer (race_id -> race)
race_cache = race_analysis.RaceDataCache(race_analysis.DATA_DIR)


# ============================================================================
# RACE LOADING
# ============================================================================

def get_race(race_id: str) -> Dict:
    """
    Fetch a race from the cache, loading it on first use.

    Args:
        race_id: Race identifier from the race index.

    Returns:
        Normalized race dictionary.

    Raises:
        HTTPException: If the race is unknown or its data cannot be loaded
            (status 404).
    """
    race = race_cache.get(race_id)
    if race is None:
        raise HTTPException(status_code=404, detail=f"Race {race_id} not found")
    return race


def csv_download(body: str, filename: str) -> PlainTextResponse:
    """Wrap a CSV body in a download response."""
    headers = {"Content-Disposition": f"attachment; filename={filename}"}
    return PlainTextResponse(body, media_type="text/csv", headers=headers)


# ============================================================================
# API ROUTES - RACE DISCOVERY
# ============================================================================

@app.get("/api/races")
def get_races():
    """
    Get list of available races.

    Returns:
        List of race info dictionaries from races.json (empty when the
        index cannot be read).
    """
    return race_cache.list_races()


@app.get("/api/races/{race_id}")
def get_race_payload(race_id: str,
                     cursor: Optional[int] = Query(None, description="Replay cursor (epoch ms)"),
                     boats: Optional[str] = Query(None, description="Comma-separated boat ids")):
    """
    Get the complete payload for a race.

    Returns race info, replay state, leaderboard, track GeoJSON, speed
    chart rows and statistics in one response.
    """
    race = get_race(race_id)
    return race_analysis.build_race_payload(race, cursor, race_analysis.parse_id_list(boats))


# ============================================================================
# API ROUTES - VIEWS
# ============================================================================

@app.get("/api/races/{race_id}/leaderboard")
def get_leaderboard(race_id: str,
                    cursor: Optional[int] = Query(None, description="Replay cursor (epoch ms)")):
    """
    Get the ranked leaderboard, optionally at a replay cursor.
    """
    race = get_race(race_id)
    return race_analysis.build_leaderboard(race, cursor)


@app.get("/api/races/{race_id}/track")
def get_track(race_id: str,
              cursor: Optional[int] = Query(None, description="Replay cursor (epoch ms)"),
              boats: Optional[str] = Query(None, description="Comma-separated boat ids")):
    """
    Get the track map as a GeoJSON FeatureCollection.

    Includes boat tracks up to the cursor, current boat positions and the
    course markers.
    """
    race = get_race(race_id)
    return race_analysis.race_to_geojson(race, cursor, race_analysis.parse_id_list(boats))


@app.get("/api/races/{race_id}/speed")
def get_speed(race_id: str,
              boats: Optional[str] = Query(None, description="Comma-separated boat ids")):
    """
    Get speed chart rows for the selected boats (empty without a selection).
    """
    race = get_race(race_id)
    return race_analysis.build_speed_series(race, race_analysis.parse_id_list(boats))


@app.get("/api/races/{race_id}/stats")
def get_stats(race_id: str,
              cursor: Optional[int] = Query(None, description="Replay cursor (epoch ms)")):
    """
    Get fleet statistics, optionally at a replay cursor.
    """
    race = get_race(race_id)
    return race_analysis.build_race_stats(race, cursor)


@app.get("/api/races/{race_id}/replay")
def get_replay(race_id: str,
               cursor: Optional[int] = Query(None, description="Replay cursor (epoch ms)")):
    """
    Get the replay window and every boat's position at the (clamped) cursor.
    """
    race = get_race(race_id)
    return race_analysis.build_replay_state(race, cursor)


# ============================================================================
# API ROUTES - EXPORT
# ============================================================================

@app.get("/api/races/{race_id}/export/leaderboard")
def export_leaderboard(race_id: str,
                       cursor: Optional[int] = Query(None, description="Replay cursor (epoch ms)")):
    """
    Export the leaderboard as CSV. Filename: {race_id}_leaderboard.csv
    """
    race = get_race(race_id)
    entries = race_analysis.build_leaderboard(race, cursor)
    return csv_download(race_analysis.export_leaderboard_csv(entries), f"{race_id}_leaderboard.csv")


@app.get("/api/races/{race_id}/export/boat/{boat_id}")
def export_boat(race_id: str, boat_id: str):
    """
    Export one boat's track as CSV. Filename: {race_id}_{boat_id}.csv

    Raises:
        HTTPException: If boat_id is not part of the race (status 404).
    """
    race = get_race(race_id)
    try:
        body = race_analysis.export_boat_track_csv(race, boat_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return csv_download(body, f"{race_id}_{boat_id}.csv")


# ============================================================================
# API ROUTES - CACHE
# ============================================================================

@app.post("/api/cache/clear")
def clear_cache():
    """Drop every cached race so the next request reloads from disk."""
    race_cache.clear()
    logger.info("Race cache cleared")
    return {"cleared": True}


@app.post("/api/cache/{race_id}/invalidate")
def invalidate_race(race_id: str):
    """Drop one race from the cache."""
    return {"race_id": race_id, "invalidated": race_cache.invalidate(race_id)}


# ============================================================================
# RUN INSTRUCTIONS
# ============================================================================
# Run with: uvicorn app:app --reload
