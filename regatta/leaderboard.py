"""
Leaderboard Construction for Race Analysis

This module builds the ranked leaderboard, either computed locally from
distance sailed or taken from the precomputed leaderboard feed.
"""

from typing import Dict, List, Optional
from . import constants
from . import metrics


def apply_feed_entry(entry: Dict, feed_entry: Dict) -> Dict:
    """
    Overlay precomputed feed values onto a computed entry.

    Args:
        entry: Computed metrics entry.
        feed_entry: Per-boat entry from data_loading.parse_leaderboard().

    Returns:
        The updated entry, marked with ``source="feed"``.
    """
    entry["source"] = "feed"
    entry["dtf_nm"] = feed_entry.get("dtf_nm")
    entry["finished"] = feed_entry.get("finished", False)
    entry["started"] = feed_entry.get("started", True)
    if feed_entry.get("elapsed_s") is not None:
        entry["elapsed_s"] = feed_entry["elapsed_s"]
    if not entry.get("class") and feed_entry.get("class"):
        entry["class"] = feed_entry["class"]

    if entry["finished"]:
        entry["status"] = constants.STATUS_FINISHED
    elif not entry["started"]:
        entry["status"] = constants.STATUS_NOT_STARTED
    return entry


def order_by_feed(entries: List[Dict], feed: Dict[str, Dict]) -> List[Dict]:
    """
    Order entries by feed rank, falling back to computed order.

    Feed values are applied after the computed ranking so that a boat the
    feed reports as finished or started keeps that status.

    Boats ranked in the feed come first by feed rank (ties in roster order);
    the remaining boats follow in their computed order and are ranked after
    them.
    """
    computed = metrics.rank_boats(entries)
    for entry in computed:
        if entry["boat_id"] in feed:
            apply_feed_entry(entry, feed[entry["boat_id"]])

    ranked_in_feed = [
        entry for entry in computed
        if entry["boat_id"] in feed and feed[entry["boat_id"]].get("rank") is not None
    ]
    ranked_in_feed.sort(key=lambda entry: feed[entry["boat_id"]]["rank"])
    feed_ids = {entry["boat_id"] for entry in ranked_in_feed}
    rest = [entry for entry in computed if entry["boat_id"] not in feed_ids]

    ordered = ranked_in_feed + rest
    position = 0
    for entry in ordered:
        if entry["boat_id"] in feed_ids or entry["rank"] is not None:
            position += 1
            entry["rank"] = position
    return ordered


def build_leaderboard(race: Dict, cursor_ms: Optional[float] = None) -> List[Dict]:
    """
    Build the race leaderboard.

    Without a cursor, a race that carries a precomputed leaderboard feed is
    ordered by the feed's ranks and decorated with its elapsed time, DTF and
    finished/started flags. With a cursor (replay), or without a feed, boats
    are ranked by distance sailed up to the cursor. Class ranks always follow
    the final overall order.

    Args:
        race: Normalized race dictionary.
        cursor_ms: Optional replay cursor.

    Returns:
        List of leaderboard entry dictionaries in rank order.
    """
    entries = []
    for boat in race.get("boats", []):
        entry = metrics.compute_boat_metrics(boat, race.get("start_time_ms"), cursor_ms)
        entry.update({"source": "computed", "dtf_nm": None,
                      "finished": False, "started": entry["sample_count"] > 0})
        entries.append(entry)

    feed = race.get("leaderboard")
    if feed and cursor_ms is None:
        ordered = order_by_feed(entries, feed)
    else:
        ordered = metrics.rank_boats(entries)

    return metrics.rank_by_class(ordered)
