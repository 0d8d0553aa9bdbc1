"""
Print a race leaderboard and fleet statistics from the race data folder.

This script loads a race, ranks the fleet (optionally at a replay cursor)
and prints the leaderboard as a table. It can also write the leaderboard
to CSV.

Usage:
    python3 race_report.py --list
    python3 race_report.py --race cervantes-2025
    python3 race_report.py --race cervantes-2025 --cursor 1735120800000 --stats
    python3 race_report.py --race cervantes-2025 --csv leaderboard.csv
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List

from regatta import race_analysis


def print_race_list(races: List[Dict]) -> None:
    """
    Print the available races.

    Args:
        races: Race info dictionaries from the race index
    """
    if not races:
        print("No races available.")
        return

    print(f"{'ID':<28}{'Name':<40}{'Location':<20}")
    print("-" * 88)
    for info in races:
        print(f"{info['id']:<28}{str(info.get('name', '')):<40}{str(info.get('location') or ''):<20}")


def format_value(value, spec: str = ".1f") -> str:
    """Format a number for the table, or ``-`` when absent."""
    if value is None:
        return "-"
    return format(value, spec)


def print_leaderboard(entries: List[Dict], race: Dict) -> None:
    """
    Print a formatted leaderboard table.

    Args:
        entries: Leaderboard entries in rank order
        race: Race the entries belong to
    """
    print(f"\n{'='*96}")
    print(f"LEADERBOARD: {race['name']}")
    print(f"{'='*96}")

    if not entries:
        print("No boats entered.")
        return

    header = (f"{'Pos':>4} {'Cls':>4}  {'Boat':<24}{'Sail':<10}{'Class':<10}"
              f"{'Dist nm':>9}{'Avg kts':>9}{'Max kts':>9}{'Status':>14}")
    print(header)
    print("-" * len(header))

    for entry in entries:
        print(
            f"{format_value(entry['rank'], 'd'):>4} "
            f"{format_value(entry.get('class_rank'), 'd'):>4}  "
            f"{str(entry.get('name') or entry['boat_id'])[:23]:<24}"
            f"{str(entry.get('sail_number') or '-'):<10}"
            f"{str(entry.get('class') or '-'):<10}"
            f"{format_value(entry['distance_nm']):>9}"
            f"{format_value(entry['average_speed_kts']):>9}"
            f"{format_value(entry['max_speed_kts']):>9}"
            f"{entry['status']:>14}"
        )
    print(f"{'='*96}\n")


def print_stats(stats: Dict) -> None:
    """
    Print fleet statistics.

    Args:
        stats: Dictionary from build_race_stats()
    """
    print("Fleet statistics")
    print("-" * 40)
    print(f"Boats:          {stats['fleet_size']} ({stats['active_boats']} with a position)")
    for name, count in stats["classes"].items():
        print(f"  {name:<14}{count}")
    print(f"Avg speed:      {format_value(stats['average_speed_kts'])} kts")
    fastest = stats["fastest_boat"]
    if fastest:
        print(f"Fastest:        {fastest['name']} ({format_value(fastest['speed_kts'])} kts)")
    print(f"Elapsed:        {format_value(stats['elapsed_s'] / 3600.0)} h")
    if stats["eta_hours"] is not None:
        print(f"ETA:            ~{format_value(stats['eta_hours'])} h")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Print a yacht race leaderboard from the race data folder"
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=str(race_analysis.DATA_DIR),
        help=f"Race data folder (default: {race_analysis.DATA_DIR})"
    )
    parser.add_argument(
        "--race",
        type=str,
        help="Race id from races.json"
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List available races and exit"
    )
    parser.add_argument(
        "--cursor",
        type=int,
        default=None,
        help="Replay cursor in epoch milliseconds (default: end of race)"
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Also print fleet statistics"
    )
    parser.add_argument(
        "--csv",
        type=str,
        default=None,
        help="Write the leaderboard to this CSV file"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show loader log messages"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    cache = race_analysis.RaceDataCache(Path(args.data_dir))

    if args.list:
        print_race_list(cache.list_races())
        return 0

    if not args.race:
        parser.error("--race is required unless --list is given")

    race = cache.get(args.race)
    if race is None:
        print(f"Error: Race not found or unreadable: {args.race}")
        return 1

    cursor = args.cursor
    if cursor is not None:
        bounds = race_analysis.time_range(race)
        if bounds is not None:
            cursor = race_analysis.clamp_cursor(cursor, bounds)

    entries = race_analysis.build_leaderboard(race, cursor)
    print_leaderboard(entries, race)

    if args.stats:
        print_stats(race_analysis.build_race_stats(race, cursor))

    if args.csv:
        csv_path = Path(args.csv)
        csv_path.write_text(race_analysis.export_leaderboard_csv(entries), encoding="utf-8")
        print(f"Saved leaderboard CSV to: {csv_path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
