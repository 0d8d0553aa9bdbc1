"""
Race Replay for Race Analysis

This module selects each boat's position at a replay cursor and provides the
replay clock that advances that cursor across the race's time range.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional, Tuple

import numpy as np
import pandas as pd

from . import constants
from . import time_series

logger = logging.getLogger(__name__)

IDLE = "idle"
PLAYING = "playing"


class ReplayClosedError(RuntimeError):
    """Raised when a torn-down replay clock is asked to play."""


def time_range(race: Dict) -> Optional[Tuple[int, int]]:
    """
    Compute the roster-wide replay bounds.

    Args:
        race: Normalized race dictionary from data_loading.load_race().

    Returns:
        Tuple of (min_timestamp_ms, max_timestamp_ms) across every boat's
        samples, or None when no boat has samples.
    """
    lows, highs = [], []
    for boat in race.get("boats", []):
        df = boat["positions"]
        if df.empty:
            continue
        lows.append(df["timestamp_ms"].iloc[0])
        highs.append(df["timestamp_ms"].iloc[-1])

    if not lows:
        return None
    return int(min(lows)), int(max(highs))


def clamp_cursor(cursor_ms: float, bounds: Tuple[int, int]) -> int:
    """Clamp a cursor into the inclusive [lower, upper] bounds."""
    lower, upper = bounds
    return int(min(max(cursor_ms, lower), upper))


def window(df: pd.DataFrame, cursor_ms: Optional[float]) -> pd.DataFrame:
    """
    Restrict a position frame to samples at or before the cursor.

    Args:
        df: Position frame sorted by timestamp.
        cursor_ms: Replay cursor, or None for the full trace.

    Returns:
        The leading slice of ``df`` with ``timestamp_ms <= cursor_ms``.
    """
    if cursor_ms is None:
        return df
    end = int(np.searchsorted(df["timestamp_ms"].to_numpy(), cursor_ms, side="right"))
    return df.iloc[:end]


def current_position_at(df: pd.DataFrame, cursor_ms: Optional[float]) -> Optional[Dict]:
    """
    Find a boat's current position at the cursor.

    Args:
        df: Position frame sorted by timestamp.
        cursor_ms: Replay cursor. None means the end of the trace.

    Returns:
        The last sample with ``timestamp <= cursor_ms`` as a record dict, or
        None when the boat has no sample yet (absent, not a zero point).
    """
    visible = window(df, cursor_ms)
    if visible.empty:
        return None
    return time_series.sample_to_record(visible.iloc[-1])


def positions_at(race: Dict, cursor_ms: Optional[float]) -> Dict[str, Optional[Dict]]:
    """Map every boat id to its current position at the cursor (or None)."""
    return {
        boat["id"]: current_position_at(boat["positions"], cursor_ms)
        for boat in race.get("boats", [])
    }


class ReplayClock:
    """
    Replay cursor state machine: ``idle -> playing -> idle``.

    While playing, each tick advances the cursor by ``step_ms``; reaching the
    upper bound clamps the cursor and returns the clock to idle. Seeking is
    allowed in any state and never changes it. Ticks are driven by an asyncio
    task when a loop is running; ``tick()`` can also be called directly.
    """

    def __init__(self, start_ms: int, end_ms: int,
                 step_ms: int = constants.DEFAULT_STEP_MS,
                 tick_interval_s: float = constants.DEFAULT_TICK_INTERVAL_S,
                 on_tick: Optional[Callable[[int], None]] = None):
        if end_ms < start_ms:
            raise ValueError(f"Replay end {end_ms} is before start {start_ms}")
        if step_ms <= 0:
            raise ValueError("Replay step must be positive")
        if tick_interval_s <= 0:
            raise ValueError("Replay tick interval must be positive")

        self.bounds = (int(start_ms), int(end_ms))
        self.step_ms = int(step_ms)
        self.tick_interval_s = tick_interval_s
        self.on_tick = on_tick
        self.cursor_ms = int(start_ms)
        self.state = IDLE
        self.closed = False
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def for_race(cls, race: Dict, **kwargs) -> Optional["ReplayClock"]:
        """Build a clock spanning the race's sample range, or None without samples."""
        bounds = time_range(race)
        if bounds is None:
            return None
        return cls(bounds[0], bounds[1], **kwargs)

    @property
    def playing(self) -> bool:
        return self.state == PLAYING

    @property
    def at_end(self) -> bool:
        return self.cursor_ms >= self.bounds[1]

    def play(self) -> None:
        """Start advancing the cursor; rewinds first when already at the end."""
        if self.closed:
            raise ReplayClosedError("Replay clock has been closed")
        if self.playing:
            return
        if self.at_end:
            self.cursor_ms = self.bounds[0]

        self.state = PLAYING
        logger.debug("Replay playing from %s", self.cursor_ms)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop: caller drives tick() manually
            return
        self._task = loop.create_task(self._run())

    def pause(self) -> None:
        """Stop the tick source immediately; safe from any state."""
        if self.playing:
            logger.debug("Replay paused at %s", self.cursor_ms)
        self.state = IDLE
        self._cancel_task()

    def seek(self, cursor_ms: float) -> int:
        """Move the cursor (clamped to bounds) without changing state."""
        self.cursor_ms = clamp_cursor(cursor_ms, self.bounds)
        return self.cursor_ms

    def reset(self) -> None:
        """Rewind to the lower bound and go idle."""
        self.pause()
        self.cursor_ms = self.bounds[0]

    def close(self) -> None:
        """Tear down the clock; no tick may mutate the cursor afterwards."""
        self.pause()
        self.closed = True

    def tick(self) -> int:
        """
        Advance the cursor by one step while playing.

        Returns:
            The cursor after the tick. Reaching or passing the upper bound
            clamps the cursor and moves the clock to idle.
        """
        if not self.playing:
            return self.cursor_ms

        self.cursor_ms = clamp_cursor(self.cursor_ms + self.step_ms, self.bounds)
        if self.at_end:
            logger.debug("Replay reached end of range at %s", self.cursor_ms)
            self.state = IDLE
            self._cancel_task()

        if self.on_tick is not None:
            self.on_tick(self.cursor_ms)
        return self.cursor_ms

    def snapshot(self) -> Dict:
        """Return a JSON-ready view of the clock state."""
        return {
            "state": self.state,
            "cursor": self.cursor_ms,
            "start": self.bounds[0],
            "end": self.bounds[1],
            "step_ms": self.step_ms,
        }

    async def _run(self) -> None:
        while self.playing:
            await asyncio.sleep(self.tick_interval_s)
            if not self.playing:
                break
            try:
                self.tick()
            except Exception:
                logger.exception("Replay tick failed at %s; pausing", self.cursor_ms)
                self.pause()

    def _cancel_task(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # Ending from inside the tick task: the loop exits on its own
        if task is not current:
            task.cancel()
