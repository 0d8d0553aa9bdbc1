from __future__ import annotations

import asyncio

import pytest

from conftest import make_boat, make_race, north_track
from regatta import replay
from regatta.time_series import extract_position_frame


def _race() -> dict:
    return make_race([
        make_boat("A", north_track(10, [0, 5000, 10000])),
        make_boat("B", north_track(8, [2000, 7000, 12000])),
        make_boat("C", []),
    ])


def test_time_range_spans_all_boats() -> None:
    assert replay.time_range(_race()) == (0, 12000)
    assert replay.time_range(make_race([make_boat("C", [])])) is None


def test_clamp_cursor() -> None:
    assert replay.clamp_cursor(-50, (0, 100)) == 0
    assert replay.clamp_cursor(50, (0, 100)) == 50
    assert replay.clamp_cursor(500, (0, 100)) == 100


def test_current_position_is_last_sample_at_or_before_cursor() -> None:
    df = extract_position_frame(north_track(10, [1000, 5000, 10000]))

    assert replay.current_position_at(df, 999) is None
    assert replay.current_position_at(df, 1000)["timestamp"] == 1000
    assert replay.current_position_at(df, 7000)["timestamp"] == 5000
    assert replay.current_position_at(df, 99999)["timestamp"] == 10000


def test_current_position_is_monotone_in_cursor() -> None:
    df = extract_position_frame(north_track(10, [1000, 5000, 5000, 10000, 14000]))

    previous = None
    for cursor in range(0, 16000, 250):
        current = replay.current_position_at(df, cursor)
        if current is None:
            assert previous is None
            continue
        assert current["timestamp"] <= cursor
        if previous is not None:
            assert current["timestamp"] >= previous["timestamp"]
        previous = current


def test_positions_at_marks_absent_boats() -> None:
    positions = replay.positions_at(_race(), 1000)

    assert positions["A"]["timestamp"] == 0
    assert positions["B"] is None
    assert positions["C"] is None


def test_clock_ticks_to_end_and_goes_idle() -> None:
    seen = []
    clock = replay.ReplayClock(0, 250, step_ms=100, on_tick=seen.append)

    clock.play()
    assert clock.state == replay.PLAYING
    assert [clock.tick(), clock.tick()] == [100, 200]
    assert clock.tick() == 250
    assert clock.state == replay.IDLE
    assert clock.tick() == 250
    assert seen == [100, 200, 250]


def test_clock_seek_clamps_without_changing_state() -> None:
    clock = replay.ReplayClock(1000, 2000, step_ms=100)

    assert clock.seek(5000) == 2000
    assert clock.state == replay.IDLE

    clock.play()  # at the end: rewinds first
    assert clock.cursor_ms == 1000
    clock.seek(-1)
    assert clock.cursor_ms == 1000
    assert clock.state == replay.PLAYING


def test_clock_pause_and_reset() -> None:
    clock = replay.ReplayClock(0, 1000, step_ms=100)

    clock.pause()  # safe while idle
    clock.play()
    clock.pause()
    assert clock.state == replay.IDLE
    assert clock.tick() == 0

    clock.play()
    clock.tick()
    clock.reset()
    assert clock.cursor_ms == 0
    assert clock.state == replay.IDLE


def test_closed_clock_refuses_to_play() -> None:
    clock = replay.ReplayClock(0, 1000)
    clock.close()

    with pytest.raises(replay.ReplayClosedError):
        clock.play()


def test_clock_rejects_inverted_range() -> None:
    with pytest.raises(ValueError):
        replay.ReplayClock(10, 5)


def test_clock_for_race_uses_time_range() -> None:
    clock = replay.ReplayClock.for_race(_race(), step_ms=500)

    assert clock.snapshot() == {"state": "idle", "cursor": 0, "start": 0, "end": 12000, "step_ms": 500}
    assert replay.ReplayClock.for_race(make_race([])) is None


def test_clock_runs_on_event_loop_until_end() -> None:
    async def scenario() -> replay.ReplayClock:
        clock = replay.ReplayClock(0, 1000, step_ms=300, tick_interval_s=0.001)
        clock.play()
        for _ in range(500):
            if not clock.playing:
                break
            await asyncio.sleep(0.005)
        return clock

    clock = asyncio.run(scenario())

    assert clock.state == replay.IDLE
    assert clock.cursor_ms == 1000


def test_pause_right_after_play_stops_ticks() -> None:
    async def scenario() -> replay.ReplayClock:
        clock = replay.ReplayClock(0, 10_000, step_ms=100, tick_interval_s=0.001)
        clock.play()
        clock.pause()
        await asyncio.sleep(0.05)
        return clock

    clock = asyncio.run(scenario())

    assert clock.cursor_ms == 0
    assert clock.state == replay.IDLE


def test_failing_tick_callback_pauses_clock(caplog) -> None:
    def on_tick(cursor_ms: int) -> None:
        raise RuntimeError(f"subscriber failed at {cursor_ms}")

    async def scenario() -> replay.ReplayClock:
        clock = replay.ReplayClock(0, 10_000, step_ms=100, tick_interval_s=0.001, on_tick=on_tick)
        clock.play()
        await asyncio.sleep(0.05)
        return clock

    with caplog.at_level("ERROR", logger="regatta.replay"):
        clock = asyncio.run(scenario())

    assert clock.state == replay.IDLE
    assert clock.cursor_ms == 100
    assert "Replay tick failed" in caplog.text
