"""
Tests for countdown derivation and the local ticker
"""
import asyncio

from classroom_arena.core.timer import CountdownTicker, displayed_remaining
from classroom_arena.models import SessionConfig, SessionStatus, idle_config
from classroom_arena.utils import format_clock

from conftest import FakeClock, START_MS


def running(end_offset_ms: int) -> SessionConfig:
    return SessionConfig(status=SessionStatus.ACTIVE, is_running=True, end_time=START_MS + end_offset_ms)


def paused(seconds: int) -> SessionConfig:
    return SessionConfig(status=SessionStatus.ACTIVE, is_running=False, remaining_seconds=seconds)


def test_running_floors_to_whole_seconds():
    assert displayed_remaining(running(10_999), START_MS) == 10


def test_running_never_negative():
    assert displayed_remaining(running(-5_000), START_MS) == 0


def test_running_without_end_time_is_zero():
    config = SessionConfig(status=SessionStatus.ACTIVE, is_running=True, end_time=None)
    assert displayed_remaining(config, START_MS) == 0


def test_paused_ignores_end_time():
    config = paused(300)
    config.end_time = START_MS + 1_000
    assert displayed_remaining(config, START_MS + 999_999) == 300


def test_not_active_is_zero():
    assert displayed_remaining(idle_config(), START_MS) == 0
    assert displayed_remaining(None, START_MS) == 0
    revealed = SessionConfig(status=SessionStatus.REVEALED, is_running=True, end_time=START_MS + 60_000)
    assert displayed_remaining(revealed, START_MS) == 0


def test_late_joiner_computes_from_end_time():
    """Two observers joining at different times agree on the same instant"""
    config = running(25 * 60 * 1000)
    now = START_MS + 10 * 60 * 1000
    assert displayed_remaining(config, now) == 15 * 60


def test_format_clock():
    assert format_clock(905) == "15:05"
    assert format_clock(0) == "0:00"
    assert format_clock(-3) == "0:00"
    assert format_clock(3600) == "60:00"


def test_ticker_counts_down_and_stops_at_zero():
    clock = FakeClock()
    ticks = []

    def on_tick(remaining):
        ticks.append(remaining)
        clock.advance(1)

    async def scenario():
        ticker = CountdownTicker(clock, on_tick, interval=0.001)
        ticker.reconcile(running(3_000))
        for _ in range(200):
            if not ticker.is_ticking:
                break
            await asyncio.sleep(0.005)
        return ticker

    ticker = asyncio.run(scenario())
    assert ticks[0] == 3
    assert ticks[-1] == 0
    assert ticks == sorted(ticks, reverse=True)
    assert not ticker.is_ticking


def test_ticker_does_not_tick_while_paused():
    clock = FakeClock()
    ticks = []

    async def scenario():
        ticker = CountdownTicker(clock, ticks.append, interval=0.001)
        ticker.reconcile(paused(42))
        await asyncio.sleep(0.02)
        return ticker

    ticker = asyncio.run(scenario())
    assert ticks == [42]
    assert not ticker.is_ticking


def test_ticker_keeps_one_loop_per_mode():
    clock = FakeClock()

    async def scenario():
        ticker = CountdownTicker(clock, lambda r: None, interval=10)
        ticker.reconcile(running(60_000))
        first = ticker._task
        ticker.reconcile(running(90_000))
        same = ticker._task is first
        ticker.reconcile(paused(30))
        stopped = not ticker.is_ticking
        ticker.close()
        return same, stopped, ticker.remaining

    same, stopped, remaining = asyncio.run(scenario())
    assert same is True
    assert stopped is True
    assert remaining == 30
