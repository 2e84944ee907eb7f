"""Unit tests for the headless ticker loop."""

from __future__ import annotations

import asyncio

import pytest

from economy_sim_service.ticker import TickerLoop


async def _wait_for_ticks(loop: TickerLoop, count: int) -> None:
    while loop.ticks_run < count:
        await asyncio.sleep(0.005)


@pytest.mark.unit
async def test_ticker_runs_until_stopped(engine) -> None:
    ticker = TickerLoop(engine, interval_seconds=0.01)
    task = asyncio.create_task(ticker.run())

    await asyncio.wait_for(_wait_for_ticks(ticker, 3), timeout=5)
    ticker.stop()
    await asyncio.wait_for(task, timeout=5)

    # The fake clock never moves, so only the first trigger ran a tick.
    assert engine.state.get().tick_count == 1
    assert ticker.ticks_run >= 3
    assert engine.is_shutting_down()


@pytest.mark.unit
async def test_ticker_survives_engine_errors(engine, monkeypatch) -> None:
    calls = {"n": 0}

    def _boom():
        calls["n"] += 1
        raise RuntimeError("database locked")

    monkeypatch.setattr(engine, "tick", _boom)
    ticker = TickerLoop(engine, interval_seconds=0.01)
    task = asyncio.create_task(ticker.run())

    async def _wait_for_calls() -> None:
        while calls["n"] < 2:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_wait_for_calls(), timeout=5)
    ticker.stop()
    await asyncio.wait_for(task, timeout=5)

    assert ticker.ticks_run == 0


@pytest.mark.unit
async def test_stop_before_run_exits_immediately(engine) -> None:
    ticker = TickerLoop(engine, interval_seconds=60)
    ticker.stop()
    await asyncio.wait_for(ticker.run(), timeout=5)
    assert ticker.ticks_run == 0
