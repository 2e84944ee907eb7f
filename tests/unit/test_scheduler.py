"""Unit tests for the tick lock."""

from __future__ import annotations

import pytest

from economy_sim_service.services.scheduler import SKIP_BUSY, SKIP_TOO_SOON, TickScheduler
from tests.helpers import START, FakeClock


@pytest.mark.unit
def test_back_to_back_claims() -> None:
    clock = FakeClock()
    scheduler = TickScheduler(clock, min_interval_seconds=3)

    with scheduler.claim() as first:
        assert first is None
        assert scheduler.is_running
    with scheduler.claim() as second:
        assert second == SKIP_TOO_SOON

    assert not scheduler.is_running
    assert scheduler.last_run == START


@pytest.mark.unit
def test_claim_after_interval() -> None:
    clock = FakeClock()
    scheduler = TickScheduler(clock, min_interval_seconds=3)
    with scheduler.claim():
        pass

    clock.advance(seconds=3)
    with scheduler.claim() as reason:
        assert reason is None
    assert scheduler.last_run == clock.now()


@pytest.mark.unit
def test_busy_while_held() -> None:
    scheduler = TickScheduler(FakeClock(), min_interval_seconds=0)
    with scheduler.claim() as outer:
        assert outer is None
        with scheduler.claim() as inner:
            assert inner == SKIP_BUSY
    with scheduler.claim() as after:
        assert after is None


@pytest.mark.unit
def test_lock_released_on_error() -> None:
    scheduler = TickScheduler(FakeClock(), min_interval_seconds=0)
    with pytest.raises(RuntimeError), scheduler.claim():
        raise RuntimeError("boom")
    assert not scheduler.is_running


@pytest.mark.unit
def test_reset_forgets_last_run() -> None:
    scheduler = TickScheduler(FakeClock(), min_interval_seconds=60)
    with scheduler.claim():
        pass
    scheduler.reset()
    assert scheduler.last_run is None
    with scheduler.claim() as reason:
        assert reason is None
