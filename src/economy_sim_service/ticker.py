"""Headless ticker: drives the engine on a fixed cadence."""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

from economy_sim_service.logging import get_logger

if TYPE_CHECKING:
    from economy_sim_service.services.engine import SimulationEngine

logger = get_logger(__name__)


class TickerLoop:
    """
    Calls ``engine.tick()`` every ``interval_seconds`` until stopped.

    The tick itself runs in a worker thread so the event loop stays free
    to react to shutdown signals.
    """

    def __init__(self, engine: SimulationEngine, interval_seconds: float) -> None:
        self._engine = engine
        self._interval = interval_seconds
        self._stopped = asyncio.Event()
        self._ticks_run = 0

    @property
    def ticks_run(self) -> int:
        return self._ticks_run

    async def run(self) -> None:
        """Run the loop until ``stop()`` is called."""
        logger.info("Ticker starting", extra={"interval_seconds": self._interval})

        while not self._stopped.is_set():
            try:
                result = await asyncio.to_thread(self._engine.tick)
                self._ticks_run += 1
                if result.errors:
                    logger.warning(
                        "Tick reported errors",
                        extra={"tick_count": result.tick_count, "errors": result.errors},
                    )
            except asyncio.CancelledError:
                logger.info("Ticker cancelled, shutting down")
                self._stopped.set()
            except Exception:
                logger.exception("Unhandled error in ticker cycle")

            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stopped.wait(), timeout=self._interval)

        logger.info("Ticker stopped", extra={"ticks_run": self._ticks_run})

    def stop(self) -> None:
        """Drain: later ticks return at once and the loop exits after its current cycle."""
        self._engine.begin_shutdown()
        self._stopped.set()
