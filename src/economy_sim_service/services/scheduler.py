"""Tick lock: one tick at a time, no closer together than a minimum interval."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator
    from datetime import datetime

    from economy_sim_service.services.clock import Clock

SKIP_BUSY = "busy"
SKIP_TOO_SOON = "too_soon"


class TickScheduler:
    """
    Guards the tick body.

    ``claim()`` never blocks: a caller that finds the lock held, or that
    arrives before the minimum interval has passed since the last tick
    started, is told why and should skip. The lock is process-local.
    """

    def __init__(self, clock: Clock, min_interval_seconds: float) -> None:
        self._clock = clock
        self._min_interval = timedelta(seconds=min_interval_seconds)
        self._lock = threading.Lock()
        self._last_run: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    @property
    def last_run(self) -> datetime | None:
        return self._last_run

    @contextmanager
    def claim(self) -> Iterator[str | None]:
        """
        Yield a skip reason, or None when the caller holds the tick.

        The lock is released when the block exits.
        """
        if not self._lock.acquire(blocking=False):
            yield SKIP_BUSY
            return
        try:
            now = self._clock.now()
            if self._last_run is not None and now - self._last_run < self._min_interval:
                yield SKIP_TOO_SOON
                return
            self._last_run = now
            yield None
        finally:
            self._lock.release()

    def reset(self) -> None:
        """Forget the last run so the next claim is not throttled."""
        self._last_run = None
