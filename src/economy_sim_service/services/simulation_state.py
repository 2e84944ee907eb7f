"""Persisted singleton that paces the simulation."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from economy_sim_service.models import SimulationState
from economy_sim_service.services.clock import parse_iso, to_iso

if TYPE_CHECKING:
    from datetime import datetime

    from economy_sim_service.services.clock import Clock
    from economy_sim_service.services.database import Database

_STATE_ID = "singleton"


def should_trigger(last: str | None, interval_seconds: float, now: datetime) -> bool:
    """True if the action never ran or its cooldown has elapsed."""
    if last is None:
        return True
    return now - parse_iso(last) >= timedelta(seconds=interval_seconds)


class SimulationStateStore:
    """Reads and writes the ``simulation_state`` singleton row."""

    def __init__(self, database: Database, clock: Clock) -> None:
        self._database = database
        self._clock = clock

    def _ensure(self) -> None:
        with self._database.transaction() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO simulation_state (id, tick_count, is_paused, updated_at) "
                "VALUES (?, 0, 0, ?)",
                (_STATE_ID, to_iso(self._clock.now())),
            )

    def _update(self, assignments: str, params: tuple[object, ...] = ()) -> None:
        self._ensure()
        with self._database.transaction() as conn:
            conn.execute(
                f"UPDATE simulation_state SET {assignments}, updated_at = ? "  # nosec B608
                "WHERE id = ?",
                (*params, to_iso(self._clock.now()), _STATE_ID),
            )

    def get(self) -> SimulationState:
        """Current state, creating the row on first use."""
        self._ensure()
        row = self._database.fetchone(
            "SELECT tick_count, is_paused, last_task_batch_at, last_leaderboard_update_at, "
            "last_maintenance_at, updated_at FROM simulation_state WHERE id = ?",
            (_STATE_ID,),
        )
        if row is None:
            msg = "Simulation state row is missing"
            raise RuntimeError(msg)
        return SimulationState(
            tick_count=int(row["tick_count"]),
            is_paused=bool(row["is_paused"]),
            last_task_batch_at=row["last_task_batch_at"],
            last_leaderboard_update_at=row["last_leaderboard_update_at"],
            last_maintenance_at=row["last_maintenance_at"],
            updated_at=str(row["updated_at"]),
        )

    def increment_tick(self) -> int:
        """Bump and return the tick counter."""
        self._ensure()
        with self._database.transaction() as conn:
            conn.execute(
                "UPDATE simulation_state SET tick_count = tick_count + 1, updated_at = ? "
                "WHERE id = ?",
                (to_iso(self._clock.now()), _STATE_ID),
            )
            row = conn.execute(
                "SELECT tick_count FROM simulation_state WHERE id = ?", (_STATE_ID,)
            ).fetchone()
        return int(row[0])

    def is_paused(self) -> bool:
        return self.get().is_paused

    def pause(self) -> None:
        self._update("is_paused = 1")

    def resume(self) -> None:
        self._update("is_paused = 0")

    def reset(self) -> None:
        """Zero the tick counter, clear every cooldown, and unpause."""
        self._update(
            "tick_count = 0, is_paused = 0, last_task_batch_at = NULL, "
            "last_leaderboard_update_at = NULL, last_maintenance_at = NULL"
        )

    def record_task_batch(self, now: datetime) -> None:
        self._update("last_task_batch_at = ?", (to_iso(now),))

    def record_leaderboard_update(self, now: datetime) -> None:
        self._update("last_leaderboard_update_at = ?", (to_iso(now),))

    def record_maintenance(self, now: datetime) -> None:
        self._update("last_maintenance_at = ?", (to_iso(now),))
