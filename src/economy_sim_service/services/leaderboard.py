"""Leaderboard cache: four rankings rebuilt from a single snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from economy_sim_service.logging import get_logger
from economy_sim_service.models import AgentRole, AgentStatus, LeaderboardEntry, ReputationTier
from economy_sim_service.services.clock import parse_iso, to_iso

if TYPE_CHECKING:
    import sqlite3
    from collections.abc import Callable

    from economy_sim_service.services.clock import Clock
    from economy_sim_service.services.database import Database

# Public metric name -> rank column.
METRIC_COLUMNS: dict[str, str] = {
    "earnings": "rank_by_earnings",
    "reliability": "rank_by_reliability",
    "longevity": "rank_by_longevity",
    "success_rate": "rank_by_success_rate",
}

_ENTRY_COLUMNS: tuple[str, ...] = (
    "agent_id",
    "agent_name",
    "agent_role",
    "agent_status",
    "total_earnings",
    "reliability",
    "active_days",
    "success_rate",
    "tier",
    "current_streak",
    "rank_by_earnings",
    "rank_by_reliability",
    "rank_by_longevity",
    "rank_by_success_rate",
    "updated_at",
)
_ENTRY_COLUMNS_SQL = ", ".join(_ENTRY_COLUMNS)
_UPSERT_SQL = (
    f"INSERT INTO leaderboard_entries ({_ENTRY_COLUMNS_SQL}) "  # nosec B608
    f"VALUES ({', '.join('?' for _ in _ENTRY_COLUMNS)}) "
    "ON CONFLICT(agent_id) DO UPDATE SET "
    + ", ".join(f"{column} = excluded.{column}" for column in _ENTRY_COLUMNS[1:])
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class AgentSnapshot:
    """One agent's stats as read at the start of a recompute."""

    agent_id: str
    name: str
    role: AgentRole
    status: AgentStatus
    created_at: str
    total_earned: int
    reliability: int
    tier: ReputationTier
    current_streak: int
    tasks_completed: int
    total_tasks_attempted: int

    @property
    def success_rate(self) -> float:
        if self.total_tasks_attempted == 0:
            return 0.0
        return self.tasks_completed / self.total_tasks_attempted


def dense_ranks(
    snapshots: list[AgentSnapshot],
    primary: Callable[[AgentSnapshot], float],
) -> dict[str, int]:
    """
    Rank 1..N by ``primary`` (smaller first), ties broken by created_at then agent_id.
    """
    ordered = sorted(snapshots, key=lambda s: (primary(s), s.created_at, s.agent_id))
    return {snapshot.agent_id: rank for rank, snapshot in enumerate(ordered, start=1)}


class Leaderboard:
    """Owns the ``leaderboard_entries`` table and nothing else."""

    def __init__(self, database: Database, clock: Clock, batch_size: int) -> None:
        self._database = database
        self._clock = clock
        self._batch_size = batch_size

    def snapshot(self) -> list[AgentSnapshot]:
        """Active agents joined with their wallet and reputation, in one read."""
        rows = self._database.fetchall(
            "SELECT a.agent_id, a.name, a.role, a.status, a.created_at, w.total_earned, "
            "r.reliability, r.tier, r.current_streak, r.tasks_completed, "
            "r.total_tasks_attempted FROM agents a "
            "JOIN wallets w ON w.agent_id = a.agent_id "
            "JOIN reputation_scores r ON r.agent_id = a.agent_id "
            "WHERE a.status = 'ACTIVE' ORDER BY a.created_at, a.agent_id"
        )
        return [
            AgentSnapshot(
                agent_id=str(row["agent_id"]),
                name=str(row["name"]),
                role=AgentRole(row["role"]),
                status=AgentStatus(row["status"]),
                created_at=str(row["created_at"]),
                total_earned=int(row["total_earned"]),
                reliability=int(row["reliability"]),
                tier=ReputationTier(row["tier"]),
                current_streak=int(row["current_streak"]),
                tasks_completed=int(row["tasks_completed"]),
                total_tasks_attempted=int(row["total_tasks_attempted"]),
            )
            for row in rows
        ]

    def recompute(self) -> int:
        """
        Rebuild every entry from a fresh snapshot.

        Entries are upserted in batches, one transaction per batch. The
        first batch's transaction also drops entries for agents that are
        no longer in the snapshot.

        Returns:
            Number of entries written.
        """
        snapshots = self.snapshot()
        now_dt = self._clock.now()
        now = to_iso(now_dt)

        by_earnings = dense_ranks(snapshots, lambda s: -s.total_earned)
        by_reliability = dense_ranks(snapshots, lambda s: -s.reliability)
        # Oldest first; the created_at tie-break does the ordering.
        by_longevity = dense_ranks(snapshots, lambda s: 0)
        by_success_rate = dense_ranks(snapshots, lambda s: -s.success_rate)

        rows: list[tuple[object, ...]] = []
        for s in snapshots:
            active_days = int((now_dt - parse_iso(s.created_at)).total_seconds() // 86400)
            rows.append(
                (
                    s.agent_id,
                    s.name,
                    s.role.value,
                    s.status.value,
                    s.total_earned,
                    s.reliability,
                    active_days,
                    s.success_rate,
                    s.tier.value,
                    s.current_streak,
                    by_earnings[s.agent_id],
                    by_reliability[s.agent_id],
                    by_longevity[s.agent_id],
                    by_success_rate[s.agent_id],
                    now,
                )
            )

        keep_ids = [s.agent_id for s in snapshots]
        if not rows:
            with self._database.transaction() as conn:
                self._delete_missing(conn, keep_ids)
            return 0

        for start in range(0, len(rows), self._batch_size):
            with self._database.transaction() as conn:
                if start == 0:
                    self._delete_missing(conn, keep_ids)
                conn.executemany(_UPSERT_SQL, rows[start : start + self._batch_size])

        logger.info("Leaderboard recomputed", extra={"entries": len(rows)})
        return len(rows)

    @staticmethod
    def _delete_missing(conn: sqlite3.Connection, keep_ids: list[str]) -> None:
        if not keep_ids:
            conn.execute("DELETE FROM leaderboard_entries")
            return
        placeholders = ", ".join("?" for _ in keep_ids)
        conn.execute(
            f"DELETE FROM leaderboard_entries WHERE agent_id NOT IN ({placeholders})",  # nosec B608
            tuple(keep_ids),
        )

    def update_status(self, agent_id: str, status: AgentStatus) -> None:
        """Patch only the status column of an existing entry."""
        with self._database.transaction() as conn:
            conn.execute(
                "UPDATE leaderboard_entries SET agent_status = ?, updated_at = ? "
                "WHERE agent_id = ?",
                (status.value, to_iso(self._clock.now()), agent_id),
            )

    def list_entries(self, metric: str, limit: int) -> list[LeaderboardEntry]:
        """
        Entries ordered by the rank for ``metric``.

        Raises:
            ValueError: If ``metric`` is not one of METRIC_COLUMNS.
        """
        column = METRIC_COLUMNS.get(metric)
        if column is None:
            msg = f"Unknown leaderboard metric: {metric}"
            raise ValueError(msg)
        rows = self._database.fetchall(
            f"SELECT {_ENTRY_COLUMNS_SQL} FROM leaderboard_entries "  # nosec B608
            f"ORDER BY {column}, agent_id LIMIT ?",
            (limit,),
        )
        return [
            LeaderboardEntry(
                agent_id=str(row["agent_id"]),
                agent_name=str(row["agent_name"]),
                agent_role=AgentRole(row["agent_role"]),
                agent_status=AgentStatus(row["agent_status"]),
                total_earnings=int(row["total_earnings"]),
                reliability=int(row["reliability"]),
                active_days=int(row["active_days"]),
                success_rate=float(row["success_rate"]),
                tier=ReputationTier(row["tier"]),
                current_streak=int(row["current_streak"]),
                rank_by_earnings=int(row["rank_by_earnings"]),
                rank_by_reliability=int(row["rank_by_reliability"]),
                rank_by_longevity=int(row["rank_by_longevity"]),
                rank_by_success_rate=int(row["rank_by_success_rate"]),
                updated_at=str(row["updated_at"]),
            )
            for row in rows
        ]
