"""SQLite-backed task and bid storage."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING, Any

from economy_sim_service.models import (
    TASK_TRANSITIONS,
    Bid,
    BidStatus,
    RiskRating,
    Task,
    TaskCategory,
    TaskStatus,
)

if TYPE_CHECKING:
    from economy_sim_service.services.database import Database


class DuplicateBidError(Exception):
    """Raised when an agent bids twice on the same task."""


class InvalidTransitionError(Exception):
    """Raised when a status change is not an edge of the task lifecycle."""


class TaskStore:
    """Storage for tasks and bids. Business rules live in TaskBoard."""

    _TASK_COLUMNS: tuple[str, ...] = (
        "task_id",
        "title",
        "description",
        "category",
        "difficulty",
        "reward",
        "deposit_required",
        "slash_percentage",
        "risk_rating",
        "required_reputation",
        "execution_window_minutes",
        "expires_at",
        "status",
        "poster_id",
        "assigned_agent_id",
        "created_at",
        "accepted_at",
        "completed_at",
        "closed_at",
        "quality_score",
    )
    _TASK_COLUMNS_SQL = ", ".join(_TASK_COLUMNS)
    _TASK_INSERT_SQL = (
        f"INSERT INTO tasks ({_TASK_COLUMNS_SQL}) "  # nosec B608
        f"VALUES ({', '.join('?' for _ in _TASK_COLUMNS)})"
    )
    _TASK_SELECT_BASE_SQL = f"SELECT {_TASK_COLUMNS_SQL} FROM tasks"  # nosec B608

    # Columns a status transition may set alongside the status itself.
    _TRANSITION_COLUMNS: frozenset[str] = frozenset(
        {"assigned_agent_id", "accepted_at", "completed_at", "closed_at", "quality_score"}
    )

    _BID_COLUMNS_SQL = (
        "bid_id, task_id, agent_id, proposed_reward, estimated_duration_minutes, message, "
        "status, created_at, responded_at"
    )

    def __init__(self, database: Database) -> None:
        self._database = database

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            task_id=str(row["task_id"]),
            title=str(row["title"]),
            description=str(row["description"]),
            category=TaskCategory(row["category"]),
            difficulty=int(row["difficulty"]),
            reward=int(row["reward"]),
            deposit_required=int(row["deposit_required"]),
            slash_percentage=int(row["slash_percentage"]),
            risk_rating=RiskRating(row["risk_rating"]),
            required_reputation=int(row["required_reputation"]),
            execution_window_minutes=int(row["execution_window_minutes"]),
            expires_at=str(row["expires_at"]),
            status=TaskStatus(row["status"]),
            poster_id=str(row["poster_id"]),
            assigned_agent_id=row["assigned_agent_id"],
            created_at=str(row["created_at"]),
            accepted_at=row["accepted_at"],
            completed_at=row["completed_at"],
            closed_at=row["closed_at"],
            quality_score=row["quality_score"],
        )

    @staticmethod
    def _row_to_bid(row: sqlite3.Row) -> Bid:
        return Bid(
            bid_id=str(row["bid_id"]),
            task_id=str(row["task_id"]),
            agent_id=str(row["agent_id"]),
            proposed_reward=int(row["proposed_reward"]),
            estimated_duration_minutes=int(row["estimated_duration_minutes"]),
            message=row["message"],
            status=BidStatus(row["status"]),
            created_at=str(row["created_at"]),
            responded_at=row["responded_at"],
        )

    # --- Tasks ----------------------------------------------------------------

    def insert_task(self, task: Task) -> None:
        """Insert a new task row."""
        values: list[Any] = []
        for column in self._TASK_COLUMNS:
            value = getattr(task, column)
            values.append(value.value if hasattr(value, "value") else value)
        with self._database.transaction() as conn:
            conn.execute(self._TASK_INSERT_SQL, tuple(values))

    def get_task(self, task_id: str) -> Task | None:
        """Fetch a task by ID."""
        row = self._database.fetchone(
            self._TASK_SELECT_BASE_SQL + " WHERE task_id = ?",
            (task_id,),
        )
        if row is None:
            return None
        return self._row_to_task(row)

    def list_tasks(
        self,
        status: TaskStatus | None = None,
        category: TaskCategory | None = None,
        poster_id: str | None = None,
        assigned_agent_id: str | None = None,
        limit: int | None = None,
        *,
        oldest_first: bool = False,
    ) -> list[Task]:
        """List tasks with optional filters, newest first unless ``oldest_first``."""
        query = self._TASK_SELECT_BASE_SQL
        clauses: list[str] = []
        params: list[object] = []

        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if category is not None:
            clauses.append("category = ?")
            params.append(category.value)
        if poster_id is not None:
            clauses.append("poster_id = ?")
            params.append(poster_id)
        if assigned_agent_id is not None:
            clauses.append("assigned_agent_id = ?")
            params.append(assigned_agent_id)

        if clauses:
            query += " WHERE " + " AND ".join(clauses)

        direction = "ASC" if oldest_first else "DESC"
        query += f" ORDER BY created_at {direction}, task_id {direction}"

        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        return [self._row_to_task(row) for row in self._database.fetchall(query, tuple(params))]

    def list_assigned(self, limit: int) -> list[Task]:
        """Assigned tasks in assignment order."""
        rows = self._database.fetchall(
            self._TASK_SELECT_BASE_SQL
            + " WHERE status = 'ASSIGNED' ORDER BY accepted_at, task_id LIMIT ?",
            (limit,),
        )
        return [self._row_to_task(row) for row in rows]

    def list_overdue_open(self, now: str) -> list[Task]:
        """Open tasks whose expiry has passed."""
        rows = self._database.fetchall(
            self._TASK_SELECT_BASE_SQL
            + " WHERE status = 'OPEN' AND expires_at <= ? ORDER BY expires_at, task_id",
            (now,),
        )
        return [self._row_to_task(row) for row in rows]

    def count_by_status(self) -> dict[str, int]:
        """Task counts keyed by status (every status present)."""
        counts = {status.value: 0 for status in TaskStatus}
        for row in self._database.fetchall("SELECT status, COUNT(*) FROM tasks GROUP BY status"):
            counts[str(row[0])] = int(row[1])
        return counts

    def count_tasks(self, status: TaskStatus | None = None) -> int:
        """Count tasks, optionally only those in ``status``."""
        if status is None:
            return int(self._database.scalar("SELECT COUNT(*) FROM tasks"))
        return int(
            self._database.scalar("SELECT COUNT(*) FROM tasks WHERE status = ?", (status.value,))
        )

    def total_completed_volume(self) -> int:
        """Sum of rewards over completed tasks."""
        return int(
            self._database.scalar(
                "SELECT COALESCE(SUM(reward), 0) FROM tasks WHERE status = 'COMPLETED'"
            )
        )

    def transition(
        self,
        task_id: str,
        expected_status: TaskStatus,
        new_status: TaskStatus,
        updates: dict[str, Any] | None = None,
    ) -> int:
        """
        Move a task along one edge of its lifecycle.

        The write is guarded by ``expected_status``, so it affects zero rows
        when another writer moved the task first.

        Returns:
            Number of rows changed (0 or 1).

        Raises:
            InvalidTransitionError: If the edge is not part of the lifecycle.
            ValueError: If ``updates`` names a column a transition may not set.
        """
        if new_status not in TASK_TRANSITIONS[expected_status]:
            msg = f"Illegal task transition {expected_status.value} -> {new_status.value}"
            raise InvalidTransitionError(msg)

        extra = dict(updates or {})
        if any(column not in self._TRANSITION_COLUMNS for column in extra):
            msg = "Attempted to update a task column outside a transition"
            raise ValueError(msg)

        assignments = ["status = ?"] + [f"{column} = ?" for column in extra]
        params: list[object] = [new_status.value, *extra.values(), task_id, expected_status.value]
        query = (
            "UPDATE tasks SET " + ", ".join(assignments)  # nosec B608
            + " WHERE task_id = ? AND status = ?"
        )

        with self._database.transaction() as conn:
            cursor = conn.execute(query, tuple(params))
            return int(cursor.rowcount)

    # --- Bids -----------------------------------------------------------------

    def insert_bid(self, bid: Bid) -> None:
        """
        Insert a bid.

        Raises:
            DuplicateBidError: If the agent already bid on this task.
        """
        try:
            with self._database.transaction() as conn:
                conn.execute(
                    f"INSERT INTO bids ({self._BID_COLUMNS_SQL}) "  # nosec B608
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        bid.bid_id,
                        bid.task_id,
                        bid.agent_id,
                        bid.proposed_reward,
                        bid.estimated_duration_minutes,
                        bid.message,
                        bid.status.value,
                        bid.created_at,
                        bid.responded_at,
                    ),
                )
        except sqlite3.IntegrityError as exc:
            if "unique" in str(exc).lower():
                raise DuplicateBidError("This agent already bid on this task") from exc
            raise

    def get_bid(self, bid_id: str, task_id: str) -> Bid | None:
        """Fetch a bid by bid_id and task_id."""
        row = self._database.fetchone(
            f"SELECT {self._BID_COLUMNS_SQL} FROM bids "  # nosec B608
            "WHERE bid_id = ? AND task_id = ?",
            (bid_id, task_id),
        )
        if row is None:
            return None
        return self._row_to_bid(row)

    def get_bids_for_task(self, task_id: str) -> list[Bid]:
        """All bids for a task, oldest first."""
        rows = self._database.fetchall(
            f"SELECT {self._BID_COLUMNS_SQL} FROM bids "  # nosec B608
            "WHERE task_id = ? ORDER BY created_at, bid_id",
            (task_id,),
        )
        return [self._row_to_bid(row) for row in rows]

    def bidder_ids(self, task_id: str) -> set[str]:
        """Agents holding a bid of any status on the task."""
        rows = self._database.fetchall("SELECT agent_id FROM bids WHERE task_id = ?", (task_id,))
        return {str(row["agent_id"]) for row in rows}

    def set_bid_status(
        self,
        bid_id: str,
        expected_status: BidStatus,
        new_status: BidStatus,
        responded_at: str,
    ) -> int:
        """Guarded bid status change. Returns rows changed."""
        with self._database.transaction() as conn:
            cursor = conn.execute(
                "UPDATE bids SET status = ?, responded_at = ? WHERE bid_id = ? AND status = ?",
                (new_status.value, responded_at, bid_id, expected_status.value),
            )
            return int(cursor.rowcount)

    def reject_pending_bids(self, task_id: str, responded_at: str) -> int:
        """Reject every still-pending bid on a task. Returns rows changed."""
        with self._database.transaction() as conn:
            cursor = conn.execute(
                "UPDATE bids SET status = 'REJECTED', responded_at = ? "
                "WHERE task_id = ? AND status = 'PENDING'",
                (responded_at, task_id),
            )
            return int(cursor.rowcount)
