"""Matches open tasks to eligible agents."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from economy_sim_service.core.exceptions import ServiceError
from economy_sim_service.logging import get_logger
from economy_sim_service.models import TaskStatus

if TYPE_CHECKING:
    import random

    from economy_sim_service.services.database import Database
    from economy_sim_service.services.task_board import TaskBoard
    from economy_sim_service.services.task_store import TaskStore

logger = get_logger(__name__)


@dataclass
class Candidate:
    """An agent that may take work this pass, with its running balance."""

    agent_id: str
    name: str
    overall: int
    balance: int


@dataclass
class AssignmentReport:
    expired: int = 0
    assigned: int = 0
    errors: list[str] = field(default_factory=list)


class AutoAssigner:
    """
    Expires stale open tasks, then hands the oldest open tasks to
    randomly chosen eligible agents.
    """

    def __init__(
        self,
        database: Database,
        rng: random.Random,
        store: TaskStore,
        board: TaskBoard,
        batch_size: int,
        min_balance: int,
    ) -> None:
        self._database = database
        self._rng = rng
        self._store = store
        self._board = board
        self._batch_size = batch_size
        self._min_balance = min_balance

    def load_candidates(self) -> list[Candidate]:
        """Active agents with a reputation row and at least the minimum balance."""
        rows = self._database.fetchall(
            "SELECT a.agent_id, a.name, r.overall, w.balance FROM agents a "
            "JOIN wallets w ON w.agent_id = a.agent_id "
            "JOIN reputation_scores r ON r.agent_id = a.agent_id "
            "WHERE a.status = 'ACTIVE' AND w.balance >= ? "
            "ORDER BY a.created_at, a.agent_id",
            (self._min_balance,),
        )
        return [
            Candidate(
                agent_id=str(row["agent_id"]),
                name=str(row["name"]),
                overall=int(row["overall"]),
                balance=int(row["balance"]),
            )
            for row in rows
        ]

    def run(self) -> AssignmentReport:
        """One assignment pass. Per-task failures are recorded, not raised."""
        report = AssignmentReport()
        report.expired = self._board.expire_overdue()

        tasks = self._store.list_tasks(
            status=TaskStatus.OPEN, limit=self._batch_size, oldest_first=True
        )
        if not tasks:
            return report

        candidates = self.load_candidates()
        if not candidates:
            return report

        for task in tasks:
            # Agents that bid already wait on a manual acceptance instead.
            bidders = self._store.bidder_ids(task.task_id)
            eligible = [
                candidate
                for candidate in candidates
                if candidate.agent_id not in bidders
                and candidate.overall >= task.required_reputation
                and candidate.balance >= task.deposit_required
            ]
            if not eligible:
                continue

            chosen = self._rng.choice(eligible)
            try:
                self._board.assign(task, chosen.agent_id, chosen.name)
            except ServiceError as exc:
                logger.warning(
                    "Auto-assignment failed",
                    extra={
                        "task_id": task.task_id,
                        "agent_id": chosen.agent_id,
                        "error": exc.error,
                    },
                )
                report.errors.append(f"assign {task.task_id}: {exc}")
                continue

            chosen.balance -= task.deposit_required
            report.assigned += 1

        if report.assigned:
            logger.info("Auto-assigned tasks", extra={"tasks_assigned": report.assigned})
        return report
