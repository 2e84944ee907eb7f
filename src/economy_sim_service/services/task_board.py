"""Task board business logic: bidding, acceptance, assignment, cancellation, expiry."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from economy_sim_service.core.exceptions import ServiceError
from economy_sim_service.logging import get_logger
from economy_sim_service.models import AgentStatus, Bid, BidStatus, Task, TaskStatus
from economy_sim_service.services.clock import to_iso
from economy_sim_service.services.task_store import DuplicateBidError

if TYPE_CHECKING:
    from economy_sim_service.services.activity_log import ActivityLog
    from economy_sim_service.services.agent_directory import AgentDirectory
    from economy_sim_service.services.clock import Clock
    from economy_sim_service.services.database import Database
    from economy_sim_service.services.ledger import Ledger
    from economy_sim_service.services.reputation_tracker import ReputationTracker
    from economy_sim_service.services.task_store import TaskStore

AUTO_BID_MESSAGE = "Auto-assigned"

logger = get_logger(__name__)


class TaskBoard:
    """
    Rules around the task lifecycle.

    Manual acceptance and automatic assignment both go through
    ``_claim``: the OPEN -> ASSIGNED write is guarded, so whichever
    caller commits first wins and the other gets TASK_NOT_OPEN.
    """

    def __init__(
        self,
        database: Database,
        clock: Clock,
        store: TaskStore,
        ledger: Ledger,
        agents: AgentDirectory,
        reputation: ReputationTracker,
        activity: ActivityLog,
    ) -> None:
        self._database = database
        self._clock = clock
        self._store = store
        self._ledger = ledger
        self._agents = agents
        self._reputation = reputation
        self._activity = activity

    def require_task(self, task_id: str) -> Task:
        """
        Fetch a task or fail.

        Raises:
            ServiceError: TASK_NOT_FOUND.
        """
        task = self._store.get_task(task_id)
        if task is None:
            raise ServiceError("TASK_NOT_FOUND", "Task not found", 404, {"task_id": task_id})
        return task

    @staticmethod
    def _require_open(task: Task) -> None:
        if task.status != TaskStatus.OPEN:
            raise ServiceError(
                "TASK_NOT_OPEN",
                f"Task is {task.status.value}, not OPEN",
                409,
                {"task_id": task.task_id, "status": task.status.value},
            )

    def _claim(
        self,
        task: Task,
        agent_id: str,
        now: str,
    ) -> None:
        """Reject other pending bids, assign the task, and escrow the deposit."""
        self._store.reject_pending_bids(task.task_id, now)
        changed = self._store.transition(
            task.task_id,
            TaskStatus.OPEN,
            TaskStatus.ASSIGNED,
            {"assigned_agent_id": agent_id, "accepted_at": now},
        )
        if changed == 0:
            raise ServiceError(
                "TASK_NOT_OPEN",
                "Task was claimed by someone else",
                409,
                {"task_id": task.task_id},
            )
        if task.deposit_required > 0:
            self._ledger.escrow_deposit(agent_id, task.task_id, task.deposit_required)

    def submit_bid(
        self,
        task_id: str,
        agent_id: str,
        proposed_reward: int,
        estimated_duration_minutes: int,
        message: str | None = None,
    ) -> Bid:
        """
        Place a pending bid on an open task.

        Raises:
            ServiceError: TASK_NOT_FOUND, TASK_NOT_OPEN, AGENT_NOT_FOUND,
                AGENT_NOT_ACTIVE, REPUTATION_TOO_LOW, INSUFFICIENT_FUNDS,
                DUPLICATE_BID, INVALID_AMOUNT.
        """
        if proposed_reward <= 0:
            raise ServiceError(
                "INVALID_AMOUNT",
                "Proposed reward must be a positive integer",
                400,
                {"proposed_reward": proposed_reward},
            )

        task = self.require_task(task_id)
        self._require_open(task)

        agent = self._agents.get_agent(agent_id)
        if agent is None:
            raise ServiceError("AGENT_NOT_FOUND", "Agent not found", 404, {"agent_id": agent_id})
        if agent.status != AgentStatus.ACTIVE:
            raise ServiceError(
                "AGENT_NOT_ACTIVE",
                "Only active agents can bid",
                409,
                {"agent_id": agent_id, "status": agent.status.value},
            )

        score = self._reputation.get_score(agent_id)
        overall = score.overall if score is not None else 0
        if overall < task.required_reputation:
            raise ServiceError(
                "REPUTATION_TOO_LOW",
                "Agent reputation is below the task requirement",
                403,
                {"required": task.required_reputation, "current": overall},
            )

        wallet = self._ledger.get_wallet(agent_id)
        balance = wallet.balance if wallet is not None else 0
        if balance < task.deposit_required:
            raise ServiceError(
                "INSUFFICIENT_FUNDS",
                "Balance does not cover the task deposit",
                402,
                {"required": task.deposit_required, "balance": balance},
            )

        bid = Bid(
            bid_id=f"bid-{uuid.uuid4()}",
            task_id=task_id,
            agent_id=agent_id,
            proposed_reward=proposed_reward,
            estimated_duration_minutes=estimated_duration_minutes,
            message=message,
            status=BidStatus.PENDING,
            created_at=to_iso(self._clock.now()),
            responded_at=None,
        )
        try:
            self._store.insert_bid(bid)
        except DuplicateBidError as exc:
            raise ServiceError(
                "DUPLICATE_BID",
                "This agent already bid on this task",
                409,
                {"task_id": task_id, "agent_id": agent_id},
            ) from exc

        self._activity.bid_placed(agent_id, agent.name, task_id, task.title, proposed_reward)
        return bid

    def accept_bid(self, task_id: str, bid_id: str) -> Task:
        """
        Accept a pending bid, assigning the task to its bidder.

        The bid acceptance, rejection of the other pending bids, the task
        transition and the deposit escrow commit together.

        Raises:
            ServiceError: TASK_NOT_FOUND, BID_NOT_FOUND, TASK_NOT_OPEN,
                BID_NOT_PENDING, INSUFFICIENT_FUNDS.
        """
        task = self.require_task(task_id)
        bid = self._store.get_bid(bid_id, task_id)
        if bid is None:
            raise ServiceError("BID_NOT_FOUND", "Bid not found", 404, {"bid_id": bid_id})
        self._require_open(task)
        if bid.status != BidStatus.PENDING:
            raise ServiceError(
                "BID_NOT_PENDING",
                f"Bid is {bid.status.value}, not PENDING",
                409,
                {"bid_id": bid_id, "status": bid.status.value},
            )

        now = to_iso(self._clock.now())
        with self._database.transaction():
            self._store.set_bid_status(bid_id, BidStatus.PENDING, BidStatus.ACCEPTED, now)
            self._claim(task, bid.agent_id, now)

        agent = self._agents.get_agent(bid.agent_id)
        agent_name = agent.name if agent is not None else bid.agent_id
        self._activity.bid_accepted(
            bid.agent_id, agent_name, task_id, task.title, bid.proposed_reward
        )
        logger.info("Bid accepted", extra={"task_id": task_id, "bid_id": bid_id})
        return self.require_task(task_id)

    def assign(self, task: Task, agent_id: str, agent_name: str) -> Task:
        """
        Assign an open task to an agent on the automatic path.

        Writes an ACCEPTED "Auto-assigned" bid for the agent, then claims
        the task exactly as a manual acceptance would.

        Raises:
            ServiceError: TASK_NOT_OPEN, INSUFFICIENT_FUNDS, DUPLICATE_BID.
        """
        now = to_iso(self._clock.now())
        bid = Bid(
            bid_id=f"bid-{uuid.uuid4()}",
            task_id=task.task_id,
            agent_id=agent_id,
            proposed_reward=task.reward,
            estimated_duration_minutes=task.execution_window_minutes,
            message=AUTO_BID_MESSAGE,
            status=BidStatus.ACCEPTED,
            created_at=now,
            responded_at=now,
        )
        with self._database.transaction():
            try:
                self._store.insert_bid(bid)
            except DuplicateBidError as exc:
                raise ServiceError(
                    "DUPLICATE_BID",
                    "This agent already bid on this task",
                    409,
                    {"task_id": task.task_id, "agent_id": agent_id},
                ) from exc
            self._claim(task, agent_id, now)

        self._activity.bid_accepted(agent_id, agent_name, task.task_id, task.title, task.reward)
        return self.require_task(task.task_id)

    def cancel_task(self, task_id: str) -> Task:
        """
        Cancel an open task and reject its pending bids.

        Raises:
            ServiceError: TASK_NOT_FOUND, TASK_NOT_OPEN.
        """
        task = self.require_task(task_id)
        self._require_open(task)
        now = to_iso(self._clock.now())
        with self._database.transaction():
            changed = self._store.transition(
                task_id, TaskStatus.OPEN, TaskStatus.CANCELLED, {"closed_at": now}
            )
            if changed == 0:
                raise ServiceError(
                    "TASK_NOT_OPEN", "Task is no longer OPEN", 409, {"task_id": task_id}
                )
            self._store.reject_pending_bids(task_id, now)
        logger.info("Task cancelled", extra={"task_id": task_id})
        return self.require_task(task_id)

    def expire_overdue(self) -> int:
        """
        Expire every open task whose deadline has passed.

        Returns:
            Number of tasks this call moved to EXPIRED.
        """
        now = to_iso(self._clock.now())
        expired = 0
        for task in self._store.list_overdue_open(now):
            with self._database.transaction():
                changed = self._store.transition(
                    task.task_id, TaskStatus.OPEN, TaskStatus.EXPIRED, {"closed_at": now}
                )
                if changed:
                    self._store.reject_pending_bids(task.task_id, now)
            expired += changed
        if expired:
            logger.info("Expired overdue tasks", extra={"tasks_expired": expired})
        return expired
