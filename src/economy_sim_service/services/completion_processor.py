"""Resolves assigned tasks and settles their funds and reputation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from economy_sim_service.core.exceptions import ServiceError
from economy_sim_service.logging import get_logger
from economy_sim_service.models import AgentStatus, TaskStatus
from economy_sim_service.services.clock import to_iso
from economy_sim_service.services.outcome_resolver import outcome_seed, resolve_outcome

if TYPE_CHECKING:
    from economy_sim_service.models import Agent, Task
    from economy_sim_service.services.activity_log import ActivityLog
    from economy_sim_service.services.agent_directory import AgentDirectory
    from economy_sim_service.services.clock import Clock
    from economy_sim_service.services.database import Database
    from economy_sim_service.services.leaderboard import Leaderboard
    from economy_sim_service.services.ledger import Ledger
    from economy_sim_service.services.outcome_resolver import Outcome
    from economy_sim_service.services.reputation_tracker import AppliedOutcome, ReputationTracker
    from economy_sim_service.services.task_store import TaskStore

logger = get_logger(__name__)


@dataclass
class CompletionReport:
    completed: int = 0
    failed: int = 0
    archived: int = 0
    events_logged: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Settlement:
    """What one resolved task did, known only after its transaction committed."""

    outcome: Outcome
    applied: AppliedOutcome
    slashed: int


class CompletionProcessor:
    """
    Turns ASSIGNED tasks into COMPLETED or FAILED ones.

    For each task the status change, the ledger movements and the
    reputation update commit in one transaction. The survival check
    and activity logging follow after the commit.
    """

    def __init__(
        self,
        database: Database,
        clock: Clock,
        store: TaskStore,
        ledger: Ledger,
        reputation: ReputationTracker,
        agents: AgentDirectory,
        activity: ActivityLog,
        leaderboard: Leaderboard,
        max_per_run: int,
    ) -> None:
        self._database = database
        self._clock = clock
        self._store = store
        self._ledger = ledger
        self._reputation = reputation
        self._agents = agents
        self._activity = activity
        self._leaderboard = leaderboard
        self._max_per_run = max_per_run

    def run(self) -> CompletionReport:
        """Resolve up to ``max_per_run`` assigned tasks, oldest assignment first."""
        report = CompletionReport()
        for task in self._store.list_assigned(self._max_per_run):
            try:
                self._process(task, report)
            except ServiceError as exc:
                logger.warning(
                    "Task completion failed",
                    extra={"task_id": task.task_id, "error": exc.error},
                )
                report.errors.append(f"complete {task.task_id}: {exc}")
        return report

    def _process(self, task: Task, report: CompletionReport) -> None:
        agent_id = task.assigned_agent_id
        agent = self._agents.get_agent(agent_id) if agent_id is not None else None
        if agent is None:
            raise ServiceError(
                "AGENT_NOT_FOUND",
                "Assigned agent not found",
                404,
                {"task_id": task.task_id, "agent_id": agent_id},
            )
        score = self._reputation.get_score(agent.agent_id)
        if score is None:
            raise ServiceError(
                "REPUTATION_NOT_FOUND",
                "Reputation not found",
                404,
                {"agent_id": agent.agent_id},
            )

        seed = outcome_seed(task.task_id, agent.agent_id, task.accepted_at or task.created_at)
        outcome = resolve_outcome(score.overall, task.difficulty, seed)

        settlement = self._settle(task, agent.agent_id, outcome)
        if settlement is None:
            return

        if outcome.success:
            report.completed += 1
            self._activity.task_completed(
                agent.agent_id, agent.name, task.task_id, task.title, task.reward
            )
        else:
            report.failed += 1
            self._activity.task_failed(
                agent.agent_id, agent.name, task.task_id, task.title, settlement.slashed
            )
        report.events_logged += 1
        report.events_logged += self._log_reputation_changes(agent, settlement.applied)

        if not outcome.success and self._agents.check_survival(agent.agent_id):
            report.archived += 1
            report.events_logged += 1
            self._leaderboard.update_status(agent.agent_id, AgentStatus.ARCHIVED)

    def _settle(self, task: Task, agent_id: str, outcome: Outcome) -> Settlement | None:
        """
        Commit the outcome. Returns None when the task already left ASSIGNED.
        """
        now = to_iso(self._clock.now())
        new_status = TaskStatus.COMPLETED if outcome.success else TaskStatus.FAILED
        slashed = 0

        with self._database.transaction():
            changed = self._store.transition(
                task.task_id,
                TaskStatus.ASSIGNED,
                new_status,
                {
                    "completed_at": now,
                    "closed_at": now,
                    "quality_score": outcome.quality_score if outcome.success else None,
                },
            )
            if changed == 0:
                return None

            if outcome.success:
                if task.deposit_required > 0:
                    self._ledger.release_deposit(agent_id, task.task_id, task.deposit_required)
                if task.reward > 0:
                    self._ledger.pay_reward(agent_id, task.task_id, task.reward)
            elif task.deposit_required > 0:
                result = self._ledger.slash_deposit(
                    agent_id, task.task_id, task.deposit_required, task.slash_percentage
                )
                slashed = result.slashed

            applied = self._reputation.apply_outcome(
                agent_id,
                task.task_id,
                outcome.success,
                task.difficulty,
                outcome.quality_score,
            )

        return Settlement(outcome=outcome, applied=applied, slashed=slashed)

    def _log_reputation_changes(self, agent: Agent, applied: AppliedOutcome) -> int:
        logged = 0
        if applied.tier_changed:
            self._activity.tier_changed(
                agent.agent_id,
                agent.name,
                applied.tier_before.value,
                applied.tier_after.value,
                went_up=applied.tier_went_up,
            )
            logged += 1
        if applied.streak_bonus > 0:
            self._activity.streak_bonus(
                agent.agent_id, agent.name, applied.current_streak, applied.streak_bonus
            )
            logged += 1
        return logged
