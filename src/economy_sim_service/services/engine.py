"""Simulation engine: the tick orchestrator and its control surface."""

from __future__ import annotations

import threading
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from economy_sim_service.core.exceptions import ServiceError
from economy_sim_service.logging import get_logger
from economy_sim_service.models import (
    AgentRole,
    AgentStatus,
    TaskStatus,
    TickActions,
    TickResult,
)
from economy_sim_service.services.activity_log import ActivityLog
from economy_sim_service.services.agent_directory import AgentDirectory, generate_agent_name
from economy_sim_service.services.auto_assigner import AutoAssigner
from economy_sim_service.services.clock import to_iso
from economy_sim_service.services.completion_processor import CompletionProcessor
from economy_sim_service.services.leaderboard import Leaderboard
from economy_sim_service.services.ledger import Ledger
from economy_sim_service.services.reputation_tracker import ReputationTracker
from economy_sim_service.services.scheduler import TickScheduler
from economy_sim_service.services.simulation_state import SimulationStateStore, should_trigger
from economy_sim_service.services.task_board import TaskBoard
from economy_sim_service.services.task_generator import TaskGenerator, calculate_task_batch_size
from economy_sim_service.services.task_store import TaskStore

if TYPE_CHECKING:
    import random
    from collections.abc import Callable

    from economy_sim_service.config import Settings
    from economy_sim_service.models import Agent
    from economy_sim_service.services.clock import Clock
    from economy_sim_service.services.database import Database

STATUS_COMPLETED = "completed"
STATUS_SKIPPED = "skipped"
STATUS_PAUSED = "paused"
STATUS_SHUTTING_DOWN = "shutting_down"

PAUSED_MESSAGE = "Simulation is paused"
SHUTTING_DOWN_MESSAGE = "System is shutting down"

ROLE_WEIGHTS: dict[AgentRole, int] = {
    AgentRole.COMPUTE: 35,
    AgentRole.VALIDATOR: 25,
    AgentRole.ANALYST: 15,
    AgentRole.CREATIVE: 10,
    AgentRole.ORCHESTRATOR: 10,
    AgentRole.SPECIALIST: 5,
}

logger = get_logger(__name__)


class SimulationEngine:
    """
    Advances the economy one tick at a time.

    Owns every store over the shared database and exposes them as
    attributes so the HTTP layer can reach the same instances. The tick
    lock is the injected ``scheduler``.
    """

    def __init__(
        self,
        database: Database,
        clock: Clock,
        rng: random.Random,
        settings: Settings,
        scheduler: TickScheduler | None = None,
    ) -> None:
        sim = settings.simulation
        self.database = database
        self.clock = clock
        self.rng = rng
        self.settings = settings
        self.scheduler = scheduler or TickScheduler(clock, sim.min_tick_interval_seconds)
        self._shutting_down = threading.Event()

        self.activity = ActivityLog(database, clock)
        self.ledger = Ledger(database, clock)
        self.reputation = ReputationTracker(
            database,
            clock,
            inactivity_threshold_days=settings.reputation.inactivity_threshold_days,
            inactivity_decay=settings.reputation.inactivity_decay,
            decay_floor=settings.reputation.decay_floor,
        )
        self.agents = AgentDirectory(database, clock, self.ledger, self.reputation, self.activity)
        self.tasks = TaskStore(database)
        self.board = TaskBoard(
            database, clock, self.tasks, self.ledger, self.agents, self.reputation, self.activity
        )
        self.leaderboard = Leaderboard(database, clock, sim.leaderboard_batch_size)
        self.state = SimulationStateStore(database, clock)
        self.generator = TaskGenerator(clock, rng, self.tasks, self.agents, self.activity)
        self.assigner = AutoAssigner(
            database,
            rng,
            self.tasks,
            self.board,
            batch_size=sim.auto_assign_batch_size,
            min_balance=sim.min_assign_balance,
        )
        self.completions = CompletionProcessor(
            database,
            clock,
            self.tasks,
            self.ledger,
            self.reputation,
            self.agents,
            self.activity,
            self.leaderboard,
            max_per_run=sim.max_completions_per_tick,
        )

    # --- Shutdown -------------------------------------------------------------

    def begin_shutdown(self) -> None:
        """Mark the process as draining; later ticks return immediately."""
        self._shutting_down.set()

    def is_shutting_down(self) -> bool:
        return self._shutting_down.is_set()

    # --- Tick -----------------------------------------------------------------

    def tick(self) -> TickResult:
        """
        Run one tick, or report why it was skipped.

        Failures inside the tick body are reported through ``success``
        and ``errors`` rather than raised.
        """
        with self.scheduler.claim() as skip_reason:
            if skip_reason is not None:
                logger.debug("Tick skipped", extra={"skip_reason": skip_reason})
                return TickResult(
                    status=STATUS_SKIPPED,
                    success=True,
                    tick_count=self.state.get().tick_count,
                    skip_reason=skip_reason,
                )
            return self._run_tick()

    def _step(self, name: str, result: TickResult, action: Callable[[], None]) -> None:
        """Run one tick step; a failure is recorded and later steps still run."""
        try:
            action()
        except ServiceError as exc:
            logger.warning("Tick step failed", extra={"step": name, "error": exc.error})
            result.errors.append(f"{name}: {exc}")
        except Exception as exc:
            logger.exception("Tick step crashed", extra={"step": name})
            result.errors.append(f"{name}: {exc}")

    def _run_tick(self) -> TickResult:
        result = TickResult(status=STATUS_COMPLETED, success=True, tick_count=0)

        if self.is_shutting_down():
            result.status = STATUS_SHUTTING_DOWN
            result.success = False
            result.errors.append(SHUTTING_DOWN_MESSAGE)
            return result

        try:
            state = self.state.get()
            if state.is_paused:
                result.status = STATUS_PAUSED
                result.tick_count = state.tick_count
                result.errors.append(PAUSED_MESSAGE)
                return result

            result.tick_count = self.state.increment_tick()
            sim = self.settings.simulation
            actions = result.actions

            if should_trigger(
                state.last_task_batch_at, sim.task_batch_interval_seconds, self.clock.now()
            ):
                self._step("generate_tasks", result, lambda: self._generate_tasks(actions))

            self._step("auto_assign", result, lambda: self._auto_assign(result))
            self._step("complete_tasks", result, lambda: self._complete_tasks(result))

            if should_trigger(
                state.last_leaderboard_update_at,
                sim.leaderboard_update_interval_seconds,
                self.clock.now(),
            ):
                self._step("update_leaderboard", result, lambda: self._update_leaderboard(actions))

            if should_trigger(
                state.last_maintenance_at, sim.maintenance_interval_seconds, self.clock.now()
            ):
                self._step("maintenance", result, lambda: self._maintenance(actions))
        except Exception as exc:
            logger.exception("Tick failed", extra={"tick_count": result.tick_count})
            result.success = False
            result.errors.append(str(exc))

        logger.info(
            "Tick finished",
            extra={
                "tick_count": result.tick_count,
                "success": result.success,
                "errors": len(result.errors),
                "tasks_generated": result.actions.tasks_generated,
                "tasks_completed": result.actions.tasks_completed,
                "tasks_failed": result.actions.tasks_failed,
            },
        )
        return result

    def _generate_tasks(self, actions: TickActions) -> None:
        sim = self.settings.simulation
        open_count = self.tasks.count_tasks(TaskStatus.OPEN)
        batch_size = calculate_task_batch_size(
            open_count, sim.max_tasks_per_batch, sim.max_open_tasks
        )
        generated = self.generator.generate(batch_size)
        actions.tasks_generated = generated
        actions.events_logged += generated
        if generated > 0:
            self.state.record_task_batch(self.clock.now())

    def _auto_assign(self, result: TickResult) -> None:
        report = self.assigner.run()
        result.actions.tasks_expired = report.expired
        result.actions.tasks_assigned = report.assigned
        result.actions.events_logged += report.assigned
        result.errors.extend(report.errors)

    def _complete_tasks(self, result: TickResult) -> None:
        report = self.completions.run()
        result.actions.tasks_completed = report.completed
        result.actions.tasks_failed = report.failed
        result.actions.agents_archived = report.archived
        result.actions.events_logged += report.events_logged
        result.errors.extend(report.errors)

    def _update_leaderboard(self, actions: TickActions) -> None:
        self.leaderboard.recompute()
        self.state.record_leaderboard_update(self.clock.now())
        actions.leaderboard_updated = True

    def _maintenance(self, actions: TickActions) -> None:
        actions.reputations_decayed = self.reputation.apply_inactivity_decay()
        actions.activity_pruned = self.activity.cleanup(self.settings.activity.retention_hours)
        self.state.record_maintenance(self.clock.now())

    # --- Control --------------------------------------------------------------

    def get_status(self) -> dict[str, Any]:
        """Snapshot of state, population, and configured pacing."""
        state = self.state.get()
        now = self.clock.now()
        sim = self.settings.simulation
        last_run = self.scheduler.last_run
        return {
            "tick_count": state.tick_count,
            "is_paused": state.is_paused,
            "is_shutting_down": self.is_shutting_down(),
            "is_running": self.scheduler.is_running,
            "last_tick_at": to_iso(last_run) if last_run is not None else None,
            "last_task_batch_at": state.last_task_batch_at,
            "last_leaderboard_update_at": state.last_leaderboard_update_at,
            "last_maintenance_at": state.last_maintenance_at,
            "updated_at": state.updated_at,
            "stats": {
                "active_agents": self.agents.count_by_status()[AgentStatus.ACTIVE.value],
                "open_tasks": self.tasks.count_tasks(TaskStatus.OPEN),
                "activity_last_hour": self.activity.count_since(now - timedelta(hours=1)),
            },
            "limits": {
                "max_tasks_per_batch": sim.max_tasks_per_batch,
                "max_open_tasks": sim.max_open_tasks,
                "max_completions_per_tick": sim.max_completions_per_tick,
                "auto_assign_batch_size": sim.auto_assign_batch_size,
                "min_assign_balance": sim.min_assign_balance,
            },
            "timing": {
                "min_tick_interval_seconds": sim.min_tick_interval_seconds,
                "task_batch_interval_seconds": sim.task_batch_interval_seconds,
                "leaderboard_update_interval_seconds": sim.leaderboard_update_interval_seconds,
                "maintenance_interval_seconds": sim.maintenance_interval_seconds,
            },
        }

    def pause(self) -> None:
        self.state.pause()
        logger.info("Simulation paused")

    def resume(self) -> None:
        self.state.resume()
        logger.info("Simulation resumed")

    def reset_state(self) -> None:
        """Zero the tick counter and cooldowns; economy data is untouched."""
        self.state.reset()
        self.scheduler.reset()
        logger.info("Simulation state reset")

    def full_reset(self) -> None:
        """Delete every row in every table and recreate the state singleton."""
        self.database.wipe()
        self.state.get()
        self.scheduler.reset()
        logger.warning("Full economy reset performed")

    def bootstrap(self, count: int | None = None) -> list[Agent]:
        """
        Seed the economy with agents if none are active.

        Returns:
            The agents created; empty when active agents already existed.
        """
        if self.agents.count_by_status()[AgentStatus.ACTIVE.value] > 0:
            return []

        config = self.settings.bootstrap
        target = config.agent_count if count is None else count
        roles = list(ROLE_WEIGHTS)
        weights = list(ROLE_WEIGHTS.values())
        created: list[Agent] = []
        for _ in range(target):
            role = self.rng.choices(roles, weights=weights)[0]
            funding = self.rng.randint(config.min_funding, config.max_funding)
            created.append(
                self.agents.create_agent(generate_agent_name(self.rng), role, funding)
            )
        self.state.get()
        logger.info("Bootstrapped agents", extra={"agents_created": len(created)})
        return created

    def economy_stats(self) -> dict[str, Any]:
        """Aggregate population, task, and money figures."""
        agent_counts = self.agents.count_by_status()
        task_counts = self.tasks.count_by_status()
        return {
            "total_agents": sum(agent_counts.values()),
            "active_agents": agent_counts[AgentStatus.ACTIVE.value],
            "suspended_agents": agent_counts[AgentStatus.SUSPENDED.value],
            "archived_agents": agent_counts[AgentStatus.ARCHIVED.value],
            "total_tasks": sum(task_counts.values()),
            "tasks_by_status": task_counts,
            "completed_tasks": task_counts[TaskStatus.COMPLETED.value],
            "open_tasks": task_counts[TaskStatus.OPEN.value],
            "total_volume": self.tasks.total_completed_volume(),
            "total_supply": self.ledger.total_supply(),
            "total_escrowed": self.ledger.total_escrowed(),
            "avg_lifetime_days": round(self.agents.average_lifetime_days()),
        }
