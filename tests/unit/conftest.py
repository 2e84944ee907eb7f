"""Unit test fixtures: cache clearing, a fake clock, and a wired engine."""

from __future__ import annotations

import random
from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from economy_sim_service.config import clear_settings_cache
from economy_sim_service.core.state import reset_app_state
from economy_sim_service.models import AgentRole, RiskRating, Task, TaskCategory, TaskStatus
from economy_sim_service.services.clock import to_iso
from economy_sim_service.services.database import Database
from economy_sim_service.services.engine import SimulationEngine
from economy_sim_service.services.task_generator import slash_percentage_for
from tests.helpers import FakeClock, build_settings

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from economy_sim_service.config import Settings
    from economy_sim_service.models import Agent


@pytest.fixture(autouse=True)
def _clear_caches():
    """Clear settings cache and app state between tests."""
    clear_settings_cache()
    reset_app_state()
    yield
    clear_settings_cache()
    reset_app_state()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return build_settings(tmp_path)


@pytest.fixture
def database(tmp_path) -> Iterator[Database]:
    db = Database(str(tmp_path / "economy.db"))
    yield db
    db.close()


@pytest.fixture
def engine(database, clock, settings) -> SimulationEngine:
    return SimulationEngine(database, clock, random.Random(1234), settings)


@pytest.fixture
def make_agent(engine) -> Callable[..., Agent]:
    """Create a funded agent through the directory."""
    counter = {"n": 0}

    def _make(
        funding: int = 1000,
        role: AgentRole = AgentRole.COMPUTE,
        name: str | None = None,
    ) -> Agent:
        counter["n"] += 1
        return engine.agents.create_agent(name or f"AGENT-{counter['n']:04d}", role, funding)

    return _make


@pytest.fixture
def make_task(engine, clock) -> Callable[..., Task]:
    """Insert an OPEN task posted by ``poster_id``."""
    counter = {"n": 0}

    def _make(
        poster_id: str,
        reward: int = 400,
        deposit: int = 100,
        difficulty: int = 3,
        required_reputation: int = 0,
        expires_in_hours: int = 48,
        slash_percentage: int | None = None,
    ) -> Task:
        counter["n"] += 1
        now = clock.now()
        task = Task(
            task_id=f"t-{counter['n']:04d}",
            title=f"Task {counter['n']}",
            description="Synthetic work item",
            category=TaskCategory.COMPUTATION,
            difficulty=difficulty,
            reward=reward,
            deposit_required=deposit,
            slash_percentage=(
                slash_percentage_for(difficulty) if slash_percentage is None else slash_percentage
            ),
            risk_rating=RiskRating.MEDIUM,
            required_reputation=required_reputation,
            execution_window_minutes=60,
            expires_at=to_iso(now + timedelta(hours=expires_in_hours)),
            status=TaskStatus.OPEN,
            poster_id=poster_id,
            assigned_agent_id=None,
            created_at=to_iso(now),
            accepted_at=None,
            completed_at=None,
            closed_at=None,
            quality_score=None,
        )
        engine.tasks.insert_task(task)
        return task

    return _make
