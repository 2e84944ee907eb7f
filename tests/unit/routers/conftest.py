"""Router test fixtures: a fresh app per test over a temp database."""

from __future__ import annotations

import os
import uuid
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import pytest
from httpx import ASGITransport, AsyncClient

from economy_sim_service.app import create_app
from economy_sim_service.config import clear_settings_cache
from economy_sim_service.core.lifespan import lifespan
from economy_sim_service.core.state import get_app_state, reset_app_state
from economy_sim_service.models import RiskRating, Task, TaskCategory, TaskStatus
from economy_sim_service.services.clock import to_iso
from economy_sim_service.services.task_generator import slash_percentage_for
from tests.helpers import write_config

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path


@pytest.fixture
async def app(tmp_path: Path) -> AsyncIterator[Any]:
    """Create a test app with a temp database and small request limit."""
    config_path = write_config(tmp_path, logging={"level": "WARNING"})

    old_config = os.environ.get("CONFIG_PATH")
    os.environ["CONFIG_PATH"] = str(config_path)

    clear_settings_cache()
    reset_app_state()

    test_app = create_app()
    async with lifespan(test_app):
        yield test_app

    reset_app_state()
    clear_settings_cache()
    if old_config is None:
        os.environ.pop("CONFIG_PATH", None)
    else:
        os.environ["CONFIG_PATH"] = old_config


@pytest.fixture
async def client(app: Any) -> AsyncIterator[AsyncClient]:
    """Create an async HTTP client for the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------
async def create_agent(
    client: AsyncClient,
    *,
    role: str = "COMPUTE",
    initial_funding: int = 1000,
    name: str | None = None,
) -> dict[str, Any]:
    """Register an agent via POST /agents and return its detail."""
    payload: dict[str, Any] = {"role": role, "initial_funding": initial_funding}
    if name is not None:
        payload["name"] = name
    response = await client.post("/agents", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def insert_open_task(
    poster_id: str,
    *,
    reward: int = 400,
    deposit: int = 100,
    required_reputation: int = 0,
) -> Task:
    """Insert an OPEN task straight into the running engine's store."""
    engine = get_app_state().engine
    assert engine is not None
    now = engine.clock.now()
    task = Task(
        task_id=f"t-{uuid.uuid4()}",
        title="Validate JSON Schema Compliance",
        description="Check a document against its schema.",
        category=TaskCategory.VALIDATION,
        difficulty=2,
        reward=reward,
        deposit_required=deposit,
        slash_percentage=slash_percentage_for(2),
        risk_rating=RiskRating.LOW,
        required_reputation=required_reputation,
        execution_window_minutes=30,
        expires_at=to_iso(now + timedelta(hours=24)),
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
