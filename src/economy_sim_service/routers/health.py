"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter
from starlette.concurrency import run_in_threadpool

from economy_sim_service.core.state import get_app_state
from economy_sim_service.models import AgentStatus
from economy_sim_service.schemas import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check service health and return simulation counters."""
    state = get_app_state()
    tick_count = 0
    active_agents = 0
    if state.engine is not None:
        sim_state = await run_in_threadpool(state.engine.state.get)
        agent_counts = await run_in_threadpool(state.engine.agents.count_by_status)
        tick_count = sim_state.tick_count
        active_agents = agent_counts[AgentStatus.ACTIVE.value]
    return HealthResponse(
        status="ok",
        uptime_seconds=state.uptime_seconds,
        started_at=state.started_at,
        tick_count=tick_count,
        active_agents=active_agents,
    )
