"""Agent registration, lookup, and lifecycle endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from economy_sim_service.core.exceptions import ServiceError
from economy_sim_service.models import AgentRole, AgentStatus
from economy_sim_service.routers.helpers import (
    get_engine,
    optional_json_body,
    optional_str,
    parse_enum,
    parse_json_body,
    query_enum,
    query_limit,
    require_int,
    to_payload,
)
from economy_sim_service.services.agent_directory import generate_agent_name

if TYPE_CHECKING:
    from economy_sim_service.services.engine import SimulationEngine

router = APIRouter()

_REPUTATION_EVENTS_LIMIT = 20
_MANUAL_ARCHIVE_REASON = "Archived by operator"


def _agent_detail(engine: SimulationEngine, agent_id: str) -> dict[str, Any]:
    agent = engine.agents.get_agent(agent_id)
    if agent is None:
        raise ServiceError("AGENT_NOT_FOUND", "Agent not found", 404, {"agent_id": agent_id})
    wallet = engine.ledger.get_wallet(agent_id)
    score = engine.reputation.get_score(agent_id)
    reputation: dict[str, Any] | None = None
    if score is not None:
        reputation = to_payload(score)
        reputation["success_rate"] = score.success_rate
    return {
        **to_payload(agent),
        "wallet": to_payload(wallet) if wallet is not None else None,
        "reputation": reputation,
        "reputation_events": engine.reputation.get_events(agent_id, _REPUTATION_EVENTS_LIMIT),
    }


@router.post("/agents", status_code=201)
async def create_agent(request: Request) -> JSONResponse:
    """Register a funded agent."""
    data = parse_json_body(await request.body())
    role = parse_enum(AgentRole, data.get("role"), "role")
    initial_funding = require_int(data, "initial_funding")
    name = optional_str(data, "name")

    engine = get_engine()
    if name is None:
        name = generate_agent_name(engine.rng)
    agent = await run_in_threadpool(engine.agents.create_agent, name, role, initial_funding)
    detail = await run_in_threadpool(_agent_detail, engine, agent.agent_id)
    return JSONResponse(status_code=201, content=detail)


@router.get("/agents")
async def list_agents(request: Request) -> dict[str, Any]:
    """List agents, oldest first."""
    status = query_enum(request, AgentStatus, "status")
    role = query_enum(request, AgentRole, "role")
    limit = query_limit(request, default=100)

    engine = get_engine()
    agents = await run_in_threadpool(engine.agents.list_agents, status, role, limit)
    return {"agents": [to_payload(agent) for agent in agents], "count": len(agents)}


@router.get("/agents/{agent_id}")
async def get_agent(agent_id: str) -> dict[str, Any]:
    """Agent with its wallet, reputation, and recent reputation events."""
    engine = get_engine()
    return await run_in_threadpool(_agent_detail, engine, agent_id)


@router.post("/agents/{agent_id}/suspend")
async def suspend_agent(agent_id: str) -> dict[str, Any]:
    """ACTIVE -> SUSPENDED."""
    engine = get_engine()
    agent = await run_in_threadpool(engine.agents.suspend, agent_id)
    await run_in_threadpool(engine.leaderboard.update_status, agent_id, AgentStatus.SUSPENDED)
    return to_payload(agent)


@router.post("/agents/{agent_id}/reactivate")
async def reactivate_agent(agent_id: str) -> dict[str, Any]:
    """SUSPENDED -> ACTIVE; the agent must still hold funds."""
    engine = get_engine()
    agent = await run_in_threadpool(engine.agents.reactivate, agent_id)
    await run_in_threadpool(engine.leaderboard.update_status, agent_id, AgentStatus.ACTIVE)
    return to_payload(agent)


@router.post("/agents/{agent_id}/archive")
async def archive_agent(request: Request, agent_id: str) -> dict[str, Any]:
    """Archive an agent. Repeating the call is harmless and reports ``archived: false``."""
    data = await optional_json_body(request)
    reason = optional_str(data, "reason") or _MANUAL_ARCHIVE_REASON

    engine = get_engine()
    archived = await run_in_threadpool(engine.agents.archive, agent_id, reason)
    if archived:
        await run_in_threadpool(engine.leaderboard.update_status, agent_id, AgentStatus.ARCHIVED)
    agent = await run_in_threadpool(engine.agents.get_agent, agent_id)
    return {**to_payload(agent), "archived": archived}
