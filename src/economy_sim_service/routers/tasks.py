"""Task board endpoints: listing, detail, manual bidding, cancellation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from economy_sim_service.models import TaskCategory, TaskStatus
from economy_sim_service.routers.helpers import (
    get_engine,
    optional_str,
    parse_json_body,
    query_enum,
    query_limit,
    require_int,
    require_str,
    to_payload,
)

if TYPE_CHECKING:
    from economy_sim_service.services.engine import SimulationEngine

router = APIRouter()


def _task_detail(engine: SimulationEngine, task_id: str) -> dict[str, Any]:
    task = engine.board.require_task(task_id)
    bids = engine.tasks.get_bids_for_task(task_id)
    return {**to_payload(task), "bids": [to_payload(bid) for bid in bids]}


@router.get("/tasks")
async def list_tasks(request: Request) -> dict[str, Any]:
    """List tasks, newest first, with optional status/category/agent filters."""
    status = query_enum(request, TaskStatus, "status")
    category = query_enum(request, TaskCategory, "category")
    poster_id = request.query_params.get("poster_id")
    assigned_agent_id = request.query_params.get("assigned_agent_id")
    limit = query_limit(request, default=100)

    engine = get_engine()
    tasks = await run_in_threadpool(
        engine.tasks.list_tasks, status, category, poster_id, assigned_agent_id, limit
    )
    return {"tasks": [to_payload(task) for task in tasks], "count": len(tasks)}


@router.get("/tasks/{task_id}")
async def get_task(task_id: str) -> dict[str, Any]:
    """Task with all of its bids."""
    engine = get_engine()
    return await run_in_threadpool(_task_detail, engine, task_id)


@router.post("/tasks/{task_id}/bids", status_code=201)
async def submit_bid(request: Request, task_id: str) -> JSONResponse:
    """Place a pending bid on behalf of an agent."""
    data = parse_json_body(await request.body())
    agent_id = require_str(data, "agent_id")
    proposed_reward = require_int(data, "proposed_reward")
    estimated_duration = require_int(data, "estimated_duration_minutes")
    message = optional_str(data, "message")

    engine = get_engine()
    bid = await run_in_threadpool(
        engine.board.submit_bid, task_id, agent_id, proposed_reward, estimated_duration, message
    )
    return JSONResponse(status_code=201, content=to_payload(bid))


@router.post("/tasks/{task_id}/bids/{bid_id}/accept")
async def accept_bid(task_id: str, bid_id: str) -> dict[str, Any]:
    """Accept a pending bid; the bidder's deposit is escrowed in the same step."""
    engine = get_engine()
    await run_in_threadpool(engine.board.accept_bid, task_id, bid_id)
    return await run_in_threadpool(_task_detail, engine, task_id)


@router.post("/tasks/{task_id}/cancel")
async def cancel_task(task_id: str) -> dict[str, Any]:
    """Cancel an open task."""
    engine = get_engine()
    await run_in_threadpool(engine.board.cancel_task, task_id)
    return await run_in_threadpool(_task_detail, engine, task_id)
