"""Tick trigger and simulation control endpoints."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Request
from starlette.concurrency import run_in_threadpool

from economy_sim_service.core.exceptions import ServiceError
from economy_sim_service.routers.helpers import get_engine, parse_json_body
from economy_sim_service.schemas import TickResponse

router = APIRouter()

_ACTIONS = ("pause", "resume", "reset")


@router.post("/simulation/tick", response_model=TickResponse)
async def trigger_tick() -> TickResponse:
    """
    Run one tick.

    Always 200: a tick that could not run reports ``status="skipped"``
    with a ``skip_reason``; failures inside the tick are in ``errors``.
    """
    engine = get_engine()
    result = await run_in_threadpool(engine.tick)
    return TickResponse.model_validate(asdict(result))


@router.get("/simulation/status")
async def get_status() -> dict[str, Any]:
    """Current tick counter, pause flag, cooldowns, and population."""
    engine = get_engine()
    return await run_in_threadpool(engine.get_status)


@router.patch("/simulation/status")
async def control_simulation(request: Request) -> dict[str, Any]:
    """Pause, resume, or reset the tick counter and cooldowns."""
    data = parse_json_body(await request.body())
    action = data.get("action")
    if action not in _ACTIONS:
        raise ServiceError(
            "INVALID_ACTION",
            f"action must be one of {list(_ACTIONS)}",
            400,
            {"action": action},
        )

    engine = get_engine()
    if action == "pause":
        await run_in_threadpool(engine.pause)
    elif action == "resume":
        await run_in_threadpool(engine.resume)
    else:
        await run_in_threadpool(engine.reset_state)

    status = await run_in_threadpool(engine.get_status)
    return {"action": action, "status": status}
