"""Administrative endpoints: full reset and bootstrap."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from economy_sim_service.core.exceptions import ServiceError
from economy_sim_service.logging import get_logger
from economy_sim_service.routers.helpers import get_engine, optional_json_body, to_payload

router = APIRouter()
logger = get_logger(__name__)


@router.post("/admin/reset")
async def full_reset() -> dict[str, Any]:
    """Delete every agent, task, wallet, and event. Not reversible."""
    engine = get_engine()
    await run_in_threadpool(engine.full_reset)
    logger.warning("Economy wiped via admin endpoint")
    return {"reset": True}


@router.post("/admin/init")
async def bootstrap(request: Request) -> JSONResponse:
    """
    Create the starting population if there are no active agents.

    Optional body ``{"agent_count": n}`` overrides the configured count.
    Returns 201 with the new agents, or 200 with an empty list when the
    economy is already populated.
    """
    data = await optional_json_body(request)
    count = data.get("agent_count")
    if count is not None and (isinstance(count, bool) or not isinstance(count, int) or count < 1):
        raise ServiceError(
            "INVALID_FIELD",
            "agent_count must be a positive integer",
            400,
            {"field": "agent_count"},
        )

    engine = get_engine()
    created = await run_in_threadpool(engine.bootstrap, count)
    return JSONResponse(
        status_code=201 if created else 200,
        content={
            "agents_created": len(created),
            "agents": [to_payload(agent) for agent in created],
        },
    )
