"""Activity feed endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from starlette.concurrency import run_in_threadpool

from economy_sim_service.routers.helpers import get_engine, query_limit, to_payload

router = APIRouter()


@router.get("/activity")
async def recent_activity(request: Request) -> dict[str, Any]:
    """Newest events first, optionally filtered by ``event_type``."""
    event_type = request.query_params.get("event_type")
    limit = query_limit(request, default=50)

    engine = get_engine()
    events = await run_in_threadpool(engine.activity.recent, limit, event_type)
    return {"events": [to_payload(event) for event in events], "count": len(events)}
