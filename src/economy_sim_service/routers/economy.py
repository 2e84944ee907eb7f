"""Aggregate economy statistics."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from starlette.concurrency import run_in_threadpool

from economy_sim_service.routers.helpers import get_engine

router = APIRouter()


@router.get("/economy/stats")
async def economy_stats() -> dict[str, Any]:
    """Population, task, and money totals."""
    engine = get_engine()
    return await run_in_threadpool(engine.economy_stats)
