"""Leaderboard endpoint."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Request
from starlette.concurrency import run_in_threadpool

from economy_sim_service.core.exceptions import ServiceError
from economy_sim_service.routers.helpers import get_engine, query_limit
from economy_sim_service.schemas import LeaderboardEntryResponse, LeaderboardResponse
from economy_sim_service.services.leaderboard import METRIC_COLUMNS

router = APIRouter()


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(request: Request) -> LeaderboardResponse:
    """Cached ranking by ``metric`` (default earnings), as of the last recompute."""
    metric = request.query_params.get("metric", "earnings")
    if metric not in METRIC_COLUMNS:
        raise ServiceError(
            "INVALID_FIELD",
            f"metric must be one of {sorted(METRIC_COLUMNS)}",
            400,
            {"metric": metric},
        )
    limit = query_limit(request, default=50)

    engine = get_engine()
    entries = await run_in_threadpool(engine.leaderboard.list_entries, metric, limit)
    return LeaderboardResponse(
        metric=metric,
        entries=[
            LeaderboardEntryResponse(rank=position, **asdict(entry))
            for position, entry in enumerate(entries, start=1)
        ],
    )
