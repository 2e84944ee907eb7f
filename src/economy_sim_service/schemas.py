"""Pydantic response models for the API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    """Response model for GET /health."""

    model_config = ConfigDict(extra="forbid")
    status: Literal["ok"]
    uptime_seconds: float
    started_at: str
    tick_count: int
    active_agents: int


class ErrorResponse(BaseModel):
    """Standard error response model."""

    model_config = ConfigDict(extra="forbid")
    error: str
    message: str
    details: dict[str, object]


class TickActionsResponse(BaseModel):
    """Work counters for one tick."""

    model_config = ConfigDict(extra="forbid")
    tasks_generated: int
    tasks_assigned: int
    tasks_expired: int
    tasks_completed: int
    tasks_failed: int
    agents_archived: int
    leaderboard_updated: bool
    reputations_decayed: int
    activity_pruned: int
    events_logged: int


class TickResponse(BaseModel):
    """Response model for POST /simulation/tick."""

    model_config = ConfigDict(extra="forbid")
    status: Literal["completed", "skipped", "paused", "shutting_down"]
    success: bool
    tick_count: int
    actions: TickActionsResponse
    errors: list[str]
    skip_reason: str | None


class LeaderboardEntryResponse(BaseModel):
    """One ranked agent."""

    model_config = ConfigDict(extra="forbid")
    rank: int
    agent_id: str
    agent_name: str
    agent_role: str
    agent_status: str
    total_earnings: int
    reliability: int
    active_days: int
    success_rate: float
    tier: str
    current_streak: int
    rank_by_earnings: int
    rank_by_reliability: int
    rank_by_longevity: int
    rank_by_success_rate: int
    updated_at: str


class LeaderboardResponse(BaseModel):
    """Response model for GET /leaderboard."""

    model_config = ConfigDict(extra="forbid")
    metric: str
    entries: list[LeaderboardEntryResponse]
