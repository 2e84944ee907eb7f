"""API routers."""

from economy_sim_service.routers import (
    activity,
    admin,
    agents,
    economy,
    health,
    leaderboard,
    simulation,
    tasks,
    wallets,
)

__all__ = [
    "activity",
    "admin",
    "agents",
    "economy",
    "health",
    "leaderboard",
    "simulation",
    "tasks",
    "wallets",
]
