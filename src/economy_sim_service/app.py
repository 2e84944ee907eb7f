"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from economy_sim_service.config import get_settings
from economy_sim_service.core.exceptions import register_exception_handlers
from economy_sim_service.core.lifespan import lifespan
from economy_sim_service.core.middleware import RequestValidationMiddleware
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


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI instance with all routers registered.
    """
    settings = get_settings()

    app = FastAPI(
        title=f"{settings.service.name} Service",
        version=settings.service.version,
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    app.include_router(health.router, tags=["Operations"])
    app.include_router(simulation.router, tags=["Simulation"])
    app.include_router(agents.router, tags=["Agents"])
    app.include_router(tasks.router, tags=["Tasks"])
    app.include_router(wallets.router, tags=["Wallets"])
    app.include_router(leaderboard.router, tags=["Leaderboard"])
    app.include_router(activity.router, tags=["Activity"])
    app.include_router(economy.router, tags=["Economy"])
    app.include_router(admin.router, tags=["Admin"])

    app.add_middleware(
        RequestValidationMiddleware,
        max_body_size=settings.request.max_body_size,
    )

    return app
