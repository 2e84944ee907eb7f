"""Application lifecycle management."""

from __future__ import annotations

import random
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from economy_sim_service.config import get_settings
from economy_sim_service.core.state import init_app_state
from economy_sim_service.logging import get_logger, setup_logging
from economy_sim_service.services.clock import SystemClock
from economy_sim_service.services.database import Database
from economy_sim_service.services.engine import SimulationEngine

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle."""
    # === STARTUP ===
    settings = get_settings()

    setup_logging(settings.logging.level, settings.service.name, settings.logging.directory)
    logger = get_logger(__name__)

    state = init_app_state()

    state.database = Database(settings.database.path)
    state.engine = SimulationEngine(
        state.database,
        SystemClock(),
        random.Random(settings.simulation.random_seed),  # nosec B311
        settings,
    )
    # Create the state singleton so status reads work before the first tick.
    state.engine.state.get()

    logger.info(
        "Service starting",
        extra={
            "service": settings.service.name,
            "version": settings.service.version,
            "port": settings.server.port,
            "database": settings.database.path,
        },
    )

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Service shutting down", extra={"uptime_seconds": state.uptime_seconds})
    state.engine.begin_shutdown()
    state.database.close()
