"""Service layer components."""

from economy_sim_service.services.clock import Clock, SystemClock
from economy_sim_service.services.database import Database
from economy_sim_service.services.engine import SimulationEngine
from economy_sim_service.services.outcome_resolver import SeededRandom, resolve_outcome
from economy_sim_service.services.scheduler import TickScheduler

__all__ = [
    "Clock",
    "Database",
    "SeededRandom",
    "SimulationEngine",
    "SystemClock",
    "TickScheduler",
    "resolve_outcome",
]
