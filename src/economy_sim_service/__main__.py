"""Entry point for the headless ticker.

Usage::

    CONFIG_PATH=config.yaml python -m economy_sim_service
"""

from __future__ import annotations

import asyncio
import random
import signal

from economy_sim_service.config import get_settings
from economy_sim_service.logging import get_logger, setup_logging
from economy_sim_service.services.clock import SystemClock
from economy_sim_service.services.database import Database
from economy_sim_service.services.engine import SimulationEngine
from economy_sim_service.ticker import TickerLoop


async def _main() -> None:
    settings = get_settings()
    setup_logging(settings.logging.level, settings.service.name, settings.logging.directory)
    logger = get_logger(__name__)

    database = Database(settings.database.path)
    engine = SimulationEngine(
        database,
        SystemClock(),
        random.Random(settings.simulation.random_seed),  # nosec B311
        settings,
    )
    loop = TickerLoop(engine, settings.ticker.interval_seconds)

    # Graceful shutdown
    def _handle_signal() -> None:
        logger.info("Received shutdown signal")
        loop.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        asyncio.get_running_loop().add_signal_handler(sig, _handle_signal)

    try:
        await loop.run()
    finally:
        database.close()
        logger.info("Ticker shut down cleanly")


def main() -> None:
    """Sync entry point."""
    asyncio.run(_main())


if __name__ == "__main__":
    main()
