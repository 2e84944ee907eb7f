"""Run the HTTP service under uvicorn."""

from __future__ import annotations

import uvicorn

from economy_sim_service.config import get_settings


def main() -> None:
    """Serve ``create_app()`` on the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "economy_sim_service.app:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.server.log_level,
    )


if __name__ == "__main__":
    main()
