"""Shared test helpers: a controllable clock and configuration builders."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import yaml

from economy_sim_service.config import Settings

if TYPE_CHECKING:
    from pathlib import Path

START = datetime(2025, 1, 1, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = START) -> None:
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs: float) -> datetime:
        """Move forward by ``timedelta(**kwargs)`` and return the new time."""
        self._now += timedelta(**kwargs)
        return self._now

    def set(self, moment: datetime) -> None:
        self._now = moment


def settings_dict(tmp_path: Path) -> dict[str, Any]:
    """A complete, valid configuration mapping rooted in ``tmp_path``."""
    return {
        "service": {"name": "economy-sim", "version": "0.1.0"},
        "server": {"host": "127.0.0.1", "port": 8010, "log_level": "info"},
        "logging": {"level": "INFO", "directory": str(tmp_path / "logs")},
        "database": {"path": str(tmp_path / "economy.db")},
        "simulation": {
            "min_tick_interval_seconds": 3,
            "task_batch_interval_seconds": 5,
            "leaderboard_update_interval_seconds": 5,
            "maintenance_interval_seconds": 3600,
            "max_tasks_per_batch": 10,
            "max_open_tasks": 100,
            "max_completions_per_tick": 20,
            "auto_assign_batch_size": 10,
            "min_assign_balance": 500,
            "leaderboard_batch_size": 50,
            "random_seed": 7,
        },
        "reputation": {
            "inactivity_threshold_days": 7,
            "inactivity_decay": 5,
            "decay_floor": 200,
        },
        "activity": {"retention_hours": 168},
        "bootstrap": {"agent_count": 5, "min_funding": 1000, "max_funding": 5000},
        "ticker": {"interval_seconds": 0.01},
        "request": {"max_body_size": 1024},
    }


def build_settings(tmp_path: Path, **sections: dict[str, Any]) -> Settings:
    """Settings from ``settings_dict`` with per-section overrides merged in."""
    raw = settings_dict(tmp_path)
    for section, overrides in sections.items():
        raw[section] = {**raw[section], **overrides}
    return Settings(**raw)


def write_config(tmp_path: Path, **sections: dict[str, Any]) -> Path:
    """Write a config.yaml into ``tmp_path`` and return its path."""
    settings = build_settings(tmp_path, **sections)
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump(settings.model_dump()))
    return config_path
