"""
Configuration management for the economy simulation service.

Loads configuration from YAML with ZERO defaults.
Every value must be explicitly specified or startup fails.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError


class ConfigurationError(Exception):
    """Raised when the configuration file is missing or invalid."""


class ServiceConfig(BaseModel):
    """Service identity configuration."""

    model_config = ConfigDict(extra="forbid")
    name: str
    version: str


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    model_config = ConfigDict(extra="forbid")
    host: str
    port: int
    log_level: str


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra="forbid")
    level: str
    directory: str


class DatabaseConfig(BaseModel):
    """Database configuration."""

    model_config = ConfigDict(extra="forbid")
    path: str


class SimulationConfig(BaseModel):
    """Tick pacing, cooldowns, and per-tick limits."""

    model_config = ConfigDict(extra="forbid")
    min_tick_interval_seconds: float
    task_batch_interval_seconds: float
    leaderboard_update_interval_seconds: float
    maintenance_interval_seconds: float
    max_tasks_per_batch: int
    max_open_tasks: int
    max_completions_per_tick: int
    auto_assign_batch_size: int
    min_assign_balance: int
    leaderboard_batch_size: int
    random_seed: int | None


class ReputationConfig(BaseModel):
    """Inactivity decay configuration."""

    model_config = ConfigDict(extra="forbid")
    inactivity_threshold_days: int
    inactivity_decay: int
    decay_floor: int


class ActivityConfig(BaseModel):
    """Activity feed retention."""

    model_config = ConfigDict(extra="forbid")
    retention_hours: int


class BootstrapConfig(BaseModel):
    """Initial agent population created by POST /admin/init."""

    model_config = ConfigDict(extra="forbid")
    agent_count: int
    min_funding: int
    max_funding: int


class TickerConfig(BaseModel):
    """Headless ticker cadence."""

    model_config = ConfigDict(extra="forbid")
    interval_seconds: float


class RequestConfig(BaseModel):
    """Request validation configuration."""

    model_config = ConfigDict(extra="forbid")
    max_body_size: int


class Settings(BaseModel):
    """
    Root configuration container.

    All fields are REQUIRED. No defaults exist.
    Missing fields cause immediate startup failure.
    """

    model_config = ConfigDict(extra="forbid")
    service: ServiceConfig
    server: ServerConfig
    logging: LoggingConfig
    database: DatabaseConfig
    simulation: SimulationConfig
    reputation: ReputationConfig
    activity: ActivityConfig
    bootstrap: BootstrapConfig
    ticker: TickerConfig
    request: RequestConfig


def get_config_path() -> Path:
    """Determine configuration file path.

    Uses the CONFIG_PATH environment variable when set, otherwise
    ``config.yaml`` in the current working directory.
    """
    env_value = os.environ.get("CONFIG_PATH")
    if env_value:
        return Path(env_value)
    return Path.cwd() / "config.yaml"


def load_settings(config_path: Path) -> Settings:
    """
    Load and validate settings from a YAML file.

    Raises:
        ConfigurationError: If the file is missing, not a mapping, or fails validation.
    """
    if not config_path.is_file():
        msg = f"Configuration file not found: {config_path}"
        raise ConfigurationError(msg)

    try:
        raw = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as exc:
        msg = f"Invalid YAML in configuration file: {config_path}"
        raise ConfigurationError(msg) from exc

    if not isinstance(raw, dict):
        msg = f"Invalid config file: {config_path}"
        raise ConfigurationError(msg)

    try:
        return Settings(**raw)
    except ValidationError as exc:
        msg = f"Configuration validation failed: {exc}"
        raise ConfigurationError(msg) from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once and cache them for the process."""
    return load_settings(get_config_path())


def clear_settings_cache() -> None:
    """Drop cached settings. Used in testing."""
    get_settings.cache_clear()


def get_safe_config() -> dict[str, Any]:
    """Get configuration as a plain dict (nothing here is secret)."""
    return get_settings().model_dump()
