"""Configuration loading tests for the economy simulation service."""

from __future__ import annotations

import os

import pytest

from economy_sim_service.config import (
    ConfigurationError,
    Settings,
    clear_settings_cache,
    get_safe_config,
    get_settings,
    load_settings,
)
from tests.helpers import write_config


@pytest.mark.unit
def test_config_loads_from_yaml(tmp_path, monkeypatch):
    """Valid config loads without error."""
    config_path = write_config(tmp_path)
    monkeypatch.setenv("CONFIG_PATH", str(config_path))

    clear_settings_cache()
    settings = get_settings()

    assert isinstance(settings, Settings)
    assert settings.service.name == "economy-sim"
    assert settings.simulation.min_tick_interval_seconds == 3
    assert settings.simulation.random_seed == 7
    assert settings.reputation.decay_floor == 200
    assert settings.bootstrap.agent_count == 5
    assert get_safe_config()["server"]["port"] == 8010


@pytest.mark.unit
def test_settings_are_cached(tmp_path, monkeypatch):
    monkeypatch.setenv("CONFIG_PATH", str(write_config(tmp_path)))
    clear_settings_cache()
    assert get_settings() is get_settings()


@pytest.mark.unit
def test_config_rejects_extra_fields(tmp_path):
    """Extra keys are rejected (extra='forbid')."""
    config_path = write_config(tmp_path)
    config_path.write_text(config_path.read_text() + "unknown_section:\n  enabled: true\n")

    with pytest.raises(ConfigurationError):
        load_settings(config_path)


@pytest.mark.unit
def test_config_missing_required_section(tmp_path):
    """Missing required sections fail validation."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text('service:\n  name: "economy-sim"\n  version: "0.1.0"\n')

    with pytest.raises(ConfigurationError):
        load_settings(config_path)


@pytest.mark.unit
def test_config_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_settings(tmp_path / "nope.yaml")


@pytest.mark.unit
@pytest.mark.parametrize("content", ["- just\n- a list\n", "service: [unclosed\n"])
def test_config_not_a_mapping(tmp_path, content):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(content)

    with pytest.raises(ConfigurationError):
        load_settings(config_path)


@pytest.mark.unit
def test_random_seed_may_be_null(tmp_path):
    config_path = write_config(tmp_path, simulation={"random_seed": None})
    assert load_settings(config_path).simulation.random_seed is None


@pytest.mark.unit
def test_config_path_defaults_to_cwd(tmp_path, monkeypatch):
    monkeypatch.delenv("CONFIG_PATH", raising=False)
    monkeypatch.chdir(tmp_path)
    write_config(tmp_path)

    clear_settings_cache()
    assert get_settings().database.path == os.path.join(str(tmp_path), "economy.db")
