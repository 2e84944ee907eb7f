"""Leaderboard endpoint tests."""

from __future__ import annotations

import pytest

from tests.unit.routers.conftest import create_agent


@pytest.mark.unit
async def test_empty_before_first_recompute(client):
    await create_agent(client)
    response = await client.get("/leaderboard")
    assert response.status_code == 200
    assert response.json() == {"metric": "earnings", "entries": []}


@pytest.mark.unit
async def test_entries_after_tick(client):
    await create_agent(client, initial_funding=100)
    await create_agent(client, initial_funding=100)
    await client.post("/simulation/tick")

    response = await client.get("/leaderboard", params={"metric": "longevity", "limit": 5})

    assert response.status_code == 200
    data = response.json()
    assert data["metric"] == "longevity"
    assert [entry["rank"] for entry in data["entries"]] == [1, 2]
    assert sorted(entry["rank_by_earnings"] for entry in data["entries"]) == [1, 2]


@pytest.mark.unit
async def test_unknown_metric(client):
    response = await client.get("/leaderboard", params={"metric": "charisma"})
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_FIELD"
