"""Agent endpoint tests."""

from __future__ import annotations

import pytest

from tests.unit.routers.conftest import create_agent


@pytest.mark.unit
async def test_create_agent_returns_full_detail(client):
    data = await create_agent(client, role="ANALYST", initial_funding=1500, name="Ada")

    assert data["agent_id"].startswith("a-")
    assert data["name"] == "Ada"
    assert data["role"] == "ANALYST"
    assert data["status"] == "ACTIVE"
    assert data["wallet"]["balance"] == 1500
    assert data["reputation"]["overall"] == 500
    assert data["reputation"]["tier"] == "RELIABLE"
    assert data["reputation"]["success_rate"] == 0.0
    assert data["reputation_events"] == []


@pytest.mark.unit
async def test_create_agent_generates_name(client):
    data = await create_agent(client)
    assert data["name"].startswith("AGENT-")
    assert len(data["name"]) == len("AGENT-XXXX")


@pytest.mark.unit
@pytest.mark.parametrize(
    "payload",
    [
        {"role": "WIZARD", "initial_funding": 100},
        {"role": "COMPUTE"},
        {"role": "COMPUTE", "initial_funding": "100"},
        {"role": "COMPUTE", "initial_funding": True},
        {"role": "COMPUTE", "initial_funding": 100, "name": ""},
    ],
)
async def test_create_agent_invalid_fields(client, payload):
    response = await client.post("/agents", json=payload)
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_FIELD"


@pytest.mark.unit
async def test_create_agent_zero_funding(client):
    response = await client.post("/agents", json={"role": "COMPUTE", "initial_funding": 0})
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_AMOUNT"


@pytest.mark.unit
async def test_create_agent_invalid_json(client):
    response = await client.post(
        "/agents", content=b"{not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_JSON"


@pytest.mark.unit
async def test_list_agents_with_filters(client):
    first = await create_agent(client, role="COMPUTE")
    second = await create_agent(client, role="VALIDATOR")
    await client.post(f"/agents/{second['agent_id']}/suspend")

    all_agents = (await client.get("/agents")).json()
    assert all_agents["count"] == 2

    active = (await client.get("/agents", params={"status": "active"})).json()
    assert [a["agent_id"] for a in active["agents"]] == [first["agent_id"]]

    validators = (await client.get("/agents", params={"role": "VALIDATOR"})).json()
    assert [a["agent_id"] for a in validators["agents"]] == [second["agent_id"]]

    bad = await client.get("/agents", params={"limit": 0})
    assert bad.status_code == 400


@pytest.mark.unit
async def test_get_unknown_agent(client):
    response = await client.get("/agents/a-missing")
    assert response.status_code == 404
    assert response.json()["error"] == "AGENT_NOT_FOUND"


@pytest.mark.unit
async def test_suspend_and_reactivate(client):
    agent = await create_agent(client)
    agent_id = agent["agent_id"]

    suspended = await client.post(f"/agents/{agent_id}/suspend")
    assert suspended.status_code == 200
    assert suspended.json()["status"] == "SUSPENDED"

    again = await client.post(f"/agents/{agent_id}/suspend")
    assert again.status_code == 409
    assert again.json()["error"] == "INVALID_TRANSITION"

    reactivated = await client.post(f"/agents/{agent_id}/reactivate")
    assert reactivated.status_code == 200
    assert reactivated.json()["status"] == "ACTIVE"


@pytest.mark.unit
async def test_archive_is_idempotent(client):
    agent = await create_agent(client)
    agent_id = agent["agent_id"]

    first = await client.post(f"/agents/{agent_id}/archive", json={"reason": "Retired"})
    assert first.status_code == 200
    assert first.json()["archived"] is True
    assert first.json()["archive_reason"] == "Retired"

    second = await client.post(f"/agents/{agent_id}/archive")
    assert second.status_code == 200
    assert second.json()["archived"] is False
    assert second.json()["archive_reason"] == "Retired"

    reactivate = await client.post(f"/agents/{agent_id}/reactivate")
    assert reactivate.status_code == 409


@pytest.mark.unit
async def test_archive_default_reason(client):
    agent = await create_agent(client)
    response = await client.post(f"/agents/{agent['agent_id']}/archive")
    assert response.json()["archive_reason"] == "Archived by operator"


@pytest.mark.unit
async def test_archive_unknown_agent(client):
    response = await client.post("/agents/a-missing/archive")
    assert response.status_code == 404
