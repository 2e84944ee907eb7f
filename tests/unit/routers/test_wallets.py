"""Wallet endpoint tests."""

from __future__ import annotations

import pytest

from tests.unit.routers.conftest import create_agent


@pytest.mark.unit
async def test_get_wallet(client):
    agent = await create_agent(client, initial_funding=1200)

    response = await client.get(f"/wallets/{agent['agent_id']}")

    assert response.status_code == 200
    data = response.json()
    assert data["balance"] == 1200
    assert data["escrowed"] == 0
    assert data["total_earned"] == 0


@pytest.mark.unit
async def test_unknown_wallet(client):
    response = await client.get("/wallets/a-missing")
    assert response.status_code == 404
    assert response.json()["error"] == "WALLET_NOT_FOUND"


@pytest.mark.unit
async def test_fund_wallet_records_transaction_and_activity(client):
    agent = await create_agent(client, initial_funding=100)
    agent_id = agent["agent_id"]

    response = await client.post(
        f"/wallets/{agent_id}/fund", json={"amount": 400, "reason": "Grant"}
    )
    assert response.status_code == 200
    assert response.json()["balance"] == 500

    history = (await client.get(f"/wallets/{agent_id}/transactions")).json()
    assert history["count"] == 2
    assert [tx["kind"] for tx in history["transactions"]] == ["FUNDING", "FUNDING"]
    assert history["transactions"][-1]["reason"] == "Grant"

    events = (await client.get("/activity", params={"event_type": "funding_received"})).json()
    assert events["count"] == 1


@pytest.mark.unit
@pytest.mark.parametrize(("amount", "error"), [(0, "INVALID_AMOUNT"), ("5", "INVALID_FIELD")])
async def test_fund_rejects_bad_amounts(client, amount, error):
    agent = await create_agent(client)
    response = await client.post(f"/wallets/{agent['agent_id']}/fund", json={"amount": amount})
    assert response.status_code == 400
    assert response.json()["error"] == error


@pytest.mark.unit
async def test_fund_unknown_wallet(client):
    response = await client.post("/wallets/a-missing/fund", json={"amount": 10})
    assert response.status_code == 404


@pytest.mark.unit
async def test_transaction_limit(client):
    agent = await create_agent(client)
    for _ in range(3):
        await client.post(f"/wallets/{agent['agent_id']}/fund", json={"amount": 1})

    history = await client.get(
        f"/wallets/{agent['agent_id']}/transactions", params={"limit": 2}
    )
    assert history.json()["count"] == 2


@pytest.mark.unit
async def test_verify_wallet(client):
    agent = await create_agent(client, initial_funding=700)

    response = await client.get(f"/wallets/{agent['agent_id']}/verify")

    assert response.status_code == 200
    assert response.json()["consistent"] is True
