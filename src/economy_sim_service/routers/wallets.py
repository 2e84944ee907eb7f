"""Wallet balance, funding, history, and replay verification endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from starlette.concurrency import run_in_threadpool

from economy_sim_service.core.exceptions import ServiceError
from economy_sim_service.routers.helpers import (
    get_engine,
    optional_str,
    parse_json_body,
    query_limit,
    require_int,
    to_payload,
)

if TYPE_CHECKING:
    from economy_sim_service.models import Wallet
    from economy_sim_service.services.engine import SimulationEngine

router = APIRouter()


def _require_wallet(engine: SimulationEngine, agent_id: str) -> Wallet:
    wallet = engine.ledger.get_wallet(agent_id)
    if wallet is None:
        raise ServiceError("WALLET_NOT_FOUND", "Wallet not found", 404, {"agent_id": agent_id})
    return wallet


def _fund(engine: SimulationEngine, agent_id: str, amount: int, reason: str | None) -> Wallet:
    wallet = engine.ledger.fund(agent_id, amount, reason or "Wallet funding")
    agent = engine.agents.get_agent(agent_id)
    engine.activity.funding_received(agent_id, agent.name if agent else agent_id, amount)
    return wallet


@router.get("/wallets/{agent_id}")
async def get_wallet(agent_id: str) -> dict[str, Any]:
    """Current balance, escrow, and lifetime totals."""
    engine = get_engine()
    wallet = await run_in_threadpool(_require_wallet, engine, agent_id)
    return to_payload(wallet)


@router.post("/wallets/{agent_id}/fund")
async def fund_wallet(request: Request, agent_id: str) -> dict[str, Any]:
    """Credit a wallet with new funds."""
    data = parse_json_body(await request.body())
    amount = require_int(data, "amount")
    reason = optional_str(data, "reason")

    engine = get_engine()
    wallet = await run_in_threadpool(_fund, engine, agent_id, amount, reason)
    return to_payload(wallet)


@router.get("/wallets/{agent_id}/transactions")
async def get_transactions(request: Request, agent_id: str) -> dict[str, Any]:
    """Transaction history, oldest first."""
    limit = query_limit(request, default=100)
    engine = get_engine()
    transactions = await run_in_threadpool(engine.ledger.get_transactions, agent_id, limit)
    return {
        "agent_id": agent_id,
        "transactions": [to_payload(tx) for tx in transactions],
        "count": len(transactions),
    }


@router.get("/wallets/{agent_id}/verify")
async def verify_wallet(agent_id: str) -> dict[str, Any]:
    """Compare the stored wallet with a replay of its transaction log."""
    engine = get_engine()
    return await run_in_threadpool(engine.ledger.verify_wallet, agent_id)
