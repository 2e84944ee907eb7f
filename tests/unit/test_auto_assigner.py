"""Unit tests for automatic task assignment."""

from __future__ import annotations

import pytest

from economy_sim_service.core.exceptions import ServiceError
from economy_sim_service.models import BidStatus, TaskStatus


@pytest.mark.unit
def test_assigns_open_task_to_eligible_agent(engine, make_agent, make_task) -> None:
    poster = make_agent(funding=100)
    worker = make_agent(funding=1000)
    task = make_task(poster.agent_id, deposit=200)

    report = engine.assigner.run()

    assert report.assigned == 1
    assert report.errors == []
    assigned = engine.tasks.get_task(task.task_id)
    assert assigned is not None
    assert assigned.status == TaskStatus.ASSIGNED
    assert assigned.assigned_agent_id == worker.agent_id
    wallet = engine.ledger.get_wallet(worker.agent_id)
    assert wallet is not None
    assert (wallet.balance, wallet.escrowed) == (800, 200)
    bids = engine.tasks.get_bids_for_task(task.task_id)
    assert [(b.agent_id, b.status) for b in bids] == [(worker.agent_id, BidStatus.ACCEPTED)]


@pytest.mark.unit
def test_agents_below_minimum_balance_are_skipped(engine, make_agent, make_task) -> None:
    poster = make_agent(funding=100)
    make_agent(funding=499)
    make_task(poster.agent_id, deposit=0)

    report = engine.assigner.run()

    assert report.assigned == 0
    assert engine.tasks.count_tasks(TaskStatus.OPEN) == 1


@pytest.mark.unit
def test_reputation_requirement_filters_candidates(engine, make_agent, make_task) -> None:
    poster = make_agent(funding=100)
    make_agent(funding=1000)
    make_task(poster.agent_id, required_reputation=900)

    assert engine.assigner.run().assigned == 0


@pytest.mark.unit
def test_running_balance_limits_assignments(engine, make_agent, make_task) -> None:
    """A candidate's balance is reduced by each deposit it takes during the pass."""
    poster = make_agent(funding=100)
    worker = make_agent(funding=1000)
    first = make_task(poster.agent_id, deposit=600)
    second = make_task(poster.agent_id, deposit=600)

    report = engine.assigner.run()

    assert report.assigned == 1
    assert report.errors == []
    first_after = engine.tasks.get_task(first.task_id)
    second_after = engine.tasks.get_task(second.task_id)
    assert first_after is not None
    assert first_after.assigned_agent_id == worker.agent_id
    assert second_after is not None
    assert second_after.status == TaskStatus.OPEN


@pytest.mark.unit
def test_expires_before_assigning(engine, make_agent, make_task, clock) -> None:
    poster = make_agent(funding=100)
    make_agent(funding=1000)
    stale = make_task(poster.agent_id, expires_in_hours=1)
    clock.advance(hours=2)

    report = engine.assigner.run()

    assert report.expired == 1
    assert report.assigned == 0
    expired = engine.tasks.get_task(stale.task_id)
    assert expired is not None
    assert expired.status == TaskStatus.EXPIRED


@pytest.mark.unit
def test_agents_with_a_bid_are_left_to_manual_acceptance(engine, make_agent, make_task) -> None:
    poster = make_agent(funding=100)
    bidder = make_agent(funding=1000)
    task = make_task(poster.agent_id)
    bid = engine.board.submit_bid(task.task_id, bidder.agent_id, 300, 20)

    for _ in range(3):
        report = engine.assigner.run()
        assert (report.assigned, report.errors) == (0, [])

    still_open = engine.tasks.get_task(task.task_id)
    assert still_open is not None
    assert still_open.status == TaskStatus.OPEN
    accepted = engine.board.accept_bid(task.task_id, bid.bid_id)
    assert accepted.assigned_agent_id == bidder.agent_id


@pytest.mark.unit
def test_non_bidders_still_take_the_task(engine, make_agent, make_task) -> None:
    poster = make_agent(funding=100)
    bidder = make_agent(funding=1000)
    other = make_agent(funding=1000)
    task = make_task(poster.agent_id)
    engine.board.submit_bid(task.task_id, bidder.agent_id, 300, 20)

    report = engine.assigner.run()

    assert (report.assigned, report.errors) == (1, [])
    assigned = engine.tasks.get_task(task.task_id)
    assert assigned is not None
    assert assigned.assigned_agent_id == other.agent_id
    bids = {b.agent_id: b.status for b in engine.tasks.get_bids_for_task(task.task_id)}
    assert bids == {bidder.agent_id: BidStatus.REJECTED, other.agent_id: BidStatus.ACCEPTED}


@pytest.mark.unit
def test_per_task_failures_are_recorded(engine, make_agent, make_task, monkeypatch) -> None:
    poster = make_agent(funding=100)
    make_agent(funding=1000)
    task = make_task(poster.agent_id)

    def _fail(agent_id: str, task_id: str, amount: int) -> None:
        raise ServiceError("INSUFFICIENT_FUNDS", "Insufficient balance", 402, {})

    monkeypatch.setattr(engine.ledger, "escrow_deposit", _fail)
    report = engine.assigner.run()

    assert report.assigned == 0
    assert report.errors == [f"assign {task.task_id}: INSUFFICIENT_FUNDS: Insufficient balance"]
    still_open = engine.tasks.get_task(task.task_id)
    assert still_open is not None
    assert still_open.status == TaskStatus.OPEN
    assert engine.tasks.get_bids_for_task(task.task_id) == []


@pytest.mark.unit
def test_nothing_to_do(engine, make_agent) -> None:
    make_agent()
    report = engine.assigner.run()
    assert (report.expired, report.assigned, report.errors) == (0, 0, [])
