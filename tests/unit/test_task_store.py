"""Unit tests for TaskStore."""

from __future__ import annotations

import pytest

from economy_sim_service.models import Bid, BidStatus, TaskCategory, TaskStatus
from economy_sim_service.services.task_store import DuplicateBidError, InvalidTransitionError


def _bid(task_id: str, agent_id: str, bid_id: str = "bid-1") -> Bid:
    return Bid(
        bid_id=bid_id,
        task_id=task_id,
        agent_id=agent_id,
        proposed_reward=100,
        estimated_duration_minutes=30,
        message=None,
        status=BidStatus.PENDING,
        created_at="2025-01-01T12:00:00.000Z",
        responded_at=None,
    )


@pytest.mark.unit
def test_insert_get_and_list(engine, make_agent, make_task, clock) -> None:
    poster = make_agent()
    first = make_task(poster.agent_id)
    clock.advance(seconds=1)
    second = make_task(poster.agent_id)
    store = engine.tasks

    assert store.get_task(first.task_id) == first
    assert store.get_task("t-missing") is None
    assert [t.task_id for t in store.list_tasks()] == [second.task_id, first.task_id]
    assert [t.task_id for t in store.list_tasks(oldest_first=True)] == [
        first.task_id,
        second.task_id,
    ]
    assert len(store.list_tasks(status=TaskStatus.OPEN, limit=1)) == 1
    assert store.list_tasks(category=TaskCategory.RESEARCH) == []
    assert len(store.list_tasks(poster_id=poster.agent_id)) == 2


@pytest.mark.unit
def test_counts(engine, make_agent, make_task) -> None:
    poster = make_agent()
    make_task(poster.agent_id)
    task = make_task(poster.agent_id)
    engine.tasks.transition(task.task_id, TaskStatus.OPEN, TaskStatus.CANCELLED)

    counts = engine.tasks.count_by_status()
    assert counts["OPEN"] == 1
    assert counts["CANCELLED"] == 1
    assert counts["COMPLETED"] == 0
    assert set(counts) == {status.value for status in TaskStatus}
    assert engine.tasks.count_tasks() == 2
    assert engine.tasks.count_tasks(TaskStatus.OPEN) == 1


@pytest.mark.unit
def test_transition_is_guarded(engine, make_agent, make_task) -> None:
    poster = make_agent()
    task = make_task(poster.agent_id)
    store = engine.tasks

    assert store.transition(task.task_id, TaskStatus.OPEN, TaskStatus.EXPIRED) == 1
    # Second writer expecting OPEN loses.
    assert store.transition(task.task_id, TaskStatus.OPEN, TaskStatus.CANCELLED) == 0
    refreshed = store.get_task(task.task_id)
    assert refreshed is not None
    assert refreshed.status == TaskStatus.EXPIRED


@pytest.mark.unit
@pytest.mark.parametrize(
    ("current", "target"),
    [
        (TaskStatus.COMPLETED, TaskStatus.OPEN),
        (TaskStatus.ASSIGNED, TaskStatus.OPEN),
        (TaskStatus.OPEN, TaskStatus.COMPLETED),
        (TaskStatus.EXPIRED, TaskStatus.ASSIGNED),
    ],
)
def test_backward_transitions_rejected(engine, current, target) -> None:
    with pytest.raises(InvalidTransitionError):
        engine.tasks.transition("t-any", current, target)


@pytest.mark.unit
def test_transition_rejects_unknown_columns(engine, make_agent, make_task) -> None:
    poster = make_agent()
    task = make_task(poster.agent_id)
    with pytest.raises(ValueError):
        engine.tasks.transition(
            task.task_id, TaskStatus.OPEN, TaskStatus.CANCELLED, {"reward": 0}
        )


@pytest.mark.unit
def test_duplicate_bid(engine, make_agent, make_task) -> None:
    poster = make_agent()
    bidder = make_agent()
    task = make_task(poster.agent_id)

    engine.tasks.insert_bid(_bid(task.task_id, bidder.agent_id))
    with pytest.raises(DuplicateBidError):
        engine.tasks.insert_bid(_bid(task.task_id, bidder.agent_id, bid_id="bid-2"))


@pytest.mark.unit
def test_bid_status_changes(engine, make_agent, make_task) -> None:
    poster = make_agent()
    first = make_agent()
    second = make_agent()
    task = make_task(poster.agent_id)
    store = engine.tasks
    store.insert_bid(_bid(task.task_id, first.agent_id, "bid-1"))
    store.insert_bid(_bid(task.task_id, second.agent_id, "bid-2"))

    now = "2025-01-01T13:00:00.000Z"
    assert store.set_bid_status("bid-1", BidStatus.PENDING, BidStatus.ACCEPTED, now) == 1
    assert store.set_bid_status("bid-1", BidStatus.PENDING, BidStatus.REJECTED, now) == 0
    assert store.reject_pending_bids(task.task_id, now) == 1

    statuses = {bid.bid_id: bid.status for bid in store.get_bids_for_task(task.task_id)}
    assert statuses == {"bid-1": BidStatus.ACCEPTED, "bid-2": BidStatus.REJECTED}
    assert store.get_bid("bid-1", "t-other") is None
