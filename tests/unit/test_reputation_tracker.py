"""Unit tests for reputation scoring, tiers, streaks, and decay."""

from __future__ import annotations

import pytest

from economy_sim_service.core.exceptions import ServiceError
from economy_sim_service.models import ReputationTier
from economy_sim_service.services.outcome_resolver import reputation_delta
from economy_sim_service.services.reputation_tracker import (
    calculate_overall,
    tier_for_score,
    tier_rank,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("overall", "tier"),
    [
        (0, ReputationTier.UNTRUSTED),
        (199, ReputationTier.UNTRUSTED),
        (200, ReputationTier.NEWCOMER),
        (399, ReputationTier.NEWCOMER),
        (400, ReputationTier.RELIABLE),
        (600, ReputationTier.TRUSTED),
        (800, ReputationTier.ELITE),
        (899, ReputationTier.ELITE),
        (900, ReputationTier.LEGENDARY),
        (1000, ReputationTier.LEGENDARY),
    ],
)
def test_tier_bands(overall: int, tier: ReputationTier) -> None:
    assert tier_for_score(overall) == tier


@pytest.mark.unit
def test_tier_is_monotone_in_overall() -> None:
    ranks = [tier_rank(tier_for_score(score)) for score in range(0, 1001)]
    assert ranks == sorted(ranks)


@pytest.mark.unit
def test_calculate_overall_weights_and_bounds() -> None:
    assert calculate_overall(500, 500, 500) == 500
    assert calculate_overall(1000, 1000, 1000) == 1000
    assert calculate_overall(0, 0, 0) == 0
    assert calculate_overall(475, 500, 500) == 488


@pytest.mark.unit
def test_new_agent_starts_reliable(engine, make_agent) -> None:
    agent = make_agent()
    score = engine.reputation.get_score(agent.agent_id)
    assert score is not None
    assert score.overall == 500
    assert score.tier == ReputationTier.RELIABLE
    assert score.success_rate == 0.0


@pytest.mark.unit
def test_success_raises_reliability(engine, make_agent) -> None:
    agent = make_agent()
    applied = engine.reputation.apply_outcome(agent.agent_id, "t-1", True, 3, 73)

    assert applied.delta == 14
    assert applied.overall_before == 500
    assert applied.overall_after == 507
    score = engine.reputation.get_score(agent.agent_id)
    assert score is not None
    assert score.reliability == 514
    assert score.tasks_completed == 1
    assert score.current_streak == 1
    assert score.last_task_at is not None


@pytest.mark.unit
def test_failure_resets_streak(engine, make_agent) -> None:
    agent = make_agent()
    tracker = engine.reputation
    tracker.apply_outcome(agent.agent_id, "t-1", True, 1, 50)
    tracker.apply_outcome(agent.agent_id, "t-2", True, 1, 50)
    applied = tracker.apply_outcome(agent.agent_id, "t-3", False, 3, 0)

    assert applied.delta == -25
    assert applied.current_streak == 0
    score = tracker.get_score(agent.agent_id)
    assert score is not None
    assert score.longest_streak == 2
    assert score.tasks_failed == 1
    assert score.total_tasks_attempted == 3


@pytest.mark.unit
def test_fifth_success_earns_streak_bonus(engine, make_agent) -> None:
    agent = make_agent()
    tracker = engine.reputation
    results = [
        tracker.apply_outcome(agent.agent_id, f"t-{i}", True, 1, 50) for i in range(5)
    ]

    assert [r.streak_bonus for r in results] == [0, 0, 0, 0, 10]
    assert results[-1].delta == 18
    event_types = [e["event_type"] for e in tracker.get_events(agent.agent_id, 20)]
    assert event_types.count("BONUS_STREAK") == 1
    assert event_types.count("TASK_SUCCESS") == 5


@pytest.mark.unit
def test_reliability_is_clamped(engine, make_agent) -> None:
    agent = make_agent()
    for i in range(40):
        engine.reputation.apply_outcome(agent.agent_id, f"t-{i}", False, 5, 0)
    score = engine.reputation.get_score(agent.agent_id)
    assert score is not None
    assert score.reliability == 0
    assert 0 <= score.overall <= 1000


@pytest.mark.unit
def test_apply_outcome_without_row(engine) -> None:
    with pytest.raises(ServiceError) as exc_info:
        engine.reputation.apply_outcome("a-missing", "t-1", True, 1, 50)
    assert exc_info.value.error == "REPUTATION_NOT_FOUND"



def _assert_overall_matches_components(score) -> None:
    assert score.overall == calculate_overall(score.reliability, score.quality, score.speed)


@pytest.mark.unit
def test_inactivity_decay(engine, make_agent, clock) -> None:
    agent = make_agent()
    clock.advance(days=8)

    assert engine.reputation.apply_inactivity_decay() == 1
    score = engine.reputation.get_score(agent.agent_id)
    assert score is not None
    assert score.overall == 495
    assert (score.reliability, score.quality, score.speed) == (495, 495, 495)
    assert score.updated_at == agent.created_at
    _assert_overall_matches_components(score)

    assert engine.reputation.apply_inactivity_decay() == 0
    clock.advance(days=1)
    assert engine.reputation.apply_inactivity_decay() == 1
    score = engine.reputation.get_score(agent.agent_id)
    assert score is not None
    assert score.overall == 490


@pytest.mark.unit
def test_decay_persists_through_next_outcome(engine, make_agent, clock) -> None:
    agent = make_agent()
    clock.advance(days=8)
    engine.reputation.apply_inactivity_decay()

    applied = engine.reputation.apply_outcome(agent.agent_id, "t-1", True, 1, 50)

    delta = reputation_delta(True, 1, 50, 1)
    assert applied.overall_before == 495
    assert applied.overall_after == calculate_overall(495 + delta, 495, 495)
    assert applied.overall_after < calculate_overall(500 + delta, 500, 500)
    score = engine.reputation.get_score(agent.agent_id)
    assert score is not None
    _assert_overall_matches_components(score)


@pytest.mark.unit
def test_worked_agent_decays_once_per_interval(engine, make_agent, clock) -> None:
    agent = make_agent()
    engine.reputation.apply_outcome(agent.agent_id, "t-1", True, 1, 50)
    clock.advance(days=8)

    decayed = 0
    for _ in range(5):
        decayed += engine.reputation.apply_inactivity_decay()
        clock.advance(hours=1)

    assert decayed == 1
    events = engine.reputation.get_events(agent.agent_id, 20)
    assert [e["event_type"] for e in events].count("INACTIVITY_DECAY") == 1


@pytest.mark.unit
def test_recently_active_agents_do_not_decay(engine, make_agent, clock) -> None:
    agent = make_agent()
    clock.advance(days=6)
    engine.reputation.apply_outcome(agent.agent_id, "t-1", True, 1, 50)
    clock.advance(days=3)
    assert engine.reputation.apply_inactivity_decay() == 0


@pytest.mark.unit
def test_decay_stops_at_floor(engine, make_agent, clock, database) -> None:
    agent = make_agent()
    with database.transaction() as conn:
        conn.execute(
            "UPDATE reputation_scores SET reliability = 203, quality = 203, speed = 203, "
            "overall = 203 WHERE agent_id = ?",
            (agent.agent_id,),
        )
    clock.advance(days=8)
    engine.reputation.apply_inactivity_decay()

    score = engine.reputation.get_score(agent.agent_id)
    assert score is not None
    assert score.overall == 200
    assert score.tier == ReputationTier.NEWCOMER
    _assert_overall_matches_components(score)

    clock.advance(days=8)
    assert engine.reputation.apply_inactivity_decay() == 0
