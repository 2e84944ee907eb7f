"""Reputation scores, tiers, streaks, and inactivity decay."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from economy_sim_service.core.exceptions import ServiceError
from economy_sim_service.logging import get_logger
from economy_sim_service.models import ReputationScore, ReputationTier
from economy_sim_service.services.clock import to_iso
from economy_sim_service.services.outcome_resolver import (
    STREAK_BONUS,
    STREAK_INTERVAL,
    reputation_delta,
)

if TYPE_CHECKING:
    import sqlite3

    from economy_sim_service.services.clock import Clock
    from economy_sim_service.services.database import Database

BASE_SCORE = 500
MIN_SCORE = 0
MAX_SCORE = 1000

RELIABILITY_WEIGHT = 0.5
QUALITY_WEIGHT = 0.3
SPEED_WEIGHT = 0.2

# Minimum spacing between two decays of the same agent.
DECAY_INTERVAL = timedelta(days=1)

# Lower bound of each tier, highest first.
TIER_BANDS: tuple[tuple[int, ReputationTier], ...] = (
    (900, ReputationTier.LEGENDARY),
    (800, ReputationTier.ELITE),
    (600, ReputationTier.TRUSTED),
    (400, ReputationTier.RELIABLE),
    (200, ReputationTier.NEWCOMER),
)

_TIER_ORDER: dict[ReputationTier, int] = {
    ReputationTier.UNTRUSTED: 0,
    ReputationTier.NEWCOMER: 1,
    ReputationTier.RELIABLE: 2,
    ReputationTier.TRUSTED: 3,
    ReputationTier.ELITE: 4,
    ReputationTier.LEGENDARY: 5,
}

_SCORE_COLUMNS_SQL = (
    "agent_id, reliability, quality, speed, overall, tier, tasks_completed, tasks_failed, "
    "total_tasks_attempted, current_streak, longest_streak, last_task_at, updated_at"
)

_DIFFICULTY_LABELS: dict[int, str] = {
    1: "trivial",
    2: "easy",
    3: "moderate",
    4: "hard",
    5: "extreme",
}

logger = get_logger(__name__)


def tier_for_score(overall: int) -> ReputationTier:
    """Map an overall score onto its tier band."""
    for lower_bound, tier in TIER_BANDS:
        if overall >= lower_bound:
            return tier
    return ReputationTier.UNTRUSTED


def tier_rank(tier: ReputationTier) -> int:
    """Position of a tier from UNTRUSTED (0) to LEGENDARY (5)."""
    return _TIER_ORDER[tier]


def calculate_overall(reliability: int, quality: int, speed: int) -> int:
    """Weighted overall score, rounded half up and kept within [0, 1000]."""
    weighted = (
        reliability * RELIABILITY_WEIGHT + quality * QUALITY_WEIGHT + speed * SPEED_WEIGHT
    )
    return min(MAX_SCORE, max(MIN_SCORE, math.floor(weighted + 0.5)))


@dataclass(frozen=True)
class AppliedOutcome:
    """What a single task outcome did to an agent's reputation."""

    agent_id: str
    delta: int
    overall_before: int
    overall_after: int
    tier_before: ReputationTier
    tier_after: ReputationTier
    current_streak: int
    streak_bonus: int

    @property
    def tier_changed(self) -> bool:
        return self.tier_before != self.tier_after

    @property
    def tier_went_up(self) -> bool:
        return tier_rank(self.tier_after) > tier_rank(self.tier_before)


class ReputationTracker:
    """SQLite-backed reputation storage and scoring rules."""

    def __init__(
        self,
        database: Database,
        clock: Clock,
        inactivity_threshold_days: int,
        inactivity_decay: int,
        decay_floor: int,
    ) -> None:
        self._database = database
        self._clock = clock
        self._inactivity_threshold = timedelta(days=inactivity_threshold_days)
        self._inactivity_decay = inactivity_decay
        self._decay_floor = decay_floor

    @staticmethod
    def _row_to_score(row: sqlite3.Row) -> ReputationScore:
        return ReputationScore(
            agent_id=str(row["agent_id"]),
            reliability=int(row["reliability"]),
            quality=int(row["quality"]),
            speed=int(row["speed"]),
            overall=int(row["overall"]),
            tier=ReputationTier(row["tier"]),
            tasks_completed=int(row["tasks_completed"]),
            tasks_failed=int(row["tasks_failed"]),
            total_tasks_attempted=int(row["total_tasks_attempted"]),
            current_streak=int(row["current_streak"]),
            longest_streak=int(row["longest_streak"]),
            last_task_at=str(row["last_task_at"]) if row["last_task_at"] is not None else None,
            updated_at=str(row["updated_at"]),
        )

    def _record_event(
        self,
        conn: sqlite3.Connection,
        *,
        agent_id: str,
        event_type: str,
        delta: int,
        reason: str,
        task_id: str | None,
        score_before: int,
        score_after: int,
        created_at: str,
    ) -> None:
        conn.execute(
            "INSERT INTO reputation_events "
            "(event_id, agent_id, event_type, delta, reason, task_id, score_before, "
            "score_after, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                f"rep-{uuid.uuid4()}",
                agent_id,
                event_type,
                delta,
                reason,
                task_id,
                score_before,
                score_after,
                created_at,
            ),
        )

    def create_score(self, agent_id: str) -> ReputationScore:
        """Create the starting reputation row for a new agent."""
        now = to_iso(self._clock.now())
        overall = calculate_overall(BASE_SCORE, BASE_SCORE, BASE_SCORE)
        tier = tier_for_score(overall)
        with self._database.transaction() as conn:
            conn.execute(
                "INSERT INTO reputation_scores "
                "(agent_id, reliability, quality, speed, overall, tier, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (agent_id, BASE_SCORE, BASE_SCORE, BASE_SCORE, overall, tier.value, now),
            )
        return ReputationScore(
            agent_id=agent_id,
            reliability=BASE_SCORE,
            quality=BASE_SCORE,
            speed=BASE_SCORE,
            overall=overall,
            tier=tier,
            tasks_completed=0,
            tasks_failed=0,
            total_tasks_attempted=0,
            current_streak=0,
            longest_streak=0,
            last_task_at=None,
            updated_at=now,
        )

    def get_score(self, agent_id: str) -> ReputationScore | None:
        """Get an agent's reputation. Returns None if not found."""
        row = self._database.fetchone(
            f"SELECT {_SCORE_COLUMNS_SQL} FROM reputation_scores WHERE agent_id = ?",  # nosec B608
            (agent_id,),
        )
        if row is None:
            return None
        return self._row_to_score(row)

    def get_events(self, agent_id: str, limit: int) -> list[dict[str, object]]:
        """Most recent reputation events for an agent."""
        rows = self._database.fetchall(
            "SELECT event_id, event_type, delta, reason, task_id, score_before, score_after, "
            "created_at FROM reputation_events WHERE agent_id = ? "
            "ORDER BY created_at DESC, event_id LIMIT ?",
            (agent_id, limit),
        )
        return [dict(row) for row in rows]

    def apply_outcome(
        self,
        agent_id: str,
        task_id: str,
        success: bool,
        difficulty: int,
        quality_score: int,
    ) -> AppliedOutcome:
        """
        Fold one task outcome into an agent's reputation.

        Reliability moves by the reputation delta and is clamped to
        [0, 1000]; overall and tier are recomputed from the components.
        A failure resets the streak.

        Args:
            agent_id: Agent that executed the task.
            task_id: Task that was resolved.
            success: Whether the task succeeded.
            difficulty: Task difficulty (1-5).
            quality_score: Quality in [0, 100], ignored on failure.

        Returns:
            AppliedOutcome describing the change.

        Raises:
            ServiceError: REPUTATION_NOT_FOUND if the agent has no reputation row.
        """
        now = to_iso(self._clock.now())
        with self._database.transaction() as conn:
            row = conn.execute(
                f"SELECT {_SCORE_COLUMNS_SQL} FROM reputation_scores "  # nosec B608
                "WHERE agent_id = ?",
                (agent_id,),
            ).fetchone()
            if row is None:
                raise ServiceError(
                    "REPUTATION_NOT_FOUND",
                    "Reputation not found",
                    404,
                    {"agent_id": agent_id},
                )
            score = self._row_to_score(row)

            new_streak = score.current_streak + 1 if success else 0
            delta = reputation_delta(success, difficulty, quality_score, new_streak)
            streak_bonus = (
                STREAK_BONUS if success and new_streak % STREAK_INTERVAL == 0 else 0
            )

            reliability = min(MAX_SCORE, max(MIN_SCORE, score.reliability + delta))
            overall = calculate_overall(reliability, score.quality, score.speed)
            tier = tier_for_score(overall)

            conn.execute(
                "UPDATE reputation_scores SET reliability = ?, overall = ?, tier = ?, "
                "tasks_completed = tasks_completed + ?, tasks_failed = tasks_failed + ?, "
                "total_tasks_attempted = total_tasks_attempted + 1, current_streak = ?, "
                "longest_streak = ?, last_task_at = ?, updated_at = ? WHERE agent_id = ?",
                (
                    reliability,
                    overall,
                    tier.value,
                    1 if success else 0,
                    0 if success else 1,
                    new_streak,
                    max(score.longest_streak, new_streak),
                    now,
                    now,
                    agent_id,
                ),
            )

            label = _DIFFICULTY_LABELS.get(difficulty, f"level {difficulty}")
            self._record_event(
                conn,
                agent_id=agent_id,
                event_type="TASK_SUCCESS" if success else "TASK_FAILURE",
                delta=delta,
                reason=f"{'Completed' if success else 'Failed'} {label} task",
                task_id=task_id,
                score_before=score.overall,
                score_after=overall,
                created_at=now,
            )
            if streak_bonus > 0:
                self._record_event(
                    conn,
                    agent_id=agent_id,
                    event_type="BONUS_STREAK",
                    delta=streak_bonus,
                    reason=f"{new_streak}-task success streak",
                    task_id=task_id,
                    score_before=score.overall,
                    score_after=overall,
                    created_at=now,
                )

        return AppliedOutcome(
            agent_id=agent_id,
            delta=delta,
            overall_before=score.overall,
            overall_after=overall,
            tier_before=score.tier,
            tier_after=tier,
            current_streak=new_streak,
            streak_bonus=streak_bonus,
        )

    def _decay_component(self, value: int, amount: int) -> int:
        return max(min(value, self._decay_floor), value - amount)

    def apply_inactivity_decay(self) -> int:
        """
        Lower the scores of agents idle past the inactivity threshold.

        Each component drops by up to ``inactivity_decay`` without crossing
        ``decay_floor``, and ``overall`` is recomputed from the components.
        An agent decays at most once per ``DECAY_INTERVAL``. Decay stamps
        ``last_decay_at`` and leaves ``updated_at`` alone, so it never counts
        as activity.

        Returns:
            Number of agents decayed.
        """
        now_dt = self._clock.now()
        now = to_iso(now_dt)
        idle_cutoff = to_iso(now_dt - self._inactivity_threshold)
        decay_cutoff = to_iso(now_dt - DECAY_INTERVAL)
        decayed = 0

        with self._database.transaction() as conn:
            rows = conn.execute(
                "SELECT r.agent_id, r.reliability, r.quality, r.speed, r.overall "
                "FROM reputation_scores r "
                "JOIN agents a ON a.agent_id = r.agent_id "
                "WHERE a.status != 'ARCHIVED' AND r.overall > ? "
                "AND COALESCE(r.last_task_at, r.updated_at) < ? "
                "AND (r.last_decay_at IS NULL OR r.last_decay_at <= ?)",
                (self._decay_floor, idle_cutoff, decay_cutoff),
            ).fetchall()

            for row in rows:
                agent_id = str(row["agent_id"])
                overall = int(row["overall"])
                amount = min(self._inactivity_decay, overall - self._decay_floor)
                if amount <= 0:
                    continue
                reliability = self._decay_component(int(row["reliability"]), amount)
                quality = self._decay_component(int(row["quality"]), amount)
                speed = self._decay_component(int(row["speed"]), amount)
                new_overall = calculate_overall(reliability, quality, speed)
                if new_overall >= overall:
                    continue
                conn.execute(
                    "UPDATE reputation_scores SET reliability = ?, quality = ?, speed = ?, "
                    "overall = ?, tier = ?, last_decay_at = ? WHERE agent_id = ?",
                    (
                        reliability,
                        quality,
                        speed,
                        new_overall,
                        tier_for_score(new_overall).value,
                        now,
                        agent_id,
                    ),
                )
                self._record_event(
                    conn,
                    agent_id=agent_id,
                    event_type="INACTIVITY_DECAY",
                    delta=new_overall - overall,
                    reason="Inactivity decay",
                    task_id=None,
                    score_before=overall,
                    score_after=new_overall,
                    created_at=now,
                )
                decayed += 1

        if decayed:
            logger.info("Applied inactivity decay", extra={"agents_decayed": decayed})
        return decayed
