"""
Deterministic task outcome calculation.

Everything here is a pure function of its arguments. The same
(overall score, difficulty, seed) always yields the same outcome, in
this process or any other, so a partially processed tick can be re-run
and every settlement can be audited after the fact.
"""

from __future__ import annotations

import hashlib
import math
from dataclasses import dataclass

_MASK32 = 0xFFFFFFFF
_MULBERRY_INCREMENT = 0x6D2B79F5
_TWO_POW_32 = 4294967296.0

BASE_SUCCESS_CHANCE = 0.3
MIN_SUCCESS_PROBABILITY = 0.1
MAX_SUCCESS_PROBABILITY = 0.98
MAX_REPUTATION = 1000

STREAK_INTERVAL = 5
STREAK_BONUS = 10


class SeededRandom:
    """
    Mulberry32 generator over a 32-bit state.

    Accepts any non-negative 64-bit seed; the upper half is folded into
    the lower half so every bit of the seed influences the sequence.
    """

    def __init__(self, seed: int) -> None:
        if seed < 0:
            msg = "Seed must be non-negative"
            raise ValueError(msg)
        self._state = ((seed & _MASK32) ^ ((seed >> 32) & _MASK32)) & _MASK32

    def next_float(self) -> float:
        """Return the next value in [0, 1)."""
        self._state = (self._state + _MULBERRY_INCREMENT) & _MASK32
        t = self._state
        t = ((t ^ (t >> 15)) * (t | 1)) & _MASK32
        t = (t ^ ((t + (((t ^ (t >> 7)) * (t | 61)) & _MASK32)) & _MASK32)) & _MASK32
        return ((t ^ (t >> 14)) & _MASK32) / _TWO_POW_32


@dataclass(frozen=True)
class Outcome:
    """Result of resolving one assigned task."""

    success: bool
    quality_score: int


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _clamp(value: float, lower: float, upper: float) -> float:
    return min(max(value, lower), upper)


def success_probability(
    overall_score: int,
    difficulty: int,
    base_chance: float = BASE_SUCCESS_CHANCE,
) -> float:
    """
    Probability that an agent completes a task.

    ``normalized_reputation * (1 - difficulty / 10) + base_chance``,
    clamped to [0.1, 0.98] so no outcome is ever certain.
    """
    normalized = _clamp(overall_score, 0, MAX_REPUTATION) / MAX_REPUTATION
    probability = normalized * (1 - difficulty / 10) + base_chance
    return _clamp(probability, MIN_SUCCESS_PROBABILITY, MAX_SUCCESS_PROBABILITY)


def quality_score(overall_score: int, difficulty: int, seed: int) -> int:
    """Quality in [0, 100]; harder tasks spread wider around the reputation baseline."""
    jitter = SeededRandom(seed).next_float()
    baseline = 50 + (overall_score / MAX_REPUTATION) * 40
    variance = difficulty * 5
    adjustment = (jitter - 0.5) * variance * 2
    return int(_clamp(_round_half_up(baseline + adjustment), 0, 100))


def resolve_outcome(overall_score: int, difficulty: int, seed: int) -> Outcome:
    """
    Decide success and quality for one task execution.

    Args:
        overall_score: The executing agent's overall reputation (0-1000).
        difficulty: Task difficulty (1-5).
        seed: Outcome seed, see ``outcome_seed``.

    Returns:
        Outcome with ``quality_score`` 0 on failure.
    """
    roll = SeededRandom(seed).next_float()
    if roll >= success_probability(overall_score, difficulty):
        return Outcome(success=False, quality_score=0)
    return Outcome(success=True, quality_score=quality_score(overall_score, difficulty, seed))


def completion_time_factor(speed_score: int, difficulty: int, seed: int) -> float:
    """
    Relative execution time in [0.5, 2.0], where 1.0 is the expected time.

    Faster agents land lower; difficulty widens the spread.
    """
    draw = SeededRandom(seed).next_float()
    base_factor = 1.5 - (speed_score / MAX_REPUTATION) * 0.7
    spread = (difficulty / 5) * 0.3
    return _clamp(base_factor + (draw - 0.5) * spread * 2, 0.5, 2.0)


def reputation_delta(success: bool, difficulty: int, quality: int, new_streak: int) -> int:
    """
    Reputation change for a resolved task.

    ``new_streak`` is the streak after this outcome has been counted.
    """
    if not success:
        return -(10 + difficulty * 5)

    delta = 5 + difficulty * 3
    if quality >= 90:
        delta += 5
    elif quality >= 75:
        delta += 2
    if new_streak > 0 and new_streak % STREAK_INTERVAL == 0:
        delta += STREAK_BONUS
    return delta


def outcome_seed(task_id: str, agent_id: str, accepted_at: str) -> int:
    """Stable 64-bit seed for a (task, agent, assignment time) triple."""
    digest = hashlib.blake2b(
        f"{task_id}-{agent_id}-{accepted_at}".encode(),
        digest_size=8,
    ).digest()
    return int.from_bytes(digest, "big")
