"""Domain records and enumerations shared by the stores and the engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class AgentRole(StrEnum):
    COMPUTE = "COMPUTE"
    VALIDATOR = "VALIDATOR"
    ANALYST = "ANALYST"
    CREATIVE = "CREATIVE"
    ORCHESTRATOR = "ORCHESTRATOR"
    SPECIALIST = "SPECIALIST"


class AgentStatus(StrEnum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    ARCHIVED = "ARCHIVED"


class TaskCategory(StrEnum):
    COMPUTATION = "COMPUTATION"
    VALIDATION = "VALIDATION"
    ANALYSIS = "ANALYSIS"
    GENERATION = "GENERATION"
    ORCHESTRATION = "ORCHESTRATION"
    RESEARCH = "RESEARCH"


class TaskStatus(StrEnum):
    OPEN = "OPEN"
    ASSIGNED = "ASSIGNED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class RiskRating(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class BidStatus(StrEnum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"


class TransactionKind(StrEnum):
    FUNDING = "FUNDING"
    TASK_DEPOSIT = "TASK_DEPOSIT"
    TASK_REFUND = "TASK_REFUND"
    TASK_REWARD = "TASK_REWARD"
    TASK_SLASH = "TASK_SLASH"


class TransactionDirection(StrEnum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class ReputationTier(StrEnum):
    UNTRUSTED = "UNTRUSTED"
    NEWCOMER = "NEWCOMER"
    RELIABLE = "RELIABLE"
    TRUSTED = "TRUSTED"
    ELITE = "ELITE"
    LEGENDARY = "LEGENDARY"


# Allowed forward moves of the task lifecycle.
TASK_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.OPEN: frozenset(
        {TaskStatus.ASSIGNED, TaskStatus.EXPIRED, TaskStatus.CANCELLED},
    ),
    TaskStatus.ASSIGNED: frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
    TaskStatus.EXPIRED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}


@dataclass
class Agent:
    """A simulated economic actor."""

    agent_id: str
    name: str
    role: AgentRole
    status: AgentStatus
    created_at: str
    archived_at: str | None
    archive_reason: str | None


@dataclass
class Wallet:
    """Funds held by one agent."""

    agent_id: str
    balance: int
    escrowed: int
    total_earned: int
    total_spent: int
    created_at: str
    updated_at: str


@dataclass
class Transaction:
    """Immutable ledger entry; ``amount`` is negative for debits."""

    tx_id: str
    agent_id: str
    kind: TransactionKind
    direction: TransactionDirection
    amount: int
    balance_after: int
    escrowed_after: int
    task_id: str | None
    reason: str
    created_at: str


@dataclass
class Task:
    """A unit of work posted to the board."""

    task_id: str
    title: str
    description: str
    category: TaskCategory
    difficulty: int
    reward: int
    deposit_required: int
    slash_percentage: int
    risk_rating: RiskRating
    required_reputation: int
    execution_window_minutes: int
    expires_at: str
    status: TaskStatus
    poster_id: str
    assigned_agent_id: str | None
    created_at: str
    accepted_at: str | None
    completed_at: str | None
    closed_at: str | None
    quality_score: int | None


@dataclass
class Bid:
    """An offer by an agent to execute a task."""

    bid_id: str
    task_id: str
    agent_id: str
    proposed_reward: int
    estimated_duration_minutes: int
    message: str | None
    status: BidStatus
    created_at: str
    responded_at: str | None


@dataclass
class ReputationScore:
    """Per-agent reputation components and counters."""

    agent_id: str
    reliability: int
    quality: int
    speed: int
    overall: int
    tier: ReputationTier
    tasks_completed: int
    tasks_failed: int
    total_tasks_attempted: int
    current_streak: int
    longest_streak: int
    last_task_at: str | None
    updated_at: str

    @property
    def success_rate(self) -> float:
        if self.total_tasks_attempted == 0:
            return 0.0
        return self.tasks_completed / self.total_tasks_attempted


@dataclass
class LeaderboardEntry:
    """Denormalized ranking snapshot for one agent."""

    agent_id: str
    agent_name: str
    agent_role: AgentRole
    agent_status: AgentStatus
    total_earnings: int
    reliability: int
    active_days: int
    success_rate: float
    tier: ReputationTier
    current_streak: int
    rank_by_earnings: int
    rank_by_reliability: int
    rank_by_longevity: int
    rank_by_success_rate: int
    updated_at: str


@dataclass
class SimulationState:
    """The persisted singleton driving tick pacing."""

    tick_count: int
    is_paused: bool
    last_task_batch_at: str | None
    last_leaderboard_update_at: str | None
    last_maintenance_at: str | None
    updated_at: str


@dataclass
class ActivityEvent:
    """A human-readable notification in the activity feed."""

    event_id: str
    event_type: str
    agent_id: str | None
    data: dict[str, object]
    created_at: str


@dataclass
class TickActions:
    """Counts of the work a tick performed."""

    tasks_generated: int = 0
    tasks_assigned: int = 0
    tasks_expired: int = 0
    tasks_completed: int = 0
    tasks_failed: int = 0
    agents_archived: int = 0
    leaderboard_updated: bool = False
    reputations_decayed: int = 0
    activity_pruned: int = 0
    events_logged: int = 0


@dataclass
class TickResult:
    """Outcome of one tick trigger."""

    status: str
    success: bool
    tick_count: int
    actions: TickActions = field(default_factory=TickActions)
    errors: list[str] = field(default_factory=list)
    skip_reason: str | None = None
