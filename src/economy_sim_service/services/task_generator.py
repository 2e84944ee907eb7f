"""Synthetic task catalog and batch generation."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from economy_sim_service.logging import get_logger
from economy_sim_service.models import AgentStatus, RiskRating, Task, TaskCategory, TaskStatus
from economy_sim_service.services.clock import to_iso

if TYPE_CHECKING:
    import random

    from economy_sim_service.services.activity_log import ActivityLog
    from economy_sim_service.services.agent_directory import AgentDirectory
    from economy_sim_service.services.clock import Clock
    from economy_sim_service.services.task_store import TaskStore

MAX_POSTER_POOL = 50
EXPIRY_HOURS_RANGE = (24, 72)

CATEGORY_WEIGHTS: dict[TaskCategory, int] = {
    TaskCategory.COMPUTATION: 30,
    TaskCategory.VALIDATION: 25,
    TaskCategory.ANALYSIS: 20,
    TaskCategory.GENERATION: 12,
    TaskCategory.ORCHESTRATION: 8,
    TaskCategory.RESEARCH: 5,
}

logger = get_logger(__name__)


@dataclass(frozen=True)
class TaskTemplate:
    """Blueprint for a generated task. Ranges are inclusive (min, max)."""

    title: str
    description: str
    category: TaskCategory
    difficulty_range: tuple[int, int]
    reward_range: tuple[int, int]
    deposit_multiplier: float
    required_reputation_range: tuple[int, int]
    execution_window_range: tuple[int, int]


TASK_TEMPLATES: tuple[TaskTemplate, ...] = (
    TaskTemplate(
        "Train Classification Model on Dataset",
        "Train a classification model on the provided dataset and return accuracy metrics.",
        TaskCategory.COMPUTATION, (3, 5), (500, 2000), 0.35, (400, 700), (120, 480),
    ),
    TaskTemplate(
        "Process Image Batch with ML Pipeline",
        "Run a batch of images through the pipeline for classification and feature extraction.",
        TaskCategory.COMPUTATION, (2, 4), (200, 800), 0.3, (200, 500), (60, 180),
    ),
    TaskTemplate(
        "Run Monte Carlo Simulation",
        "Execute a Monte Carlo simulation with the given parameters and report the statistics.",
        TaskCategory.COMPUTATION, (3, 4), (300, 1000), 0.25, (300, 600), (90, 240),
    ),
    TaskTemplate(
        "Compute Hash Verification Batch",
        "Check the integrity of a data batch with cryptographic hashes.",
        TaskCategory.COMPUTATION, (1, 2), (50, 150), 0.2, (0, 200), (15, 60),
    ),
    TaskTemplate(
        "Optimize Neural Network Hyperparameters",
        "Search for the best hyperparameters of a given network architecture.",
        TaskCategory.COMPUTATION, (4, 5), (1000, 3000), 0.4, (600, 850), (240, 720),
    ),
    TaskTemplate(
        "Validate JSON Schema Compliance",
        "Check that a JSON document conforms to a draft-07 JSON Schema.",
        TaskCategory.VALIDATION, (1, 3), (50, 200), 0.25, (0, 300), (15, 60),
    ),
    TaskTemplate(
        "Verify Smart Contract Output",
        "Compare smart contract execution results against the expected outputs.",
        TaskCategory.VALIDATION, (3, 4), (300, 800), 0.35, (400, 700), (30, 120),
    ),
    TaskTemplate(
        "Cross-Validate ML Model Predictions",
        "Run k-fold cross-validation over a model's predictions.",
        TaskCategory.VALIDATION, (2, 4), (150, 500), 0.3, (200, 500), (60, 180),
    ),
    TaskTemplate(
        "Audit Data Pipeline Integrity",
        "Confirm that a data pipeline's outputs stay complete and consistent.",
        TaskCategory.VALIDATION, (2, 3), (100, 300), 0.25, (200, 400), (30, 90),
    ),
    TaskTemplate(
        "Analyze Market Sentiment Data",
        "Score market data for sentiment and attach confidence intervals.",
        TaskCategory.ANALYSIS, (2, 4), (200, 700), 0.25, (200, 500), (60, 180),
    ),
    TaskTemplate(
        "Extract Key Insights from Dataset",
        "Explore a dataset and summarize the actionable findings.",
        TaskCategory.ANALYSIS, (2, 3), (150, 400), 0.2, (200, 400), (60, 120),
    ),
    TaskTemplate(
        "Perform Anomaly Detection Analysis",
        "Find anomalies and outliers in a dataset using statistical methods.",
        TaskCategory.ANALYSIS, (3, 4), (300, 800), 0.3, (400, 600), (90, 240),
    ),
    TaskTemplate(
        "Generate Statistical Report",
        "Produce a statistical report from the supplied data.",
        TaskCategory.ANALYSIS, (2, 3), (100, 300), 0.2, (100, 300), (45, 120),
    ),
    TaskTemplate(
        "Generate Technical Documentation",
        "Write technical documentation for a supplied codebase.",
        TaskCategory.GENERATION, (2, 4), (150, 500), 0.25, (200, 500), (60, 180),
    ),
    TaskTemplate(
        "Create Synthetic Training Data",
        "Generate synthetic training data that matches a target distribution and schema.",
        TaskCategory.GENERATION, (3, 5), (400, 1200), 0.35, (400, 700), (120, 360),
    ),
    TaskTemplate(
        "Generate API Response Mocks",
        "Create realistic mock API responses from schema definitions.",
        TaskCategory.GENERATION, (1, 2), (50, 150), 0.2, (0, 200), (15, 45),
    ),
    TaskTemplate(
        "Build Test Case Suite",
        "Write test cases covering the specified functionality.",
        TaskCategory.GENERATION, (2, 3), (100, 350), 0.25, (200, 400), (45, 120),
    ),
    TaskTemplate(
        "Coordinate Multi-Agent Data Pipeline",
        "Drive several agents through a data pipeline with validation steps.",
        TaskCategory.ORCHESTRATION, (4, 5), (1500, 4000), 0.4, (700, 900), (240, 720),
    ),
    TaskTemplate(
        "Manage Distributed Task Queue",
        "Distribute work across agents and aggregate their results.",
        TaskCategory.ORCHESTRATION, (3, 4), (600, 1500), 0.35, (500, 750), (120, 360),
    ),
    TaskTemplate(
        "Orchestrate Model Ensemble",
        "Run several model inferences and combine their predictions.",
        TaskCategory.ORCHESTRATION, (4, 5), (800, 2000), 0.35, (600, 850), (180, 480),
    ),
    TaskTemplate(
        "Research Optimal Algorithm Approach",
        "Recommend an algorithm for the given problem domain.",
        TaskCategory.RESEARCH, (2, 4), (200, 600), 0.2, (200, 500), (120, 360),
    ),
    TaskTemplate(
        "Survey State-of-the-Art Methods",
        "Survey current methods for the given task type.",
        TaskCategory.RESEARCH, (3, 4), (300, 800), 0.2, (400, 600), (180, 480),
    ),
    TaskTemplate(
        "Benchmark Performance Analysis",
        "Benchmark competing approaches and compare their performance.",
        TaskCategory.RESEARCH, (2, 3), (150, 400), 0.25, (200, 400), (90, 240),
    ),
)


def calculate_task_batch_size(
    open_count: int, max_tasks_per_batch: int, max_open_tasks: int
) -> int:
    """
    How many tasks to create given the number already open.

    Shrinks linearly as the board fills and never overshoots
    ``max_open_tasks``.
    """
    if open_count >= max_open_tasks:
        return 0
    fill_ratio = open_count / max_open_tasks
    return min(math.ceil(max_tasks_per_batch * (1 - fill_ratio)), max_open_tasks - open_count)


def slash_percentage_for(difficulty: int) -> int:
    if difficulty <= 2:
        return 10
    if difficulty == 3:
        return 20
    if difficulty == 4:
        return 30
    return 50


def risk_rating_for(difficulty: int, slash_percentage: int) -> RiskRating:
    """Bucket ``0.4 * difficulty + 0.6 * slash`` into a risk rating."""
    risk_score = difficulty * 0.4 + slash_percentage * 0.6
    if risk_score <= 15:
        return RiskRating.LOW
    if risk_score <= 30:
        return RiskRating.MEDIUM
    if risk_score <= 45:
        return RiskRating.HIGH
    return RiskRating.CRITICAL


class TaskGenerator:
    """Posts synthetic tasks on behalf of randomly chosen active agents."""

    def __init__(
        self,
        clock: Clock,
        rng: random.Random,
        store: TaskStore,
        agents: AgentDirectory,
        activity: ActivityLog,
    ) -> None:
        self._clock = clock
        self._rng = rng
        self._store = store
        self._agents = agents
        self._activity = activity

    def pick_template(self) -> TaskTemplate:
        """Weighted category draw, then a uniform template within the category."""
        category = self._rng.choices(
            list(CATEGORY_WEIGHTS), weights=list(CATEGORY_WEIGHTS.values())
        )[0]
        candidates = [template for template in TASK_TEMPLATES if template.category == category]
        return self._rng.choice(candidates)

    def build_task(self, template: TaskTemplate, poster_id: str) -> Task:
        """Instantiate a template with sampled parameters."""
        rng = self._rng
        now = self._clock.now()

        difficulty = rng.randint(*template.difficulty_range)
        reward_min, reward_max = template.reward_range
        reward = reward_min + math.floor(rng.random() * (reward_max - reward_min))
        slash_percentage = slash_percentage_for(difficulty)

        return Task(
            task_id=f"t-{uuid.uuid4()}",
            title=template.title,
            description=template.description,
            category=template.category,
            difficulty=difficulty,
            reward=reward,
            deposit_required=math.floor(reward * template.deposit_multiplier),
            slash_percentage=slash_percentage,
            risk_rating=risk_rating_for(difficulty, slash_percentage),
            required_reputation=rng.randint(*template.required_reputation_range),
            execution_window_minutes=rng.randint(*template.execution_window_range),
            expires_at=to_iso(now + timedelta(hours=rng.randint(*EXPIRY_HOURS_RANGE))),
            status=TaskStatus.OPEN,
            poster_id=poster_id,
            assigned_agent_id=None,
            created_at=to_iso(now),
            accepted_at=None,
            completed_at=None,
            closed_at=None,
            quality_score=None,
        )

    def generate(self, count: int) -> int:
        """
        Create up to ``count`` open tasks.

        Returns:
            Number of tasks actually created. Zero when there is no
            active agent to post them.
        """
        if count <= 0:
            return 0

        posters = self._agents.list_agents(status=AgentStatus.ACTIVE, limit=MAX_POSTER_POOL)
        if not posters:
            logger.info("No active agents to post tasks")
            return 0

        generated = 0
        for _ in range(count):
            poster = self._rng.choice(posters)
            task = self.build_task(self.pick_template(), poster.agent_id)
            self._store.insert_task(task)
            self._activity.task_created(
                poster.agent_id,
                poster.name,
                task.task_id,
                task.title,
                task.category.value,
                task.reward,
            )
            generated += 1

        logger.info("Generated tasks", extra={"tasks_generated": generated})
        return generated
