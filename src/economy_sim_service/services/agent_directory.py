"""Agent lifecycle: creation, listing, archival, suspension, survival."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from economy_sim_service.core.exceptions import ServiceError
from economy_sim_service.logging import get_logger
from economy_sim_service.models import Agent, AgentRole, AgentStatus
from economy_sim_service.services.clock import parse_iso, to_iso

if TYPE_CHECKING:
    import random
    import sqlite3

    from economy_sim_service.services.activity_log import ActivityLog
    from economy_sim_service.services.clock import Clock
    from economy_sim_service.services.database import Database
    from economy_sim_service.services.ledger import Ledger
    from economy_sim_service.services.reputation_tracker import ReputationTracker

# No 0/O or 1/I so names can be read aloud.
_NAME_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

_AGENT_COLUMNS_SQL = "agent_id, name, role, status, created_at, archived_at, archive_reason"

logger = get_logger(__name__)


def generate_agent_name(rng: random.Random) -> str:
    """Random ``AGENT-XXXX`` name."""
    suffix = "".join(rng.choice(_NAME_ALPHABET) for _ in range(4))
    return f"AGENT-{suffix}"


class AgentDirectory:
    """Owns agent rows and the lifecycle rules around them."""

    def __init__(
        self,
        database: Database,
        clock: Clock,
        ledger: Ledger,
        reputation: ReputationTracker,
        activity: ActivityLog,
    ) -> None:
        self._database = database
        self._clock = clock
        self._ledger = ledger
        self._reputation = reputation
        self._activity = activity

    @staticmethod
    def _row_to_agent(row: sqlite3.Row) -> Agent:
        return Agent(
            agent_id=str(row["agent_id"]),
            name=str(row["name"]),
            role=AgentRole(row["role"]),
            status=AgentStatus(row["status"]),
            created_at=str(row["created_at"]),
            archived_at=str(row["archived_at"]) if row["archived_at"] is not None else None,
            archive_reason=(
                str(row["archive_reason"]) if row["archive_reason"] is not None else None
            ),
        )

    def _require_agent(self, agent_id: str) -> Agent:
        agent = self.get_agent(agent_id)
        if agent is None:
            raise ServiceError("AGENT_NOT_FOUND", "Agent not found", 404, {"agent_id": agent_id})
        return agent

    def create_agent(self, name: str, role: AgentRole, initial_funding: int) -> Agent:
        """
        Create an agent together with its funded wallet and reputation row.

        Everything is written in one transaction: either the agent exists
        with a wallet, a FUNDING transaction and a starting reputation, or
        nothing was written.

        Raises:
            ServiceError: INVALID_AMOUNT if ``initial_funding`` is not positive.
        """
        if initial_funding <= 0:
            raise ServiceError(
                "INVALID_AMOUNT",
                "Initial funding must be a positive integer",
                400,
                {"initial_funding": initial_funding},
            )

        agent = Agent(
            agent_id=f"a-{uuid.uuid4()}",
            name=name,
            role=role,
            status=AgentStatus.ACTIVE,
            created_at=to_iso(self._clock.now()),
            archived_at=None,
            archive_reason=None,
        )

        with self._database.transaction() as conn:
            conn.execute(
                "INSERT INTO agents (agent_id, name, role, status, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    agent.agent_id,
                    agent.name,
                    agent.role.value,
                    agent.status.value,
                    agent.created_at,
                ),
            )
            self._ledger.open_wallet(agent.agent_id)
            self._ledger.fund(agent.agent_id, initial_funding, "Initial funding")
            self._reputation.create_score(agent.agent_id)

        self._activity.agent_deployed(agent.agent_id, agent.name, agent.role.value, initial_funding)
        logger.info(
            "Agent created",
            extra={
                "agent_id": agent.agent_id,
                "role": agent.role.value,
                "funding": initial_funding,
            },
        )
        return agent

    def get_agent(self, agent_id: str) -> Agent | None:
        """Fetch an agent by ID. Returns None if not found."""
        row = self._database.fetchone(
            f"SELECT {_AGENT_COLUMNS_SQL} FROM agents WHERE agent_id = ?",  # nosec B608
            (agent_id,),
        )
        if row is None:
            return None
        return self._row_to_agent(row)

    def list_agents(
        self,
        status: AgentStatus | None = None,
        role: AgentRole | None = None,
        limit: int | None = None,
    ) -> list[Agent]:
        """List agents, oldest first, with optional status and role filters."""
        sql = f"SELECT {_AGENT_COLUMNS_SQL} FROM agents"  # nosec B608
        conditions: list[str] = []
        params: list[object] = []
        if status is not None:
            conditions.append("status = ?")
            params.append(status.value)
        if role is not None:
            conditions.append("role = ?")
            params.append(role.value)
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += " ORDER BY created_at, agent_id"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return [self._row_to_agent(row) for row in self._database.fetchall(sql, tuple(params))]

    def count_by_status(self) -> dict[str, int]:
        """Agent counts keyed by status (every status present)."""
        counts = {status.value: 0 for status in AgentStatus}
        for row in self._database.fetchall("SELECT status, COUNT(*) FROM agents GROUP BY status"):
            counts[str(row[0])] = int(row[1])
        return counts

    def average_lifetime_days(self) -> float:
        """Mean lifetime in days, measuring live agents up to now."""
        now = self._clock.now()
        rows = self._database.fetchall("SELECT created_at, archived_at FROM agents")
        if not rows:
            return 0.0
        total = 0.0
        for row in rows:
            end = parse_iso(str(row["archived_at"])) if row["archived_at"] is not None else now
            total += (end - parse_iso(str(row["created_at"]))).total_seconds() / 86400
        return total / len(rows)

    def archive(self, agent_id: str, reason: str) -> bool:
        """
        Archive an agent. One-way; ``archived_at`` is set exactly once.

        Returns:
            True if this call archived the agent, False if it already was.

        Raises:
            ServiceError: AGENT_NOT_FOUND.
        """
        agent = self._require_agent(agent_id)
        now_dt = self._clock.now()
        with self._database.transaction() as conn:
            cursor = conn.execute(
                "UPDATE agents SET status = 'ARCHIVED', archived_at = ?, archive_reason = ? "
                "WHERE agent_id = ? AND status != 'ARCHIVED'",
                (to_iso(now_dt), reason, agent_id),
            )
            archived = cursor.rowcount > 0

        if archived:
            lifetime_days = int((now_dt - parse_iso(agent.created_at)).total_seconds() // 86400)
            self._activity.agent_archived(agent_id, agent.name, reason, lifetime_days)
            logger.info("Agent archived", extra={"agent_id": agent_id, "reason": reason})
        return archived

    def suspend(self, agent_id: str) -> Agent:
        """
        Suspend an active agent.

        Raises:
            ServiceError: AGENT_NOT_FOUND, INVALID_TRANSITION.
        """
        self._require_agent(agent_id)
        with self._database.transaction() as conn:
            cursor = conn.execute(
                "UPDATE agents SET status = 'SUSPENDED' WHERE agent_id = ? AND status = 'ACTIVE'",
                (agent_id,),
            )
            if cursor.rowcount == 0:
                raise ServiceError(
                    "INVALID_TRANSITION",
                    "Only active agents can be suspended",
                    409,
                    {"agent_id": agent_id},
                )
        return self._require_agent(agent_id)

    def reactivate(self, agent_id: str) -> Agent:
        """
        Bring a suspended agent back, provided it still has funds.

        Raises:
            ServiceError: AGENT_NOT_FOUND, INVALID_TRANSITION, INSUFFICIENT_FUNDS.
        """
        agent = self._require_agent(agent_id)
        if agent.status != AgentStatus.SUSPENDED:
            raise ServiceError(
                "INVALID_TRANSITION",
                "Agent is not suspended",
                409,
                {"agent_id": agent_id, "status": agent.status.value},
            )
        wallet = self._ledger.get_wallet(agent_id)
        if wallet is None or wallet.balance <= 0:
            raise ServiceError(
                "INSUFFICIENT_FUNDS",
                "Cannot reactivate agent with zero balance",
                402,
                {"agent_id": agent_id},
            )
        with self._database.transaction() as conn:
            conn.execute(
                "UPDATE agents SET status = 'ACTIVE' WHERE agent_id = ? AND status = 'SUSPENDED'",
                (agent_id,),
            )
        return self._require_agent(agent_id)

    def check_survival(self, agent_id: str) -> bool:
        """
        Archive the agent if its balance and escrow are both exhausted.

        Returns:
            True only when this call performed the archival.

        Raises:
            ServiceError: WALLET_NOT_FOUND.
        """
        wallet = self._ledger.get_wallet(agent_id)
        if wallet is None:
            raise ServiceError("WALLET_NOT_FOUND", "Wallet not found", 404, {"agent_id": agent_id})
        if wallet.balance > 0 or wallet.escrowed > 0:
            return False
        return self.archive(agent_id, "Funds depleted")
