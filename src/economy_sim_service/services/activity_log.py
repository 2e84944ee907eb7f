"""Human-readable activity feed."""

from __future__ import annotations

import json
import uuid
from datetime import timedelta
from typing import TYPE_CHECKING

from economy_sim_service.models import ActivityEvent
from economy_sim_service.services.clock import to_iso

if TYPE_CHECKING:
    from datetime import datetime

    from economy_sim_service.services.clock import Clock
    from economy_sim_service.services.database import Database

CURRENCY = "CLAW"

EVENT_TYPES: frozenset[str] = frozenset(
    {
        "task_created",
        "task_completed",
        "task_failed",
        "agent_deployed",
        "agent_archived",
        "bid_placed",
        "bid_accepted",
        "tier_up",
        "tier_down",
        "streak_bonus",
        "funding_received",
    }
)


def _amount(value: int) -> str:
    return f"{value} {CURRENCY}"


class ActivityLog:
    """
    Append-mostly event feed written by the engine and the API.

    The engine never reads it back; it exists for operators and UIs.
    """

    def __init__(self, database: Database, clock: Clock) -> None:
        self._database = database
        self._clock = clock

    def log(self, event_type: str, agent_id: str | None, data: dict[str, object]) -> ActivityEvent:
        """Append one event."""
        if event_type not in EVENT_TYPES:
            msg = f"Unknown activity event type: {event_type}"
            raise ValueError(msg)

        event = ActivityEvent(
            event_id=f"evt-{uuid.uuid4()}",
            event_type=event_type,
            agent_id=agent_id,
            data=data,
            created_at=to_iso(self._clock.now()),
        )
        with self._database.transaction() as conn:
            conn.execute(
                "INSERT INTO activity_events (event_id, event_type, agent_id, data, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    event.event_id,
                    event.event_type,
                    event.agent_id,
                    json.dumps(event.data, default=str),
                    event.created_at,
                ),
            )
        return event

    def recent(self, limit: int, event_type: str | None = None) -> list[ActivityEvent]:
        """Newest events first, optionally filtered by type."""
        if event_type is None:
            rows = self._database.fetchall(
                "SELECT event_id, event_type, agent_id, data, created_at FROM activity_events "
                "ORDER BY created_at DESC, event_id DESC LIMIT ?",
                (limit,),
            )
        else:
            rows = self._database.fetchall(
                "SELECT event_id, event_type, agent_id, data, created_at FROM activity_events "
                "WHERE event_type = ? ORDER BY created_at DESC, event_id DESC LIMIT ?",
                (event_type, limit),
            )
        return [
            ActivityEvent(
                event_id=str(row["event_id"]),
                event_type=str(row["event_type"]),
                agent_id=str(row["agent_id"]) if row["agent_id"] is not None else None,
                data=json.loads(row["data"]),
                created_at=str(row["created_at"]),
            )
            for row in rows
        ]

    def count_since(self, since: datetime) -> int:
        """Number of events at or after ``since``."""
        return int(
            self._database.scalar(
                "SELECT COUNT(*) FROM activity_events WHERE created_at >= ?",
                (to_iso(since),),
            )
        )

    def cleanup(self, older_than_hours: int) -> int:
        """Delete events older than the retention window. Returns rows removed."""
        cutoff = to_iso(self._clock.now() - timedelta(hours=older_than_hours))
        with self._database.transaction() as conn:
            cursor = conn.execute("DELETE FROM activity_events WHERE created_at < ?", (cutoff,))
            return cursor.rowcount

    # --- Convenience loggers -------------------------------------------------

    def task_created(
        self, poster_id: str, poster_name: str, task_id: str, title: str, category: str, reward: int
    ) -> ActivityEvent:
        return self.log(
            "task_created",
            poster_id,
            {
                "poster": poster_name,
                "task_id": task_id,
                "task_title": title,
                "category": category,
                "reward": _amount(reward),
            },
        )

    def task_completed(
        self, agent_id: str, agent_name: str, task_id: str, title: str, reward: int
    ) -> ActivityEvent:
        return self.log(
            "task_completed",
            agent_id,
            {
                "agent_name": agent_name,
                "task_id": task_id,
                "task_title": title,
                "reward": _amount(reward),
            },
        )

    def task_failed(
        self, agent_id: str, agent_name: str, task_id: str, title: str, slashed: int
    ) -> ActivityEvent:
        return self.log(
            "task_failed",
            agent_id,
            {
                "agent_name": agent_name,
                "task_id": task_id,
                "task_title": title,
                "slashed": _amount(slashed),
            },
        )

    def agent_deployed(
        self, agent_id: str, agent_name: str, role: str, funding: int
    ) -> ActivityEvent:
        return self.log(
            "agent_deployed",
            agent_id,
            {"agent_name": agent_name, "role": role, "funding": _amount(funding)},
        )

    def agent_archived(
        self, agent_id: str, agent_name: str, reason: str, lifetime_days: int
    ) -> ActivityEvent:
        return self.log(
            "agent_archived",
            agent_id,
            {"agent_name": agent_name, "reason": reason, "lifetime": f"{lifetime_days} days"},
        )

    def bid_placed(
        self, agent_id: str, agent_name: str, task_id: str, title: str, amount: int
    ) -> ActivityEvent:
        return self.log(
            "bid_placed",
            agent_id,
            {
                "agent_name": agent_name,
                "task_id": task_id,
                "task_title": title,
                "amount": _amount(amount),
            },
        )

    def bid_accepted(
        self, agent_id: str, agent_name: str, task_id: str, title: str, amount: int
    ) -> ActivityEvent:
        return self.log(
            "bid_accepted",
            agent_id,
            {
                "agent_name": agent_name,
                "task_id": task_id,
                "task_title": title,
                "amount": _amount(amount),
            },
        )

    def tier_changed(
        self, agent_id: str, agent_name: str, old_tier: str, new_tier: str, *, went_up: bool
    ) -> ActivityEvent:
        return self.log(
            "tier_up" if went_up else "tier_down",
            agent_id,
            {"agent_name": agent_name, "from": old_tier, "to": new_tier},
        )

    def streak_bonus(
        self, agent_id: str, agent_name: str, streak: int, bonus: int
    ) -> ActivityEvent:
        return self.log(
            "streak_bonus",
            agent_id,
            {"agent_name": agent_name, "streak": streak, "bonus": f"+{bonus} REP"},
        )

    def funding_received(self, agent_id: str, agent_name: str, amount: int) -> ActivityEvent:
        return self.log(
            "funding_received",
            agent_id,
            {"agent_name": agent_name, "amount": _amount(amount)},
        )
