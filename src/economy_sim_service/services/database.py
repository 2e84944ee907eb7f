"""Shared SQLite connection, schema, and transaction boundary."""

from __future__ import annotations

import contextlib
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from threading import RLock
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator

_SCHEMA = """
CREATE TABLE IF NOT EXISTS agents (
    agent_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    role TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'ACTIVE',
    created_at TEXT NOT NULL,
    archived_at TEXT,
    archive_reason TEXT
);

CREATE TABLE IF NOT EXISTS wallets (
    agent_id TEXT PRIMARY KEY REFERENCES agents(agent_id),
    balance INTEGER NOT NULL DEFAULT 0 CHECK (balance >= 0),
    escrowed INTEGER NOT NULL DEFAULT 0 CHECK (escrowed >= 0),
    total_earned INTEGER NOT NULL DEFAULT 0 CHECK (total_earned >= 0),
    total_spent INTEGER NOT NULL DEFAULT 0 CHECK (total_spent >= 0),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS transactions (
    tx_id TEXT PRIMARY KEY,
    agent_id TEXT NOT NULL REFERENCES wallets(agent_id),
    kind TEXT NOT NULL,
    direction TEXT NOT NULL,
    amount INTEGER NOT NULL CHECK (amount != 0),
    balance_after INTEGER NOT NULL,
    escrowed_after INTEGER NOT NULL,
    task_id TEXT,
    reason TEXT NOT NULL,
    created_at TEXT NOT NULL,
    seq INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS tasks (
    task_id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    category TEXT NOT NULL,
    difficulty INTEGER NOT NULL CHECK (difficulty BETWEEN 1 AND 5),
    reward INTEGER NOT NULL CHECK (reward >= 0),
    deposit_required INTEGER NOT NULL CHECK (deposit_required >= 0),
    slash_percentage INTEGER NOT NULL CHECK (slash_percentage BETWEEN 0 AND 100),
    risk_rating TEXT NOT NULL,
    required_reputation INTEGER NOT NULL,
    execution_window_minutes INTEGER NOT NULL,
    expires_at TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'OPEN',
    poster_id TEXT NOT NULL REFERENCES agents(agent_id),
    assigned_agent_id TEXT REFERENCES agents(agent_id),
    created_at TEXT NOT NULL,
    accepted_at TEXT,
    completed_at TEXT,
    closed_at TEXT,
    quality_score INTEGER
);

CREATE TABLE IF NOT EXISTS bids (
    bid_id TEXT PRIMARY KEY,
    task_id TEXT NOT NULL REFERENCES tasks(task_id),
    agent_id TEXT NOT NULL REFERENCES agents(agent_id),
    proposed_reward INTEGER NOT NULL,
    estimated_duration_minutes INTEGER NOT NULL,
    message TEXT,
    status TEXT NOT NULL DEFAULT 'PENDING',
    created_at TEXT NOT NULL,
    responded_at TEXT,
    UNIQUE(task_id, agent_id)
);

CREATE TABLE IF NOT EXISTS reputation_scores (
    agent_id TEXT PRIMARY KEY REFERENCES agents(agent_id),
    reliability INTEGER NOT NULL CHECK (reliability BETWEEN 0 AND 1000),
    quality INTEGER NOT NULL CHECK (quality BETWEEN 0 AND 1000),
    speed INTEGER NOT NULL CHECK (speed BETWEEN 0 AND 1000),
    overall INTEGER NOT NULL CHECK (overall BETWEEN 0 AND 1000),
    tier TEXT NOT NULL,
    tasks_completed INTEGER NOT NULL DEFAULT 0,
    tasks_failed INTEGER NOT NULL DEFAULT 0,
    total_tasks_attempted INTEGER NOT NULL DEFAULT 0,
    current_streak INTEGER NOT NULL DEFAULT 0,
    longest_streak INTEGER NOT NULL DEFAULT 0,
    last_task_at TEXT,
    last_decay_at TEXT,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS reputation_events (
    event_id TEXT PRIMARY KEY,
    agent_id TEXT NOT NULL REFERENCES agents(agent_id),
    event_type TEXT NOT NULL,
    delta INTEGER NOT NULL,
    reason TEXT NOT NULL,
    task_id TEXT,
    score_before INTEGER NOT NULL,
    score_after INTEGER NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS leaderboard_entries (
    agent_id TEXT PRIMARY KEY,
    agent_name TEXT NOT NULL,
    agent_role TEXT NOT NULL,
    agent_status TEXT NOT NULL,
    total_earnings INTEGER NOT NULL,
    reliability INTEGER NOT NULL,
    active_days INTEGER NOT NULL,
    success_rate REAL NOT NULL,
    tier TEXT NOT NULL,
    current_streak INTEGER NOT NULL,
    rank_by_earnings INTEGER NOT NULL,
    rank_by_reliability INTEGER NOT NULL,
    rank_by_longevity INTEGER NOT NULL,
    rank_by_success_rate INTEGER NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS simulation_state (
    id TEXT PRIMARY KEY CHECK (id = 'singleton'),
    tick_count INTEGER NOT NULL DEFAULT 0,
    is_paused INTEGER NOT NULL DEFAULT 0,
    last_task_batch_at TEXT,
    last_leaderboard_update_at TEXT,
    last_maintenance_at TEXT,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS activity_events (
    event_id TEXT PRIMARY KEY,
    event_type TEXT NOT NULL,
    agent_id TEXT,
    data TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS ux_bids_one_accepted_per_task
    ON bids(task_id) WHERE status = 'ACCEPTED';

CREATE INDEX IF NOT EXISTS ix_transactions_agent_seq
    ON transactions(agent_id, seq);

CREATE INDEX IF NOT EXISTS ix_tasks_status_created
    ON tasks(status, created_at);

CREATE INDEX IF NOT EXISTS ix_agents_status
    ON agents(status);

CREATE INDEX IF NOT EXISTS ix_activity_created
    ON activity_events(created_at);
"""

# Child tables first so a full wipe never trips a foreign key.
_TABLES_IN_DELETE_ORDER: tuple[str, ...] = (
    "activity_events",
    "leaderboard_entries",
    "reputation_events",
    "reputation_scores",
    "bids",
    "tasks",
    "transactions",
    "wallets",
    "agents",
    "simulation_state",
)


class Database:
    """
    One SQLite connection shared by every store.

    Sets pragmas, creates the schema, and exposes a re-entrant
    ``transaction()`` so a ledger operation invoked while an assignment
    or completion is in progress joins the caller's transaction.
    """

    def __init__(self, db_path: str) -> None:
        self._lock = RLock()
        self._depth = 0
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(db_path, check_same_thread=False)
        self._db.row_factory = sqlite3.Row
        self._db.execute("PRAGMA journal_mode=WAL")
        self._db.execute("PRAGMA foreign_keys=ON")
        self._db.execute("PRAGMA busy_timeout=5000")
        self._init_schema()

    def _init_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        with self._lock:
            self._db.executescript(_SCHEMA)
            self._db.commit()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run the block inside ``BEGIN IMMEDIATE`` ... ``COMMIT``.

        Nested calls join the outermost transaction; only the outermost
        block commits or rolls back.
        """
        with self._lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield self._db
                finally:
                    self._depth -= 1
                return

            self._db.execute("BEGIN IMMEDIATE")
            self._depth = 1
            try:
                yield self._db
            except BaseException:
                with contextlib.suppress(sqlite3.Error):
                    self._db.execute("ROLLBACK")
                raise
            else:
                self._db.commit()
            finally:
                self._depth = 0

    def fetchone(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Row | None:
        """Run a read query and return the first row or None."""
        with self._lock:
            return self._db.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        """Run a read query and return all rows."""
        with self._lock:
            return list(self._db.execute(sql, params).fetchall())

    def scalar(self, sql: str, params: tuple[Any, ...] = ()) -> Any:
        """Run a read query and return the first column of the first row."""
        row = self.fetchone(sql, params)
        if row is None:
            return None
        return row[0]

    def wipe(self) -> None:
        """Delete every row of every table. Administrative full reset only."""
        with self.transaction() as conn:
            for table in _TABLES_IN_DELETE_ORDER:
                conn.execute(f"DELETE FROM {table}")  # nosec B608

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._db.close()
