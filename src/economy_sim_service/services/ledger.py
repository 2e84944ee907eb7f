"""Ledger business logic: wallets, escrow, and the append-only transaction log."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, cast

from economy_sim_service.core.exceptions import ServiceError
from economy_sim_service.models import (
    Transaction,
    TransactionDirection,
    TransactionKind,
    Wallet,
)
from economy_sim_service.services.clock import to_iso

if TYPE_CHECKING:
    import sqlite3

    from economy_sim_service.services.clock import Clock
    from economy_sim_service.services.database import Database

_WALLET_COLUMNS_SQL = (
    "agent_id, balance, escrowed, total_earned, total_spent, created_at, updated_at"
)
_TX_COLUMNS_SQL = (
    "tx_id, agent_id, kind, direction, amount, balance_after, escrowed_after, "
    "task_id, reason, created_at"
)

# (balance change, escrow change) per unit of |amount|, used when replaying.
_REPLAY_EFFECTS: dict[TransactionKind, tuple[int, int]] = {
    TransactionKind.FUNDING: (1, 0),
    TransactionKind.TASK_DEPOSIT: (-1, 1),
    TransactionKind.TASK_REFUND: (1, -1),
    TransactionKind.TASK_REWARD: (1, 0),
    TransactionKind.TASK_SLASH: (0, -1),
}

_DIRECTIONS: dict[TransactionKind, TransactionDirection] = {
    TransactionKind.FUNDING: TransactionDirection.CREDIT,
    TransactionKind.TASK_DEPOSIT: TransactionDirection.DEBIT,
    TransactionKind.TASK_REFUND: TransactionDirection.CREDIT,
    TransactionKind.TASK_REWARD: TransactionDirection.CREDIT,
    TransactionKind.TASK_SLASH: TransactionDirection.DEBIT,
}


@dataclass(frozen=True)
class SlashResult:
    """Breakdown of a slashed deposit."""

    deposit: int
    slashed: int
    returned: int


class Ledger:
    """
    Manages wallets and their transaction log.

    Every balance or escrow mutation and its transaction row are written
    in the same database transaction. When called while a transaction is
    already open (assignment, completion), the operation joins it.
    """

    def __init__(self, database: Database, clock: Clock) -> None:
        self._database = database
        self._clock = clock

    def _now(self) -> str:
        return to_iso(self._clock.now())

    def _new_tx_id(self) -> str:
        return f"tx-{uuid.uuid4()}"

    @staticmethod
    def _require_positive(amount: int) -> None:
        if amount <= 0:
            raise ServiceError(
                "INVALID_AMOUNT",
                "Amount must be a positive integer",
                400,
                {"amount": amount},
            )

    @staticmethod
    def _row_to_wallet(row: sqlite3.Row) -> Wallet:
        return Wallet(
            agent_id=str(row["agent_id"]),
            balance=int(row["balance"]),
            escrowed=int(row["escrowed"]),
            total_earned=int(row["total_earned"]),
            total_spent=int(row["total_spent"]),
            created_at=str(row["created_at"]),
            updated_at=str(row["updated_at"]),
        )

    @staticmethod
    def _row_to_transaction(row: sqlite3.Row) -> Transaction:
        return Transaction(
            tx_id=str(row["tx_id"]),
            agent_id=str(row["agent_id"]),
            kind=TransactionKind(row["kind"]),
            direction=TransactionDirection(row["direction"]),
            amount=int(row["amount"]),
            balance_after=int(row["balance_after"]),
            escrowed_after=int(row["escrowed_after"]),
            task_id=str(row["task_id"]) if row["task_id"] is not None else None,
            reason=str(row["reason"]),
            created_at=str(row["created_at"]),
        )

    def _load_wallet(self, conn: sqlite3.Connection, agent_id: str) -> Wallet:
        row = conn.execute(
            f"SELECT {_WALLET_COLUMNS_SQL} FROM wallets WHERE agent_id = ?",  # nosec B608
            (agent_id,),
        ).fetchone()
        if row is None:
            raise ServiceError("WALLET_NOT_FOUND", "Wallet not found", 404, {"agent_id": agent_id})
        return self._row_to_wallet(row)

    def _apply(
        self,
        conn: sqlite3.Connection,
        wallet: Wallet,
        *,
        kind: TransactionKind,
        amount: int,
        task_id: str | None,
        reason: str,
        earned: int = 0,
        spent: int = 0,
    ) -> Wallet:
        """Apply one movement to ``wallet`` and append its transaction row."""
        balance_effect, escrow_effect = _REPLAY_EFFECTS[kind]
        new_balance = wallet.balance + balance_effect * amount
        new_escrowed = wallet.escrowed + escrow_effect * amount
        now = self._now()

        conn.execute(
            "UPDATE wallets SET balance = ?, escrowed = ?, total_earned = total_earned + ?, "
            "total_spent = total_spent + ?, updated_at = ? WHERE agent_id = ?",
            (new_balance, new_escrowed, earned, spent, now, wallet.agent_id),
        )

        direction = _DIRECTIONS[kind]
        signed_amount = -amount if direction == TransactionDirection.DEBIT else amount
        seq_row = conn.execute("SELECT COALESCE(MAX(seq), 0) + 1 FROM transactions").fetchone()
        seq = cast("int", seq_row[0])

        conn.execute(
            "INSERT INTO transactions "
            "(tx_id, agent_id, kind, direction, amount, balance_after, escrowed_after, "
            "task_id, reason, created_at, seq) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                self._new_tx_id(),
                wallet.agent_id,
                kind.value,
                direction.value,
                signed_amount,
                new_balance,
                new_escrowed,
                task_id,
                reason,
                now,
                seq,
            ),
        )

        return Wallet(
            agent_id=wallet.agent_id,
            balance=new_balance,
            escrowed=new_escrowed,
            total_earned=wallet.total_earned + earned,
            total_spent=wallet.total_spent + spent,
            created_at=wallet.created_at,
            updated_at=now,
        )

    def open_wallet(self, agent_id: str) -> Wallet:
        """
        Create an empty wallet for an agent.

        Raises:
            ServiceError: WALLET_EXISTS if the agent already has one.
        """
        now = self._now()
        with self._database.transaction() as conn:
            existing = conn.execute(
                "SELECT 1 FROM wallets WHERE agent_id = ?", (agent_id,)
            ).fetchone()
            if existing is not None:
                raise ServiceError(
                    "WALLET_EXISTS", "Wallet already exists", 409, {"agent_id": agent_id}
                )
            conn.execute(
                "INSERT INTO wallets (agent_id, balance, escrowed, total_earned, total_spent, "
                "created_at, updated_at) VALUES (?, 0, 0, 0, 0, ?, ?)",
                (agent_id, now, now),
            )
        return Wallet(
            agent_id=agent_id,
            balance=0,
            escrowed=0,
            total_earned=0,
            total_spent=0,
            created_at=now,
            updated_at=now,
        )

    def get_wallet(self, agent_id: str) -> Wallet | None:
        """Look up a wallet by agent ID. Returns None if not found."""
        row = self._database.fetchone(
            f"SELECT {_WALLET_COLUMNS_SQL} FROM wallets WHERE agent_id = ?",  # nosec B608
            (agent_id,),
        )
        if row is None:
            return None
        return self._row_to_wallet(row)

    def fund(self, agent_id: str, amount: int, reason: str = "Wallet funding") -> Wallet:
        """
        Add funds to a wallet.

        Raises:
            ServiceError: INVALID_AMOUNT, WALLET_NOT_FOUND.
        """
        self._require_positive(amount)
        with self._database.transaction() as conn:
            wallet = self._load_wallet(conn, agent_id)
            return self._apply(
                conn,
                wallet,
                kind=TransactionKind.FUNDING,
                amount=amount,
                task_id=None,
                reason=reason,
            )

    def escrow_deposit(self, agent_id: str, task_id: str, amount: int) -> Wallet:
        """
        Move a task deposit from spendable balance into escrow.

        Raises:
            ServiceError: INVALID_AMOUNT, WALLET_NOT_FOUND, INSUFFICIENT_FUNDS.
        """
        self._require_positive(amount)
        with self._database.transaction() as conn:
            wallet = self._load_wallet(conn, agent_id)
            if wallet.balance < amount:
                raise ServiceError(
                    "INSUFFICIENT_FUNDS",
                    "Insufficient balance for deposit",
                    402,
                    {"agent_id": agent_id, "balance": wallet.balance, "required": amount},
                )
            return self._apply(
                conn,
                wallet,
                kind=TransactionKind.TASK_DEPOSIT,
                amount=amount,
                task_id=task_id,
                reason="Task deposit escrowed",
            )

    def release_deposit(self, agent_id: str, task_id: str, amount: int) -> Wallet:
        """
        Return an escrowed deposit to the spendable balance.

        Raises:
            ServiceError: INVALID_AMOUNT, WALLET_NOT_FOUND, INSUFFICIENT_ESCROW.
        """
        self._require_positive(amount)
        with self._database.transaction() as conn:
            wallet = self._load_wallet(conn, agent_id)
            if wallet.escrowed < amount:
                raise ServiceError(
                    "INSUFFICIENT_ESCROW",
                    "Escrowed balance is smaller than the deposit",
                    409,
                    {"agent_id": agent_id, "escrowed": wallet.escrowed, "required": amount},
                )
            return self._apply(
                conn,
                wallet,
                kind=TransactionKind.TASK_REFUND,
                amount=amount,
                task_id=task_id,
                reason="Task deposit returned",
            )

    def pay_reward(self, agent_id: str, task_id: str, amount: int) -> Wallet:
        """
        Credit a task reward.

        Raises:
            ServiceError: INVALID_AMOUNT, WALLET_NOT_FOUND.
        """
        self._require_positive(amount)
        with self._database.transaction() as conn:
            wallet = self._load_wallet(conn, agent_id)
            return self._apply(
                conn,
                wallet,
                kind=TransactionKind.TASK_REWARD,
                amount=amount,
                task_id=task_id,
                reason="Task reward",
                earned=amount,
            )

    def slash_deposit(
        self,
        agent_id: str,
        task_id: str,
        deposit_amount: int,
        slash_percent: int,
    ) -> SlashResult:
        """
        Forfeit part of an escrowed deposit and return the rest.

        ``slashed = deposit_amount * slash_percent // 100``. The full deposit
        leaves escrow: the slashed part is recorded as a TASK_SLASH debit and
        the remainder as a TASK_REFUND credit. Either row is omitted when its
        amount is zero. Callers must run the survival check afterwards.

        Raises:
            ServiceError: INVALID_AMOUNT, WALLET_NOT_FOUND, INSUFFICIENT_ESCROW.
        """
        self._require_positive(deposit_amount)
        if not 0 <= slash_percent <= 100:
            raise ServiceError(
                "INVALID_AMOUNT",
                "Slash percentage must be between 0 and 100",
                400,
                {"slash_percent": slash_percent},
            )

        slashed = deposit_amount * slash_percent // 100
        returned = deposit_amount - slashed

        with self._database.transaction() as conn:
            wallet = self._load_wallet(conn, agent_id)
            if wallet.escrowed < deposit_amount:
                raise ServiceError(
                    "INSUFFICIENT_ESCROW",
                    "Escrowed balance is smaller than the deposit",
                    409,
                    {"agent_id": agent_id, "escrowed": wallet.escrowed, "required": deposit_amount},
                )
            if slashed > 0:
                wallet = self._apply(
                    conn,
                    wallet,
                    kind=TransactionKind.TASK_SLASH,
                    amount=slashed,
                    task_id=task_id,
                    reason=f"Deposit slashed ({slash_percent}%)",
                    spent=slashed,
                )
            if returned > 0:
                self._apply(
                    conn,
                    wallet,
                    kind=TransactionKind.TASK_REFUND,
                    amount=returned,
                    task_id=task_id,
                    reason="Remaining deposit returned after slash",
                )

        return SlashResult(deposit=deposit_amount, slashed=slashed, returned=returned)

    def get_transactions(self, agent_id: str, limit: int | None = None) -> list[Transaction]:
        """
        Get a wallet's transactions, oldest first.

        Raises:
            ServiceError: WALLET_NOT_FOUND.
        """
        if self.get_wallet(agent_id) is None:
            raise ServiceError("WALLET_NOT_FOUND", "Wallet not found", 404, {"agent_id": agent_id})

        sql = (
            f"SELECT {_TX_COLUMNS_SQL} FROM transactions WHERE agent_id = ? "  # nosec B608
            "ORDER BY seq"
        )
        params: tuple[object, ...] = (agent_id,)
        if limit is not None:
            sql += " LIMIT ?"
            params = (agent_id, limit)
        return [self._row_to_transaction(row) for row in self._database.fetchall(sql, params)]

    def replay_wallet(self, agent_id: str) -> tuple[int, int]:
        """Rebuild (balance, escrowed) from zero using only the transaction log."""
        balance = 0
        escrowed = 0
        for tx in self.get_transactions(agent_id):
            balance_effect, escrow_effect = _REPLAY_EFFECTS[tx.kind]
            magnitude = abs(tx.amount)
            balance += balance_effect * magnitude
            escrowed += escrow_effect * magnitude
        return balance, escrowed

    def verify_wallet(self, agent_id: str) -> dict[str, object]:
        """Compare the stored wallet against a replay of its transactions."""
        wallet = self.get_wallet(agent_id)
        if wallet is None:
            raise ServiceError("WALLET_NOT_FOUND", "Wallet not found", 404, {"agent_id": agent_id})
        replayed_balance, replayed_escrowed = self.replay_wallet(agent_id)
        return {
            "agent_id": agent_id,
            "balance": wallet.balance,
            "escrowed": wallet.escrowed,
            "replayed_balance": replayed_balance,
            "replayed_escrowed": replayed_escrowed,
            "consistent": (
                replayed_balance == wallet.balance and replayed_escrowed == wallet.escrowed
            ),
        }

    def total_escrowed(self) -> int:
        """Sum of all escrowed balances."""
        return int(self._database.scalar("SELECT COALESCE(SUM(escrowed), 0) FROM wallets"))

    def total_supply(self) -> int:
        """Sum of all spendable plus escrowed balances."""
        return int(
            self._database.scalar("SELECT COALESCE(SUM(balance + escrowed), 0) FROM wallets")
        )
