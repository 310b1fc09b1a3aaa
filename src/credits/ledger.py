# src/credits/ledger.py — v1
"""SQLite credit ledger with race-free consumption.

Each user has a monthly allocation, a used-this-month counter and purchased
extra credits. Consumption never reads-then-writes: it issues a conditional
UPDATE (``used_this_month < monthly_allocation``, or ``extra_credits > 0``)
and treats zero affected rows as "already consumed by a concurrent request".
Two racing requests for the last unit therefore produce exactly one success.
Monthly credits are used before extra credits. Every balance change is
logged in ``credit_transactions`` within the same SQLite transaction.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Callable
from datetime import date, datetime, timezone
from pathlib import Path

from dealscope.credits.models import (
    ConsumeResult,
    CreditSource,
    CreditStatus,
    CreditTransaction,
    TransactionType,
)

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS credit_accounts (
    user_id TEXT PRIMARY KEY,
    monthly_allocation INTEGER NOT NULL,
    used_this_month INTEGER NOT NULL DEFAULT 0,
    extra_credits INTEGER NOT NULL DEFAULT 0,
    period TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS credit_transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    type TEXT NOT NULL,
    amount INTEGER NOT NULL,
    source TEXT,
    deal_id TEXT,
    description TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_credit_tx_user ON credit_transactions(user_id, created_at);
"""


class UnknownAccountError(LookupError):
    """Raised when an operation needs an account that does not exist."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def period_of(moment: datetime) -> str:
    return f"{moment.year:04d}-{moment.month:02d}"


def next_reset_date(moment: datetime) -> date:
    if moment.month == 12:
        return date(moment.year + 1, 1, 1)
    return date(moment.year, moment.month + 1, 1)


class CreditLedger:
    """Credit accounts and their transaction log.

    Args:
        db_path: SQLite file, created if missing.
        default_allocation: Monthly allocation for new accounts.
        clock: Injectable time source (monthly reset tests).
    """

    def __init__(
        self,
        db_path: Path | str,
        default_allocation: int = 10,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._default_allocation = default_allocation
        self._clock = clock
        conn = self._connect()
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(_SCHEMA)
        finally:
            conn.close()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=10.0)
        conn.row_factory = sqlite3.Row
        return conn

    # -- public API --

    async def ensure_account(
        self, user_id: str, monthly_allocation: int | None = None
    ) -> CreditStatus:
        """Create the account if missing (existing accounts are left as is)."""
        allocation = self._default_allocation if monthly_allocation is None else monthly_allocation
        return await asyncio.to_thread(self._ensure_sync, user_id, allocation)

    async def get_status(self, user_id: str) -> CreditStatus:
        """Current balance, after applying a pending monthly reset.

        Raises:
            UnknownAccountError: If the user has no account.
        """
        return await asyncio.to_thread(self._status_sync, user_id)

    async def consume(
        self, user_id: str, deal_id: str | None = None, description: str = "analysis"
    ) -> ConsumeResult:
        """Take one credit, monthly allocation first, then extra credits."""
        return await asyncio.to_thread(self._consume_sync, user_id, deal_id, description)

    async def refund(
        self, user_id: str, source: CreditSource, deal_id: str | None = None
    ) -> CreditStatus:
        """Give back one credit to where it was taken from."""
        return await asyncio.to_thread(self._refund_sync, user_id, source, deal_id)

    async def add_extra(self, user_id: str, amount: int, description: str = "purchase") -> CreditStatus:
        if amount <= 0:
            raise ValueError("amount must be positive")
        return await asyncio.to_thread(self._add_extra_sync, user_id, amount, description)

    async def transactions(self, user_id: str, limit: int = 50) -> list[CreditTransaction]:
        return await asyncio.to_thread(self._transactions_sync, user_id, limit)

    # -- sync implementations (worker thread) --

    def _ensure_sync(self, user_id: str, allocation: int) -> CreditStatus:
        now = self._clock()
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """INSERT OR IGNORE INTO credit_accounts
                           (user_id, monthly_allocation, used_this_month, extra_credits,
                            period, updated_at)
                       VALUES (?, ?, 0, 0, ?, ?)""",
                    (user_id, allocation, period_of(now), now.isoformat()),
                )
            return self._read_status(conn, user_id, now)
        finally:
            conn.close()

    def _status_sync(self, user_id: str) -> CreditStatus:
        now = self._clock()
        conn = self._connect()
        try:
            self._reset_if_new_period(conn, user_id, now)
            return self._read_status(conn, user_id, now)
        finally:
            conn.close()

    def _consume_sync(self, user_id: str, deal_id: str | None, description: str) -> ConsumeResult:
        now = self._clock()
        conn = self._connect()
        try:
            self._reset_if_new_period(conn, user_id, now)
            try:
                before = self._read_status(conn, user_id, now)
            except UnknownAccountError:
                return ConsumeResult(success=False, reason="no_account")
            if not before.can_consume:
                return ConsumeResult(success=False, reason="insufficient_credits")

            source: CreditSource | None = None
            with conn:
                if before.remaining_monthly > 0:
                    cursor = conn.execute(
                        """UPDATE credit_accounts
                           SET used_this_month = used_this_month + 1, updated_at = ?
                           WHERE user_id = ? AND used_this_month < monthly_allocation""",
                        (now.isoformat(), user_id),
                    )
                    if cursor.rowcount == 1:
                        source = "monthly"
                if source is None:
                    cursor = conn.execute(
                        """UPDATE credit_accounts
                           SET extra_credits = extra_credits - 1, updated_at = ?
                           WHERE user_id = ? AND extra_credits > 0""",
                        (now.isoformat(), user_id),
                    )
                    if cursor.rowcount == 1:
                        source = "extra"
                if source is not None:
                    self._log(conn, user_id, "CONSUME", -1, source, deal_id, description, now)

            after = self._read_status(conn, user_id, now)
        finally:
            conn.close()

        if source is None:
            logger.info("Credit for %s already consumed by a concurrent request", user_id)
            return ConsumeResult(
                success=False,
                credits_remaining=after.total_available,
                reason="insufficient_credits",
                conflict=True,
            )
        logger.debug("Consumed 1 %s credit for %s (%d left)", source, user_id, after.total_available)
        return ConsumeResult(success=True, source=source, credits_remaining=after.total_available)

    def _refund_sync(self, user_id: str, source: CreditSource, deal_id: str | None) -> CreditStatus:
        now = self._clock()
        conn = self._connect()
        try:
            with conn:
                refunded_to: CreditSource = "extra"
                if source == "monthly":
                    cursor = conn.execute(
                        """UPDATE credit_accounts
                           SET used_this_month = used_this_month - 1, updated_at = ?
                           WHERE user_id = ? AND used_this_month > 0""",
                        (now.isoformat(), user_id),
                    )
                    if cursor.rowcount == 1:
                        refunded_to = "monthly"
                if refunded_to == "extra":
                    cursor = conn.execute(
                        """UPDATE credit_accounts
                           SET extra_credits = extra_credits + 1, updated_at = ?
                           WHERE user_id = ?""",
                        (now.isoformat(), user_id),
                    )
                    if cursor.rowcount == 0:
                        raise UnknownAccountError(user_id)
                self._log(conn, user_id, "REFUND", 1, refunded_to, deal_id, "refund", now)
            return self._read_status(conn, user_id, now)
        finally:
            conn.close()

    def _add_extra_sync(self, user_id: str, amount: int, description: str) -> CreditStatus:
        now = self._clock()
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """INSERT INTO credit_accounts
                           (user_id, monthly_allocation, used_this_month, extra_credits,
                            period, updated_at)
                       VALUES (?, ?, 0, ?, ?, ?)
                       ON CONFLICT(user_id) DO UPDATE SET
                           extra_credits = extra_credits + excluded.extra_credits,
                           updated_at = excluded.updated_at""",
                    (user_id, self._default_allocation, amount, period_of(now), now.isoformat()),
                )
                self._log(conn, user_id, "PURCHASE", amount, "extra", None, description, now)
            return self._read_status(conn, user_id, now)
        finally:
            conn.close()

    def _transactions_sync(self, user_id: str, limit: int) -> list[CreditTransaction]:
        conn = self._connect()
        try:
            rows = conn.execute(
                """SELECT * FROM credit_transactions WHERE user_id = ?
                   ORDER BY id DESC LIMIT ?""",
                (user_id, limit),
            ).fetchall()
        finally:
            conn.close()
        return [CreditTransaction.model_validate(dict(row)) for row in rows]

    # -- helpers --

    def _reset_if_new_period(self, conn: sqlite3.Connection, user_id: str, now: datetime) -> None:
        period = period_of(now)
        with conn:
            cursor = conn.execute(
                """UPDATE credit_accounts
                   SET used_this_month = 0, period = ?, updated_at = ?
                   WHERE user_id = ? AND period != ?""",
                (period, now.isoformat(), user_id, period),
            )
            if cursor.rowcount == 1:
                self._log(conn, user_id, "RESET", 0, "monthly", None, f"monthly reset {period}", now)
                logger.info("Monthly credits reset for %s (%s)", user_id, period)

    def _read_status(self, conn: sqlite3.Connection, user_id: str, now: datetime) -> CreditStatus:
        row = conn.execute(
            "SELECT * FROM credit_accounts WHERE user_id = ?", (user_id,)
        ).fetchone()
        if row is None:
            raise UnknownAccountError(user_id)
        return CreditStatus(
            user_id=row["user_id"],
            monthly_allocation=row["monthly_allocation"],
            used_this_month=row["used_this_month"],
            extra_credits=row["extra_credits"],
            period=row["period"],
            next_reset_date=next_reset_date(now),
        )

    @staticmethod
    def _log(
        conn: sqlite3.Connection,
        user_id: str,
        type_: TransactionType,
        amount: int,
        source: CreditSource | None,
        deal_id: str | None,
        description: str,
        now: datetime,
    ) -> None:
        conn.execute(
            """INSERT INTO credit_transactions
                   (user_id, type, amount, source, deal_id, description, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (user_id, type_, amount, source, deal_id, description, now.isoformat()),
        )
