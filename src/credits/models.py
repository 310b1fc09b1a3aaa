# src/credits/models.py — v1
"""Credit ledger models: CreditStatus, ConsumeResult, CreditTransaction."""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel

CreditSource = Literal["monthly", "extra"]
TransactionType = Literal["CONSUME", "REFUND", "PURCHASE", "RESET"]


class CreditStatus(BaseModel):
    user_id: str
    monthly_allocation: int
    used_this_month: int
    extra_credits: int
    period: str
    next_reset_date: date

    @property
    def remaining_monthly(self) -> int:
        return max(0, self.monthly_allocation - self.used_this_month)

    @property
    def total_available(self) -> int:
        return self.remaining_monthly + self.extra_credits

    @property
    def can_consume(self) -> bool:
        return self.total_available > 0


class ConsumeResult(BaseModel):
    """Outcome of one consumption attempt.

    ``conflict`` is set when a concurrent request took the last unit between
    this request's read and its conditional update.
    """

    success: bool
    source: CreditSource | None = None
    credits_remaining: int = 0
    reason: Literal["insufficient_credits", "no_account"] | None = None
    conflict: bool = False


class CreditTransaction(BaseModel):
    id: int
    user_id: str
    type: TransactionType
    amount: int
    source: CreditSource | None = None
    deal_id: str | None = None
    description: str = ""
    created_at: datetime
