"""Credit Terms Domain Entity

Snapshot of a product's credit terms taken when the credit purchase is recorded.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column
from sqlalchemy import BigInteger, ForeignKey, Integer, Numeric, String
from coop_ledger.domain.base import BaseModel, IdType
from coop_ledger.domain.money import round_cents, to_cents


class PenaltyType(str, Enum):
    """How a late penalty is computed"""
    PERCENTAGE = "percentage"  # Percent of the outstanding amount
    FIXED = "fixed"            # Flat currency amount


class CreditTerms(BaseModel, table=True):
    """
    Credit Terms - Due date and late penalty policy for one credit purchase

    Domain Rules:
    - At most one terms row per ledger entry
    - Read-only once written
    """

    __tablename__ = "credit_terms"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique terms identifier (auto-increment)"
    )

    ledger_entry_id: int = Field(
        sa_column=Column(
            BigInteger, ForeignKey("ledger_entries.id"), nullable=False, unique=True
        ),
        description="The debit_spent entry these terms apply to"
    )

    product_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
        description="Product the terms were copied from"
    )

    due_days: int = Field(
        sa_column=Column(Integer, nullable=False),
        description="Days after the purchase before a penalty applies"
    )

    penalty_type: PenaltyType = Field(
        description="Penalty computation (percentage, fixed)"
    )

    penalty_value: Decimal = Field(
        sa_column=Column(Numeric(10, 2), nullable=False),
        description="Percent of outstanding (percentage) or currency amount (fixed)"
    )

    def due_date(self, purchased_at: datetime) -> datetime:
        return purchased_at + timedelta(days=self.due_days)

    def penalty_cents(self, outstanding_cents: int) -> int:
        """Penalty for an outstanding amount, in cents (never negative)"""
        if outstanding_cents <= 0:
            return 0
        value = Decimal(self.penalty_value)
        if PenaltyType(self.penalty_type) == PenaltyType.PERCENTAGE:
            cents = round_cents(Decimal(outstanding_cents) * value / Decimal(100))
        else:
            cents = to_cents(value)
        return max(0, cents)
