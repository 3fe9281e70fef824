"""Payment Schedule Domain Entity

Installment/due-date rows created alongside a credit purchase.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import BigInteger, Boolean, CheckConstraint, ForeignKey, Integer, String
from coop_ledger.domain.clock import utcnow
from coop_ledger.domain.base import BaseModel, IdType
from coop_ledger.domain.money import round_cents


class ScheduleStatus(str, Enum):
    """Installment status"""
    PENDING = "pending"
    OVERDUE = "overdue"
    PAID = "paid"


class PaymentScheduleEntry(BaseModel, table=True):
    """
    Payment Schedule Entry - One installment of a credit purchase

    Domain Rules:
    - pending -> overdue when now > due_date and still unpaid (no monetary effect)
    - pending/overdue -> paid when paid_amount_cents reaches amount_cents
    - paid_amount_cents moves together with the linked ledger entry, in the
      same payment transaction
    - late_fee_applied is set once, in the transaction that posts the fee
    """

    __tablename__ = "payment_schedules"
    __table_args__ = (
        CheckConstraint(
            "paid_amount_cents >= 0 AND paid_amount_cents <= amount_cents",
            name="schedule_paid_amount_bounded",
        ),
        Index("ix_payment_schedules_member_status", "member_id", "status"),
        Index("ix_payment_schedules_ledger_entry", "ledger_entry_id"),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique schedule identifier (auto-increment)"
    )

    member_id: int = Field(
        sa_column=Column(BigInteger, ForeignKey("members.id"), nullable=False),
        description="Owning member"
    )

    ledger_entry_id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigInteger, ForeignKey("ledger_entries.id"), nullable=True),
        description="Debit entry this installment belongs to"
    )

    related_purchase_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
        description="Originating sale identifier"
    )

    amount_cents: int = Field(
        sa_column=Column(BigInteger, nullable=False),
        description="Installment amount in cents"
    )

    paid_amount_cents: int = Field(
        default=0,
        sa_column=Column(BigInteger, nullable=False, default=0),
        description="Cents paid against this installment"
    )

    due_date: datetime = Field(
        description="Installment due date"
    )

    status: ScheduleStatus = Field(
        default=ScheduleStatus.PENDING,
        description="Installment status (pending, overdue, paid)"
    )

    installment_number: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, nullable=True),
        description="1-based installment number"
    )

    total_installments: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, nullable=True),
        description="Number of installments of the purchase"
    )

    late_fee_applied: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, default=False),
        description="Late fee already posted for this installment"
    )

    created_at: datetime = Field(
        default_factory=utcnow,
        description="Schedule creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=utcnow,
        description="Last status update timestamp"
    )

    @property
    def unpaid_cents(self) -> int:
        return self.amount_cents - self.paid_amount_cents


def split_installments(
    amount_cents: int,
    installments: int,
    start: datetime,
    interval_days: int,
) -> list[tuple[int, datetime]]:
    """
    Split an amount into equal installments

    The remainder of the integer division goes to the last installment so the
    installments always sum to the original amount. The first installment is
    due ``interval_days`` after ``start``.

    Returns:
        List of (amount_cents, due_date) tuples in installment order
    """
    if installments < 1:
        raise ValueError("installments must be >= 1")
    if installments > amount_cents:
        raise ValueError("installments cannot exceed the amount in cents")

    base, remainder = divmod(amount_cents, installments)
    rows = []
    for number in range(1, installments + 1):
        cents = base + remainder if number == installments else base
        rows.append((cents, start + timedelta(days=interval_days * number)))
    return rows


def late_fee_cents(installment_cents: int, fixed_cents: int, percentage: Decimal) -> int:
    """
    Late fee of an overdue installment

    The larger of a fixed amount and a percentage of the installment amount,
    rounded half-up to cents.
    """
    percent_cents = round_cents(Decimal(installment_cents) * Decimal(percentage) / Decimal(100))
    return max(fixed_cents, percent_cents, 0)
