"""Ledger Entry Domain Entity

Append-mostly record of a debit or credit event for a member. The ledger is the
source of truth for every member balance.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import BigInteger, Boolean, CheckConstraint, ForeignKey, String, Text
from coop_ledger.domain.clock import utcnow
from coop_ledger.domain.base import BaseModel, IdType
from coop_ledger.domain.errors import InvariantViolation


class EntryKind(str, Enum):
    """Ledger entry kinds"""
    DEBIT_SPENT = "debit_spent"            # Purchase on credit
    DEBIT_ADJUSTMENT = "debit_adjustment"  # Interest, penalties, manual charges
    CREDIT_PAYMENT = "credit_payment"      # Member payment
    CREDIT_EARNED = "credit_earned"        # Earned credit (rebates, corrections)

    @property
    def is_debit(self) -> bool:
        return self in DEBIT_KINDS


class EntryStatus(str, Enum):
    """Settlement status of a debit entry"""
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    FULLY_PAID = "fully_paid"


DEBIT_KINDS = (EntryKind.DEBIT_SPENT, EntryKind.DEBIT_ADJUSTMENT)
CREDIT_KINDS = (EntryKind.CREDIT_PAYMENT, EntryKind.CREDIT_EARNED)


def derive_status(amount_cents: int, paid_amount_cents: int) -> EntryStatus:
    if paid_amount_cents == 0:
        return EntryStatus.PENDING
    if paid_amount_cents < amount_cents:
        return EntryStatus.PARTIALLY_PAID
    return EntryStatus.FULLY_PAID


class LedgerEntry(BaseModel, table=True):
    """
    Ledger Entry - Atomic unit of truth for member credit

    Domain Rules:
    - amount_cents, kind, member_id and timestamp never change after creation
    - paid_amount_cents only increases and never exceeds amount_cents (debits only)
    - status is derived from paid_amount_cents vs amount_cents (debits only)
    - penalty_applied is set once per debit_spent entry, never reset
    - FIFO order is (timestamp, id) ascending
    """

    __tablename__ = "ledger_entries"
    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="amount_positive"),
        CheckConstraint(
            "paid_amount_cents >= 0 AND paid_amount_cents <= amount_cents",
            name="paid_amount_bounded",
        ),
        Index("ix_ledger_entries_member_fifo", "member_id", "timestamp", "id"),
        Index("ix_ledger_entries_related_entry", "related_entry_id"),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique entry identifier (auto-increment, FIFO tie-breaker)"
    )

    member_id: int = Field(
        sa_column=Column(BigInteger, ForeignKey("members.id"), nullable=False, index=True),
        description="Owning member"
    )

    kind: EntryKind = Field(
        description="Entry kind (debit_spent, debit_adjustment, credit_payment, credit_earned)"
    )

    amount_cents: int = Field(
        sa_column=Column(BigInteger, nullable=False),
        description="Original face value in cents (immutable)"
    )

    paid_amount_cents: int = Field(
        default=0,
        sa_column=Column(BigInteger, nullable=False, default=0),
        description="Cumulative cents allocated against this debit"
    )

    status: Optional[EntryStatus] = Field(
        default=None,
        description="Settlement status (debits only)"
    )

    related_purchase_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
        description="Originating sale identifier"
    )

    related_entry_id: Optional[int] = Field(
        default=None,
        sa_column=Column(BigInteger, ForeignKey("ledger_entries.id"), nullable=True),
        description="Entry this one was derived from (penalty -> penalised purchase)"
    )

    penalty_applied: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, default=False),
        description="Penalty already posted for this entry (debit_spent only)"
    )

    notes: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
        description="Human-readable description"
    )

    timestamp: datetime = Field(
        default_factory=utcnow,
        description="Creation time (immutable, FIFO order)"
    )

    created_at: datetime = Field(
        default_factory=utcnow,
        description="Row creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=utcnow,
        description="Last paid/status/flag update timestamp"
    )

    @property
    def is_debit(self) -> bool:
        return EntryKind(self.kind).is_debit

    @property
    def outstanding_cents(self) -> int:
        if not self.is_debit:
            return 0
        return self.amount_cents - self.paid_amount_cents

    @property
    def signed_amount_cents(self) -> int:
        """Contribution of this entry to the member balance"""
        return self.amount_cents if self.is_debit else -self.amount_cents

    def check_paid_amount_transition(
        self, new_paid_amount_cents: int, new_status: EntryStatus
    ) -> None:
        """
        Validate a paid amount mutation (monotonic, bounded, matching status)

        Raises:
            InvariantViolation: on credit entries, decreasing or overflowing
                paid amounts, or a status that does not match the derived one
        """
        if not self.is_debit:
            raise InvariantViolation(
                f"Cannot allocate against credit entry {self.id} ({self.kind})", self.id
            )
        if new_paid_amount_cents < self.paid_amount_cents:
            raise InvariantViolation(
                f"Paid amount of entry {self.id} would decrease "
                f"from {self.paid_amount_cents} to {new_paid_amount_cents}",
                self.id,
            )
        if new_paid_amount_cents > self.amount_cents:
            raise InvariantViolation(
                f"Paid amount of entry {self.id} would exceed its amount "
                f"({new_paid_amount_cents} > {self.amount_cents})",
                self.id,
            )
        expected = derive_status(self.amount_cents, new_paid_amount_cents)
        if new_status != expected:
            raise InvariantViolation(
                f"Status {new_status} of entry {self.id} does not match "
                f"paid amount (expected {expected})",
                self.id,
            )
