"""Payment Allocation Domain Entity

Receipt line recording how much of one payment was applied to one debit.
"""

from datetime import datetime
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import BigInteger, CheckConstraint, ForeignKey
from coop_ledger.domain.clock import utcnow
from coop_ledger.domain.base import BaseModel, IdType


class PaymentAllocation(BaseModel, table=True):
    """
    Payment Allocation - Which debit a payment covered, and by how much

    Domain Rules:
    - Immutable once written
    - The allocations of one payment sum to the payment entry's amount
    """

    __tablename__ = "payment_allocations"
    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="allocation_amount_positive"),
        Index("ix_payment_allocations_payment", "payment_entry_id"),
        Index("ix_payment_allocations_debit", "debit_entry_id"),
    )

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique allocation identifier (auto-increment)"
    )

    payment_entry_id: int = Field(
        sa_column=Column(BigInteger, ForeignKey("ledger_entries.id"), nullable=False),
        description="The credit_payment entry"
    )

    debit_entry_id: int = Field(
        sa_column=Column(BigInteger, ForeignKey("ledger_entries.id"), nullable=False),
        description="The debit entry the payment was applied to"
    )

    amount_cents: int = Field(
        sa_column=Column(BigInteger, nullable=False),
        description="Cents applied to the debit"
    )

    created_at: datetime = Field(
        default_factory=utcnow,
        description="Allocation timestamp"
    )
