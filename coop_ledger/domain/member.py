"""Member Domain Entity

A cooperative member with a cached credit balance and a credit limit.
The cached balance is never the source of truth; it is re-derived from the
ledger after every mutation.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column
from sqlalchemy import BigInteger, String
from coop_ledger.domain.clock import utcnow
from coop_ledger.domain.base import BaseModel, IdType


class MemberStatus(str, Enum):
    """Member account status"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class Member(BaseModel, table=True):
    """
    Member - Owner of a credit ledger

    Domain Rules:
    - credit_balance_cents == sum(debit amounts) - sum(credit amounts) of the member's entries
    - credit_balance_cents is written only by the balance synchronizer
    - credit_limit_cents is enforced upstream (POS checkout), not by the ledger
    - interest_accrued_through only moves forward; days before it are never
      charged again
    """

    __tablename__ = "members"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(IdType, primary_key=True, autoincrement=True),
        description="Unique member identifier (auto-increment)"
    )

    name: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Member display name"
    )

    credit_balance_cents: int = Field(
        default=0,
        sa_column=Column(BigInteger, nullable=False, default=0),
        description="Cached outstanding balance in cents (derived from the ledger)"
    )

    credit_limit_cents: int = Field(
        default=0,
        sa_column=Column(BigInteger, nullable=False, default=0),
        description="Credit limit in cents"
    )

    status: MemberStatus = Field(
        default=MemberStatus.ACTIVE,
        description="Member account status"
    )

    interest_accrued_through: Optional[datetime] = Field(
        default=None,
        description="Interest has been posted for every day up to this time"
    )

    created_at: datetime = Field(
        default_factory=utcnow,
        description="Member creation timestamp"
    )

    updated_at: datetime = Field(
        default_factory=utcnow,
        description="Last cached balance update timestamp"
    )
