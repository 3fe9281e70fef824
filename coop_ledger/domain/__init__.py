from .base import BaseModel
from .member import Member, MemberStatus
from .ledger_entry import (
    LedgerEntry,
    EntryKind,
    EntryStatus,
    DEBIT_KINDS,
    CREDIT_KINDS,
    derive_status,
)
from .payment_allocation import PaymentAllocation
from .payment_schedule import PaymentScheduleEntry, ScheduleStatus
from .credit_terms import CreditTerms, PenaltyType
from .errors import LedgerError, InvariantViolation, LedgerExhausted

__all__ = [
    "BaseModel",
    "Member",
    "MemberStatus",
    "LedgerEntry",
    "EntryKind",
    "EntryStatus",
    "DEBIT_KINDS",
    "CREDIT_KINDS",
    "derive_status",
    "PaymentAllocation",
    "PaymentScheduleEntry",
    "ScheduleStatus",
    "CreditTerms",
    "PenaltyType",
    "LedgerError",
    "InvariantViolation",
    "LedgerExhausted",
]
