from .member_repository import MemberRepository
from .ledger_entry_repository import LedgerEntryRepository
from .payment_schedule_repository import PaymentScheduleRepository
from .payment_allocation_repository import PaymentAllocationRepository
from .credit_terms_repository import CreditTermsRepository

__all__ = [
    "MemberRepository",
    "LedgerEntryRepository",
    "PaymentScheduleRepository",
    "PaymentAllocationRepository",
    "CreditTermsRepository",
]
