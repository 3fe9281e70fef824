from .member_repository import SqlAlchemyMemberRepository
from .ledger_entry_repository import SqlAlchemyLedgerEntryRepository
from .payment_schedule_repository import SqlAlchemyPaymentScheduleRepository
from .payment_allocation_repository import SqlAlchemyPaymentAllocationRepository
from .credit_terms_repository import SqlAlchemyCreditTermsRepository

__all__ = [
    "SqlAlchemyMemberRepository",
    "SqlAlchemyLedgerEntryRepository",
    "SqlAlchemyPaymentScheduleRepository",
    "SqlAlchemyPaymentAllocationRepository",
    "SqlAlchemyCreditTermsRepository",
]
