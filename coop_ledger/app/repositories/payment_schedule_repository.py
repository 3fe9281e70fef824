"""Payment Schedule Repository Interface"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from coop_ledger.domain.payment_schedule import PaymentScheduleEntry


class PaymentScheduleRepository(ABC):
    """Repository interface for PaymentScheduleEntry persistence"""

    @abstractmethod
    async def create(self, schedule: PaymentScheduleEntry) -> PaymentScheduleEntry:
        """
        Create a new schedule row

        Args:
            schedule: PaymentScheduleEntry to persist

        Returns:
            Created PaymentScheduleEntry with generated ID
        """
        pass

    @abstractmethod
    async def list_unpaid_by_ledger_entry(self, ledger_entry_id: int) -> list[PaymentScheduleEntry]:
        """
        Unpaid installments of a ledger entry, earliest due date first

        Returns:
            List of pending or overdue PaymentScheduleEntry
        """
        pass

    @abstractmethod
    async def apply_payment(self, schedule: PaymentScheduleEntry, amount_cents: int) -> None:
        """
        Add a paid amount to an installment, marking it paid when settled

        Args:
            schedule: Installment to update
            amount_cents: Cents to apply (must not exceed the unpaid amount)
        """
        pass

    @abstractmethod
    async def mark_overdue(self, now: datetime, member_id: Optional[int] = None) -> int:
        """
        Transition pending installments past their due date to overdue

        Args:
            now: Reference time
            member_id: Restrict to one member (None = all members)

        Returns:
            Number of installments transitioned
        """
        pass

    @abstractmethod
    async def list_by_member(self, member_id: int) -> list[PaymentScheduleEntry]:
        """
        All installments of a member, earliest due date first

        Returns:
            List of PaymentScheduleEntry
        """
        pass

    @abstractmethod
    async def get_by_id(self, schedule_id: int, for_update: bool = False) -> Optional[PaymentScheduleEntry]:
        """
        Retrieve an installment by ID

        Args:
            schedule_id: Schedule row ID
            for_update: If True, lock the row with SELECT FOR UPDATE

        Returns:
            PaymentScheduleEntry if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_late_fee_candidate_ids(self, member_id: Optional[int] = None) -> list[int]:
        """
        IDs of overdue installments without a late fee, earliest due date first
        """
        pass

    @abstractmethod
    async def mark_late_fee_applied(self, schedule: PaymentScheduleEntry) -> None:
        """Set the late_fee_applied flag (caller holds the row lock)"""
        pass
