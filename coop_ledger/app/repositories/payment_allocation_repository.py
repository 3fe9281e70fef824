"""Payment Allocation Repository Interface"""

from abc import ABC, abstractmethod
from coop_ledger.domain.payment_allocation import PaymentAllocation


class PaymentAllocationRepository(ABC):
    """
    Repository interface for PaymentAllocation persistence

    Allocations are immutable receipt lines.
    """

    @abstractmethod
    async def create(self, allocation: PaymentAllocation) -> PaymentAllocation:
        """
        Create a new allocation row

        Returns:
            Created PaymentAllocation with generated ID
        """
        pass

    @abstractmethod
    async def list_by_payment(self, payment_entry_id: int) -> list[PaymentAllocation]:
        """
        Allocation lines of one payment, in allocation order

        Returns:
            List of PaymentAllocation
        """
        pass
