"""Get Payment Allocations Use Case

Allocation receipt: which debits a payment covered, and by how much.
"""

from coop_ledger.libs.result import Result, Return, Error
from coop_ledger.app.repositories.ledger_entry_repository import LedgerEntryRepository
from coop_ledger.app.repositories.payment_allocation_repository import PaymentAllocationRepository
from coop_ledger.domain.ledger_entry import EntryKind
from coop_ledger.domain.money import from_cents
from .dtos import PaymentAllocationsResponseDTO, AllocationLineDTO


class GetPaymentAllocations:
    def __init__(
        self,
        entry_repo: LedgerEntryRepository,
        allocation_repo: PaymentAllocationRepository,
    ):
        self.entry_repo = entry_repo
        self.allocation_repo = allocation_repo

    async def execute(self, payment_entry_id: int) -> Result[PaymentAllocationsResponseDTO]:
        """
        Errors:
            PAYMENT_NOT_FOUND: No credit_payment entry with this ID
        """
        payment = await self.entry_repo.get_by_id(payment_entry_id)
        if not payment or payment.kind != EntryKind.CREDIT_PAYMENT:
            return Return.err(
                Error(
                    code="PAYMENT_NOT_FOUND",
                    message=f"Payment {payment_entry_id} not found",
                )
            )

        lines = []
        for allocation in await self.allocation_repo.list_by_payment(payment.id):
            debit = await self.entry_repo.get_by_id(allocation.debit_entry_id)
            lines.append(
                AllocationLineDTO(
                    entry_id=allocation.debit_entry_id,
                    amount=from_cents(allocation.amount_cents),
                    related_purchase_id=debit.related_purchase_id if debit else None,
                )
            )

        return Return.ok(
            PaymentAllocationsResponseDTO(
                payment_entry_id=payment.id,
                member_id=payment.member_id,
                amount=from_cents(payment.amount_cents),
                timestamp=payment.timestamp,
                allocations=lines,
            )
        )
