"""AllocatePayment Use Case

Applies a member payment to outstanding debits oldest-first (FIFO) and
re-derives the member balance, all in one transaction.
"""

import logging
from coop_ledger.libs.result import Result, Return, Error
from coop_ledger.app.services.unit_of_work import UnitOfWork
from coop_ledger.app.services.balance_synchronizer import BalanceSynchronizer
from coop_ledger.app.repositories.member_repository import MemberRepository
from coop_ledger.app.repositories.ledger_entry_repository import LedgerEntryRepository
from coop_ledger.app.repositories.payment_allocation_repository import PaymentAllocationRepository
from coop_ledger.app.repositories.payment_schedule_repository import PaymentScheduleRepository
from coop_ledger.domain.errors import LedgerExhausted
from coop_ledger.domain.ledger_entry import LedgerEntry, EntryKind, derive_status
from coop_ledger.domain.money import from_cents, to_cents, format_cents
from coop_ledger.domain.payment_allocation import PaymentAllocation
from .dtos import AllocatePaymentCommandDTO, AllocatePaymentResponseDTO, AllocationLineDTO
from .failures import failure_from_exception

logger = logging.getLogger(__name__)


class AllocatePayment:
    """
    Use Case: Allocate a member payment across outstanding debits (FIFO)

    Business Rules:
    1. amount must be > 0 unless full=True (full pays the whole balance)
    2. The balance is re-derived from the ledger under the member lock;
       the cached value is never trusted
    3. Requested amounts above the balance are capped (applied <= requested)
    4. No outstanding balance or debits: "nothing_to_pay", no entry created
    5. One credit_payment entry per payment event, for the capped amount
    6. Debits are paid in (timestamp, id) order; each gets
       min(remaining, amount - paid_amount)
    7. Debits exhausted with payment remaining is an integrity error
    8. Entries, allocations, schedule rows and balance commit together

    Flow:
    1. Validate input
    2. Lock member (SELECT FOR UPDATE) and recompute balance
    3. Lock outstanding debits in FIFO order
    4. Append credit_payment entry
    5. Walk debits, mutate paid amounts, write allocation rows, pay schedule rows
    6. Recompute balance and commit
    """

    def __init__(
        self,
        uow: UnitOfWork,
        member_repo: MemberRepository,
        entry_repo: LedgerEntryRepository,
        allocation_repo: PaymentAllocationRepository,
        schedule_repo: PaymentScheduleRepository,
    ):
        self.uow = uow
        self.member_repo = member_repo
        self.entry_repo = entry_repo
        self.allocation_repo = allocation_repo
        self.schedule_repo = schedule_repo
        self.balance_sync = BalanceSynchronizer(member_repo, entry_repo)

    async def execute(self, command: AllocatePaymentCommandDTO) -> Result[AllocatePaymentResponseDTO]:
        """
        Execute payment allocation

        Args:
            command: AllocatePaymentCommandDTO with member_id, amount, full

        Returns:
            Result[AllocatePaymentResponseDTO]: allocation receipt or error
        """
        requested_cents = to_cents(command.amount)
        if not command.full and requested_cents <= 0:
            return Return.err(
                Error(
                    code="INVALID_AMOUNT",
                    message="Payment amount must be greater than zero",
                    reason=f"amount={command.amount}",
                )
            )

        try:
            # Step 1: Per-member serialization point
            member = await self.member_repo.get_by_id(command.member_id, for_update=True)
            if not member:
                await self.uow.rollback()
                return Return.err(
                    Error(
                        code="MEMBER_NOT_FOUND",
                        message=f"Member {command.member_id} not found",
                    )
                )

            balance_cents = await self.entry_repo.sum_balance(member.id)
            if command.full:
                requested_cents = max(balance_cents, 0)

            # Step 2: Outstanding debits, locked, FIFO order
            debits = await self.entry_repo.list_outstanding_debits(member.id, for_update=True)

            if balance_cents <= 0 or not debits:
                await self.uow.rollback()
                logger.info(f"Nothing to pay for member {command.member_id} (balance={balance_cents} cents)")
                return Return.ok(
                    AllocatePaymentResponseDTO(
                        member_id=command.member_id,
                        outcome="nothing_to_pay",
                        requested=from_cents(requested_cents),
                        applied=from_cents(0),
                        capped=requested_cents > 0,
                        new_balance=from_cents(balance_cents),
                        message="No outstanding credit to pay",
                    )
                )

            # Step 3: Cap to what is owed
            applied_cents = min(requested_cents, balance_cents)

            # Step 4: The payment event itself
            payment = await self.entry_repo.append(
                LedgerEntry(
                    member_id=member.id,
                    kind=EntryKind.CREDIT_PAYMENT,
                    amount_cents=applied_cents,
                    notes=command.notes or f"Payment of {format_cents(applied_cents)} received.",
                )
            )

            # Step 5: FIFO walk
            allocations = await self._allocate(member.id, payment, debits, applied_cents)

            # Step 6: Re-derive balance inside the same transaction
            new_balance_cents = await self.balance_sync.recompute(member.id)

            await self.uow.commit()

            logger.info(
                f"Applied payment of {format_cents(applied_cents)} for member {member.id} "
                f"across {len(allocations)} debits (entry {payment.id}), "
                f"new balance {format_cents(new_balance_cents)}"
            )

            return Return.ok(
                AllocatePaymentResponseDTO(
                    member_id=member.id,
                    outcome="applied",
                    payment_entry_id=payment.id,
                    requested=from_cents(requested_cents),
                    applied=from_cents(applied_cents),
                    capped=applied_cents < requested_cents,
                    allocations=allocations,
                    new_balance=from_cents(new_balance_cents),
                )
            )

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                failure_from_exception(e, "ALLOCATE_PAYMENT_FAILED", "Failed to allocate payment")
            )

    async def _allocate(
        self,
        member_id: int,
        payment: LedgerEntry,
        debits: list[LedgerEntry],
        amount_cents: int,
    ) -> list[AllocationLineDTO]:
        remaining = amount_cents
        lines = []

        for debit in debits:
            if remaining == 0:
                break

            unpaid = debit.amount_cents - debit.paid_amount_cents
            if unpaid <= 0:
                continue

            applied = min(remaining, unpaid)
            new_paid = debit.paid_amount_cents + applied
            new_status = derive_status(debit.amount_cents, new_paid)

            await self.entry_repo.mutate_paid_amount(debit, new_paid, new_status)
            await self.allocation_repo.create(
                PaymentAllocation(
                    payment_entry_id=payment.id,
                    debit_entry_id=debit.id,
                    amount_cents=applied,
                )
            )
            await self._pay_schedule(debit, applied)

            lines.append(
                AllocationLineDTO(
                    entry_id=debit.id,
                    amount=from_cents(applied),
                    related_purchase_id=debit.related_purchase_id,
                    paid_amount=from_cents(new_paid),
                    status=new_status,
                )
            )
            remaining -= applied

        if remaining > 0:
            raise LedgerExhausted(member_id, remaining)

        return lines

    async def _pay_schedule(self, debit: LedgerEntry, amount_cents: int) -> None:
        """Apply the cents paid on a debit to its installments, earliest due first"""
        remaining = amount_cents
        for row in await self.schedule_repo.list_unpaid_by_ledger_entry(debit.id):
            if remaining == 0:
                break
            applied = min(remaining, row.unpaid_cents)
            if applied <= 0:
                continue
            await self.schedule_repo.apply_payment(row, applied)
            remaining -= applied
