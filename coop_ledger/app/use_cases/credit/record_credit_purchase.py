"""RecordCreditPurchase Use Case

Records a purchase on credit: one debit_spent entry, an optional credit terms
snapshot and optional installment rows, then re-derives the balance.
"""

import logging
from datetime import timedelta
from coop_ledger.domain.clock import as_naive_utc, utcnow
from coop_ledger.libs.result import Result, Return, Error
from coop_ledger.app.services.unit_of_work import UnitOfWork
from coop_ledger.app.services.balance_synchronizer import BalanceSynchronizer
from coop_ledger.app.repositories.member_repository import MemberRepository
from coop_ledger.app.repositories.ledger_entry_repository import LedgerEntryRepository
from coop_ledger.app.repositories.credit_terms_repository import CreditTermsRepository
from coop_ledger.app.repositories.payment_schedule_repository import PaymentScheduleRepository
from coop_ledger.domain.credit_terms import CreditTerms
from coop_ledger.domain.ledger_entry import LedgerEntry, EntryKind, EntryStatus
from coop_ledger.domain.money import from_cents, to_cents, format_cents
from coop_ledger.domain.payment_schedule import PaymentScheduleEntry, split_installments
from .dtos import (
    RecordCreditPurchaseCommandDTO,
    CreditPurchaseResponseDTO,
    LedgerEntryDTO,
    ScheduleEntryDTO,
)
from .failures import failure_from_exception

logger = logging.getLogger(__name__)


class RecordCreditPurchase:
    """
    Use Case: Record a purchase on credit

    Business Rules:
    1. Member must exist, amount must be > 0
    2. Credit limit is NOT enforced here (the POS checks it before calling)
    3. Entry, terms, schedule and balance are written in one transaction
    4. Member row is locked so the balance recompute sees a stable ledger

    Schedule:
    - installments=n: n equal rows (remainder on the last), every interval days
    - no installments but credit terms: one row due at purchase + due_days
    - neither: no schedule rows
    """

    def __init__(
        self,
        uow: UnitOfWork,
        member_repo: MemberRepository,
        entry_repo: LedgerEntryRepository,
        terms_repo: CreditTermsRepository,
        schedule_repo: PaymentScheduleRepository,
        default_installment_interval_days: int = 30,
    ):
        self.uow = uow
        self.member_repo = member_repo
        self.entry_repo = entry_repo
        self.terms_repo = terms_repo
        self.schedule_repo = schedule_repo
        self.default_installment_interval_days = default_installment_interval_days
        self.balance_sync = BalanceSynchronizer(member_repo, entry_repo)

    async def execute(
        self, command: RecordCreditPurchaseCommandDTO
    ) -> Result[CreditPurchaseResponseDTO]:
        amount_cents = to_cents(command.amount)
        if amount_cents <= 0:
            return Return.err(
                Error(
                    code="INVALID_AMOUNT",
                    message="Purchase amount must be at least 0.01",
                    reason=f"amount={command.amount}",
                )
            )

        # Every installment row must carry at least one cent
        if command.installments and command.installments > amount_cents:
            return Return.err(
                Error(
                    code="INVALID_AMOUNT",
                    message="Purchase amount is too small for the requested installments",
                    reason=f"amount={command.amount}, installments={command.installments}",
                )
            )

        try:
            member = await self.member_repo.get_by_id(command.member_id, for_update=True)
            if not member:
                await self.uow.rollback()
                return Return.err(
                    Error(
                        code="MEMBER_NOT_FOUND",
                        message=f"Member {command.member_id} not found",
                    )
                )

            purchased_at = as_naive_utc(command.purchased_at) or utcnow()
            notes = command.notes or self._default_notes(command, amount_cents)

            entry = await self.entry_repo.append(
                LedgerEntry(
                    member_id=member.id,
                    kind=EntryKind.DEBIT_SPENT,
                    amount_cents=amount_cents,
                    paid_amount_cents=0,
                    status=EntryStatus.PENDING,
                    related_purchase_id=command.related_purchase_id,
                    notes=notes,
                    timestamp=purchased_at,
                )
            )

            terms = None
            if command.credit_terms:
                terms = await self.terms_repo.create(
                    CreditTerms(
                        ledger_entry_id=entry.id,
                        product_id=command.credit_terms.product_id,
                        due_days=command.credit_terms.due_days,
                        penalty_type=command.credit_terms.penalty_type,
                        penalty_value=command.credit_terms.penalty_value,
                    )
                )

            schedule = await self._create_schedule(command, entry, terms)

            balance_cents = await self.balance_sync.recompute(member.id)

            await self.uow.commit()

            logger.info(
                f"Recorded credit purchase of {format_cents(amount_cents)} for member "
                f"{member.id} (entry {entry.id}, {len(schedule)} installments)"
            )

            return Return.ok(
                CreditPurchaseResponseDTO(
                    entry=LedgerEntryDTO.from_entity(entry),
                    schedule=[ScheduleEntryDTO.from_entity(row) for row in schedule],
                    balance=from_cents(balance_cents),
                )
            )

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                failure_from_exception(
                    e, "RECORD_PURCHASE_FAILED", "Failed to record credit purchase"
                )
            )

    async def _create_schedule(
        self,
        command: RecordCreditPurchaseCommandDTO,
        entry: LedgerEntry,
        terms: CreditTerms | None,
    ) -> list[PaymentScheduleEntry]:
        if command.installments:
            interval = command.installment_interval_days or self.default_installment_interval_days
            rows = split_installments(
                entry.amount_cents, command.installments, entry.timestamp, interval
            )
        elif terms is not None:
            rows = [(entry.amount_cents, entry.timestamp + timedelta(days=terms.due_days))]
        else:
            return []

        created = []
        for number, (cents, due_date) in enumerate(rows, start=1):
            created.append(
                await self.schedule_repo.create(
                    PaymentScheduleEntry(
                        member_id=entry.member_id,
                        ledger_entry_id=entry.id,
                        related_purchase_id=entry.related_purchase_id,
                        amount_cents=cents,
                        due_date=due_date,
                        installment_number=number,
                        total_installments=len(rows),
                    )
                )
            )
        return created

    @staticmethod
    def _default_notes(command: RecordCreditPurchaseCommandDTO, amount_cents: int) -> str:
        notes = f"Credit purchase of {format_cents(amount_cents)}"
        if command.related_purchase_id:
            notes += f" (sale {command.related_purchase_id})"
        return notes
