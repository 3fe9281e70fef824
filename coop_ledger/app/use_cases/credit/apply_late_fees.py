"""Late Fee Use Cases

Late fees on overdue installments. A fee is posted at most once per schedule
row as a debit_adjustment linked to the purchase the installment belongs to.
"""

import logging
import time
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional
from coop_ledger.domain.clock import as_naive_utc, utcnow
from coop_ledger.libs.result import Result, Return, Error
from coop_ledger.app.services.unit_of_work import UnitOfWork
from coop_ledger.app.services.balance_synchronizer import BalanceSynchronizer
from coop_ledger.app.repositories.member_repository import MemberRepository
from coop_ledger.app.repositories.ledger_entry_repository import LedgerEntryRepository
from coop_ledger.app.repositories.payment_schedule_repository import PaymentScheduleRepository
from coop_ledger.domain.ledger_entry import LedgerEntry, EntryKind, EntryStatus
from coop_ledger.domain.money import from_cents, to_cents, format_cents
from coop_ledger.domain.payment_schedule import ScheduleStatus, late_fee_cents
from .dtos import LateFeeResultDTO, LateFeesResultDTO
from .failures import failure_from_exception

logger = logging.getLogger(__name__)


class LateFeeSkipReason:
    NOT_OVERDUE = "not_overdue"
    ALREADY_APPLIED = "already_applied"
    ZERO_FEE = "zero_fee"


class ApplyLateFee:
    """
    Use Case: Charge the late fee of one overdue installment

    Business Rules:
    1. Only installments in the overdue state are charged; rows paid since
       they were listed are skipped
    2. Fee = max(fixed amount, installment amount * percentage / 100)
    3. The late_fee_applied flag is checked and set under the schedule row
       lock, so concurrent runs post at most one fee per installment
    4. The fee entry is a debit_adjustment with related_entry_id pointing at
       the installment's purchase; the balance is re-derived afterwards

    Locking:
    Member row first, then the schedule row.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        member_repo: MemberRepository,
        entry_repo: LedgerEntryRepository,
        schedule_repo: PaymentScheduleRepository,
        fee_amount: Decimal,
        fee_percentage: Decimal,
    ):
        self.uow = uow
        self.member_repo = member_repo
        self.entry_repo = entry_repo
        self.schedule_repo = schedule_repo
        self.fee_cents = to_cents(fee_amount)
        self.fee_percentage = Decimal(fee_percentage)
        self.balance_sync = BalanceSynchronizer(member_repo, entry_repo)

    async def execute(self, schedule_id: int, now: Optional[datetime] = None) -> Result[LateFeeResultDTO]:
        now = as_naive_utc(now) or utcnow()

        try:
            schedule = await self.schedule_repo.get_by_id(schedule_id)
            if not schedule:
                await self.uow.rollback()
                return Return.err(
                    Error(code="SCHEDULE_NOT_FOUND", message=f"Installment {schedule_id} not found")
                )

            member_id = schedule.member_id
            await self.member_repo.get_by_id(member_id, for_update=True)
            schedule = await self.schedule_repo.get_by_id(schedule_id, for_update=True)

            if schedule.status != ScheduleStatus.OVERDUE:
                return await self._skip(schedule_id, member_id, LateFeeSkipReason.NOT_OVERDUE)

            if schedule.late_fee_applied:
                return await self._skip(schedule_id, member_id, LateFeeSkipReason.ALREADY_APPLIED)

            fee_cents = late_fee_cents(schedule.amount_cents, self.fee_cents, self.fee_percentage)
            if fee_cents <= 0:
                return await self._skip(schedule_id, member_id, LateFeeSkipReason.ZERO_FEE)

            installment = (
                f"{schedule.installment_number}/{schedule.total_installments}"
                if schedule.installment_number
                else "installment"
            )
            fee = await self.entry_repo.append(
                LedgerEntry(
                    member_id=member_id,
                    kind=EntryKind.DEBIT_ADJUSTMENT,
                    amount_cents=fee_cents,
                    paid_amount_cents=0,
                    status=EntryStatus.PENDING,
                    related_purchase_id=schedule.related_purchase_id,
                    related_entry_id=schedule.ledger_entry_id,
                    notes=f"Late fee for overdue installment {installment} (schedule {schedule_id})",
                    timestamp=now,
                )
            )
            await self.schedule_repo.mark_late_fee_applied(schedule)

            new_balance_cents = await self.balance_sync.recompute(member_id)

            await self.uow.commit()

            logger.info(
                f"Applied late fee of {format_cents(fee_cents)} to schedule {schedule_id} "
                f"of member {member_id} (fee entry {fee.id})"
            )

            return Return.ok(
                LateFeeResultDTO(
                    schedule_id=schedule_id,
                    member_id=member_id,
                    outcome="applied",
                    fee_amount=from_cents(fee_cents),
                    fee_entry_id=fee.id,
                    new_balance=from_cents(new_balance_cents),
                )
            )

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                failure_from_exception(e, "APPLY_LATE_FEE_FAILED", "Failed to apply late fee")
            )

    async def _skip(self, schedule_id: int, member_id: int, reason: str) -> Result[LateFeeResultDTO]:
        await self.uow.rollback()
        logger.debug(f"Skipped late fee for schedule {schedule_id}: {reason}")
        return Return.ok(
            LateFeeResultDTO(
                schedule_id=schedule_id,
                member_id=member_id,
                outcome="skipped",
                reason=reason,
            )
        )


class ApplyLateFees:
    """
    Use Case: Batch late-fee run over overdue installments without a fee

    Each installment is processed by ApplyLateFee in its own transaction.
    Run it after MarkOverdueSchedules so newly lapsed rows are included.
    """

    def __init__(
        self,
        schedule_repo: PaymentScheduleRepository,
        apply_late_fee_factory: Callable[[], ApplyLateFee],
    ):
        self.schedule_repo = schedule_repo
        self.apply_late_fee_factory = apply_late_fee_factory

    async def execute(
        self, member_id: Optional[int] = None, now: Optional[datetime] = None
    ) -> Result[LateFeesResultDTO]:
        start_time = time.time()
        now = as_naive_utc(now) or utcnow()

        try:
            candidate_ids = await self.schedule_repo.list_late_fee_candidate_ids(member_id)
        except Exception as e:
            return Return.err(
                failure_from_exception(e, "APPLY_LATE_FEES_FAILED", "Failed to list overdue installments")
            )

        applied = skipped = failed = 0
        total_cents = 0

        for schedule_id in candidate_ids:
            result = await self.apply_late_fee_factory().execute(schedule_id, now=now)

            if result.is_err():
                failed += 1
                logger.error(
                    f"Late fee for schedule {schedule_id} failed: "
                    f"{result.error.code} - {result.error.message}"
                )
                continue

            if result.value.outcome == "applied":
                applied += 1
                total_cents += to_cents(result.value.fee_amount)
            else:
                skipped += 1

        execution_time_ms = int((time.time() - start_time) * 1000)

        logger.info(
            f"Late-fee run completed: {len(candidate_ids)} candidates, {applied} applied, "
            f"{skipped} skipped, {failed} failed, total {format_cents(total_cents)}"
        )

        return Return.ok(
            LateFeesResultDTO(
                candidates=len(candidate_ids),
                applied=applied,
                skipped=skipped,
                failed=failed,
                total_fees=from_cents(total_cents),
                run_at=now,
                execution_time_ms=execution_time_ms,
            )
        )
