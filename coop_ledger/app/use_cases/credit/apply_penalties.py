"""Penalty Use Cases

Late penalties on credit purchases whose product credit terms have lapsed.
A penalty is posted at most once per purchase (unless forced) as a
debit_adjustment linked to the penalised entry.
"""

import logging
import time
from datetime import datetime
from typing import Callable, Optional
from coop_ledger.domain.clock import as_naive_utc, utcnow
from coop_ledger.libs.result import Result, Return, Error
from coop_ledger.app.services.unit_of_work import UnitOfWork
from coop_ledger.app.services.balance_synchronizer import BalanceSynchronizer
from coop_ledger.app.repositories.member_repository import MemberRepository
from coop_ledger.app.repositories.ledger_entry_repository import LedgerEntryRepository
from coop_ledger.app.repositories.credit_terms_repository import CreditTermsRepository
from coop_ledger.domain.ledger_entry import LedgerEntry, EntryKind, EntryStatus
from coop_ledger.domain.money import from_cents, to_cents, format_cents
from .dtos import PenaltyResultDTO, ProductPenaltiesResultDTO
from .failures import failure_from_exception

logger = logging.getLogger(__name__)


class SkipReason:
    NOT_SPENT_ENTRY = "not_spent_entry"
    NO_CREDIT_TERMS = "no_credit_terms"
    FULLY_PAID = "fully_paid"
    NOT_DUE = "not_due"
    ALREADY_APPLIED = "already_applied"
    ZERO_PENALTY = "zero_penalty"


class ApplyPenaltyToCredit:
    """
    Use Case: Apply the late penalty of one credit purchase

    Business Rules:
    1. Only debit_spent entries with credit terms can be penalised
    2. Fully paid entries and entries not yet past due are skipped
    3. Penalty: percentage of the outstanding amount, or a fixed amount
    4. The penalty_applied flag is checked and set under the entry row lock,
       so concurrent runs post at most one penalty
    5. force=True bypasses only the already-applied check
    6. Skips are successful results with a reason, nothing is written

    Locking:
    Member row first, then the entry row (single global lock order).
    """

    def __init__(
        self,
        uow: UnitOfWork,
        member_repo: MemberRepository,
        entry_repo: LedgerEntryRepository,
        terms_repo: CreditTermsRepository,
    ):
        self.uow = uow
        self.member_repo = member_repo
        self.entry_repo = entry_repo
        self.terms_repo = terms_repo
        self.balance_sync = BalanceSynchronizer(member_repo, entry_repo)

    async def execute(
        self,
        entry_id: int,
        now: Optional[datetime] = None,
        force: bool = False,
    ) -> Result[PenaltyResultDTO]:
        now = as_naive_utc(now) or utcnow()

        try:
            # Unlocked read, only to learn which member to lock first
            entry = await self.entry_repo.get_by_id(entry_id)
            if not entry:
                await self.uow.rollback()
                return Return.err(
                    Error(code="ENTRY_NOT_FOUND", message=f"Ledger entry {entry_id} not found")
                )

            await self.member_repo.get_by_id(entry.member_id, for_update=True)
            entry = await self.entry_repo.get_by_id(entry_id, for_update=True)

            if entry.kind != EntryKind.DEBIT_SPENT:
                return await self._skip(entry_id, SkipReason.NOT_SPENT_ENTRY)

            terms = await self.terms_repo.get_by_ledger_entry_id(entry.id)
            if terms is None:
                return await self._skip(entry_id, SkipReason.NO_CREDIT_TERMS)

            due_date = terms.due_date(entry.timestamp)

            if entry.status == EntryStatus.FULLY_PAID:
                return await self._skip(entry_id, SkipReason.FULLY_PAID, due_date)

            if now <= due_date:
                return await self._skip(entry_id, SkipReason.NOT_DUE, due_date)

            # Flag re-read under the entry lock
            if entry.penalty_applied and not force:
                return await self._skip(entry_id, SkipReason.ALREADY_APPLIED, due_date)

            penalty_cents = terms.penalty_cents(entry.outstanding_cents)
            if penalty_cents <= 0:
                return await self._skip(entry_id, SkipReason.ZERO_PENALTY, due_date)

            penalty = await self.entry_repo.append(
                LedgerEntry(
                    member_id=entry.member_id,
                    kind=EntryKind.DEBIT_ADJUSTMENT,
                    amount_cents=penalty_cents,
                    paid_amount_cents=0,
                    status=EntryStatus.PENDING,
                    related_purchase_id=entry.related_purchase_id,
                    related_entry_id=entry.id,
                    notes=f"Product credit penalty for entry {entry.id}",
                    timestamp=now,
                )
            )
            await self.entry_repo.mark_penalty_applied(entry)

            new_balance_cents = await self.balance_sync.recompute(entry.member_id)

            await self.uow.commit()

            logger.info(
                f"Applied penalty of {format_cents(penalty_cents)} to entry {entry.id} "
                f"of member {entry.member_id} (penalty entry {penalty.id}"
                f"{', forced' if force else ''})"
            )

            return Return.ok(
                PenaltyResultDTO(
                    entry_id=entry.id,
                    outcome="applied",
                    penalty_amount=from_cents(penalty_cents),
                    penalty_entry_id=penalty.id,
                    due_date=due_date,
                    new_balance=from_cents(new_balance_cents),
                )
            )

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                failure_from_exception(e, "APPLY_PENALTY_FAILED", "Failed to apply penalty")
            )

    async def _skip(
        self, entry_id: int, reason: str, due_date: Optional[datetime] = None
    ) -> Result[PenaltyResultDTO]:
        await self.uow.rollback()
        logger.debug(f"Skipped penalty for entry {entry_id}: {reason}")
        return Return.ok(
            PenaltyResultDTO(
                entry_id=entry_id,
                outcome="skipped",
                reason=reason,
                due_date=due_date,
            )
        )


class ApplyProductPenalties:
    """
    Use Case: Batch penalty run over every unpenalised credit purchase

    Each candidate is processed by ApplyPenaltyToCredit in its own
    transaction; a failing entry is counted and does not abort the run.
    """

    def __init__(
        self,
        entry_repo: LedgerEntryRepository,
        apply_penalty_factory: Callable[[], ApplyPenaltyToCredit],
    ):
        self.entry_repo = entry_repo
        self.apply_penalty_factory = apply_penalty_factory

    async def execute(self, now: Optional[datetime] = None) -> Result[ProductPenaltiesResultDTO]:
        start_time = time.time()
        now = as_naive_utc(now) or utcnow()

        try:
            candidate_ids = await self.entry_repo.list_penalty_candidate_ids()
        except Exception as e:
            return Return.err(
                failure_from_exception(e, "APPLY_PENALTIES_FAILED", "Failed to list penalty candidates")
            )

        applied = skipped = failed = 0
        total_cents = 0

        for entry_id in candidate_ids:
            result = await self.apply_penalty_factory().execute(entry_id, now=now)

            if result.is_err():
                failed += 1
                logger.error(
                    f"Penalty for entry {entry_id} failed: "
                    f"{result.error.code} - {result.error.message}"
                )
                continue

            if result.value.outcome == "applied":
                applied += 1
                total_cents += to_cents(result.value.penalty_amount)
            else:
                skipped += 1

        execution_time_ms = int((time.time() - start_time) * 1000)

        logger.info(
            f"Penalty run completed: {len(candidate_ids)} candidates, {applied} applied, "
            f"{skipped} skipped, {failed} failed, total {format_cents(total_cents)} "
            f"in {execution_time_ms}ms"
        )

        return Return.ok(
            ProductPenaltiesResultDTO(
                candidates=len(candidate_ids),
                applied=applied,
                skipped=skipped,
                failed=failed,
                total_penalty=from_cents(total_cents),
                run_at=now,
                execution_time_ms=execution_time_ms,
            )
        )
