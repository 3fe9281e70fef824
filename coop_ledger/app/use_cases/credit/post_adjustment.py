"""PostAdjustment Use Case

Manual ledger corrections. History is never rewritten: a correction is a new
debit_adjustment (raises the balance) or credit_earned (lowers it) entry.
"""

import logging
from coop_ledger.libs.result import Result, Return, Error
from coop_ledger.app.services.unit_of_work import UnitOfWork
from coop_ledger.app.services.balance_synchronizer import BalanceSynchronizer
from coop_ledger.app.repositories.member_repository import MemberRepository
from coop_ledger.app.repositories.ledger_entry_repository import LedgerEntryRepository
from coop_ledger.domain.ledger_entry import LedgerEntry, EntryKind, EntryStatus
from coop_ledger.domain.money import from_cents, to_cents, format_cents
from .dtos import PostAdjustmentCommandDTO, AdjustmentResponseDTO, LedgerEntryDTO
from .failures import failure_from_exception

logger = logging.getLogger(__name__)

ADJUSTMENT_KINDS = (EntryKind.DEBIT_ADJUSTMENT, EntryKind.CREDIT_EARNED)


class PostAdjustment:
    """
    Use Case: Post a manual adjustment entry

    Business Rules:
    1. kind must be debit_adjustment or credit_earned
    2. amount must be > 0 and notes are required
    3. related_entry_id, when given, must belong to the same member
    4. Entry and balance commit together under the member lock

    A credit_earned entry is not allocated against debits; it lowers the
    balance directly.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        member_repo: MemberRepository,
        entry_repo: LedgerEntryRepository,
    ):
        self.uow = uow
        self.member_repo = member_repo
        self.entry_repo = entry_repo
        self.balance_sync = BalanceSynchronizer(member_repo, entry_repo)

    async def execute(self, command: PostAdjustmentCommandDTO) -> Result[AdjustmentResponseDTO]:
        if command.kind not in ADJUSTMENT_KINDS:
            return Return.err(
                Error(
                    code="INVALID_ADJUSTMENT",
                    message="Adjustments must be debit_adjustment or credit_earned",
                    reason=f"kind={command.kind.value}",
                )
            )

        amount_cents = to_cents(command.amount)
        if amount_cents <= 0:
            return Return.err(
                Error(
                    code="INVALID_AMOUNT",
                    message="Adjustment amount must be at least 0.01",
                    reason=f"amount={command.amount}",
                )
            )

        if not command.notes or not command.notes.strip():
            return Return.err(
                Error(code="INVALID_ADJUSTMENT", message="Adjustment notes are required")
            )

        try:
            member = await self.member_repo.get_by_id(command.member_id, for_update=True)
            if not member:
                await self.uow.rollback()
                return Return.err(
                    Error(code="MEMBER_NOT_FOUND", message=f"Member {command.member_id} not found")
                )

            if command.related_entry_id is not None:
                related = await self.entry_repo.get_by_id(command.related_entry_id)
                if not related or related.member_id != member.id:
                    await self.uow.rollback()
                    return Return.err(
                        Error(
                            code="ENTRY_NOT_FOUND",
                            message=f"Ledger entry {command.related_entry_id} not found "
                                    f"for member {command.member_id}",
                        )
                    )

            is_debit = command.kind == EntryKind.DEBIT_ADJUSTMENT
            entry = await self.entry_repo.append(
                LedgerEntry(
                    member_id=member.id,
                    kind=command.kind,
                    amount_cents=amount_cents,
                    paid_amount_cents=0,
                    status=EntryStatus.PENDING if is_debit else None,
                    related_entry_id=command.related_entry_id,
                    notes=command.notes.strip(),
                )
            )

            balance_cents = await self.balance_sync.recompute(member.id)

            await self.uow.commit()

            logger.info(
                f"Posted {command.kind.value} of {format_cents(amount_cents)} for member "
                f"{member.id} (entry {entry.id}): {entry.notes}"
            )

            return Return.ok(
                AdjustmentResponseDTO(
                    entry=LedgerEntryDTO.from_entity(entry),
                    balance=from_cents(balance_cents),
                )
            )

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                failure_from_exception(e, "POST_ADJUSTMENT_FAILED", "Failed to post adjustment")
            )
