"""RecomputeBalance Use Case

Standalone re-derivation of a member's cached balance from the ledger.
"""

import logging
from coop_ledger.libs.result import Result, Return, Error
from coop_ledger.app.services.unit_of_work import UnitOfWork
from coop_ledger.app.services.balance_synchronizer import BalanceSynchronizer
from coop_ledger.app.repositories.member_repository import MemberRepository
from coop_ledger.app.repositories.ledger_entry_repository import LedgerEntryRepository
from coop_ledger.domain.money import from_cents
from .dtos import RecomputeBalanceResponseDTO
from .failures import failure_from_exception

logger = logging.getLogger(__name__)


class RecomputeBalance:
    """
    Use Case: Re-derive a member balance in its own transaction

    Locks the member row, runs the balance synchronizer and commits. Any
    drift between the previous cached value and the ledger is logged.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        member_repo: MemberRepository,
        entry_repo: LedgerEntryRepository,
    ):
        self.uow = uow
        self.member_repo = member_repo
        self.balance_sync = BalanceSynchronizer(member_repo, entry_repo)

    async def execute(self, member_id: int) -> Result[RecomputeBalanceResponseDTO]:
        try:
            member = await self.member_repo.get_by_id(member_id, for_update=True)
            if not member:
                await self.uow.rollback()
                return Return.err(
                    Error(code="MEMBER_NOT_FOUND", message=f"Member {member_id} not found")
                )

            previous_cents = member.credit_balance_cents
            balance_cents = await self.balance_sync.recompute(member.id)

            await self.uow.commit()

            drift_cents = balance_cents - previous_cents
            if drift_cents:
                logger.warning(
                    f"Corrected cached balance of member {member.id}: "
                    f"{previous_cents} -> {balance_cents} cents (drift {drift_cents})"
                )

            return Return.ok(
                RecomputeBalanceResponseDTO(
                    member_id=member.id,
                    previous_balance=from_cents(previous_cents),
                    balance=from_cents(balance_cents),
                    drift=from_cents(drift_cents),
                )
            )

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                failure_from_exception(e, "RECOMPUTE_BALANCE_FAILED", "Failed to recompute balance")
            )
