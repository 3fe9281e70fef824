"""ReconcileBalances Use Case

Compares every member's cached balance with the balance derived from the
ledger to detect drift.
"""

import logging
import time
from coop_ledger.domain.clock import utcnow
from coop_ledger.libs.result import Result, Return, Error
from coop_ledger.app.repositories.member_repository import MemberRepository
from coop_ledger.app.repositories.ledger_entry_repository import LedgerEntryRepository
from coop_ledger.domain.money import from_cents
from .dtos import BalanceDiscrepancyDTO, ReconciliationResultDTO

logger = logging.getLogger(__name__)


class ReconcileBalances:
    """
    Use Case: Reconcile cached member balances against the ledger

    Business Rules:
    1. Retrieves all members
    2. For each member, derives the balance from the ledger aggregate
    3. Compares the cached balance against the derived balance
    4. Records and logs any discrepancies found
    5. Does NOT modify any data (RecomputeBalance fixes a member)
    """

    def __init__(
        self,
        member_repo: MemberRepository,
        entry_repo: LedgerEntryRepository,
    ):
        self.member_repo = member_repo
        self.entry_repo = entry_repo

    async def execute(self) -> Result[ReconciliationResultDTO]:
        """
        Execute balance reconciliation

        Returns:
            Result[ReconciliationResultDTO]: Reconciliation result with any discrepancies
        """
        start_time = time.time()
        reconciliation_time = utcnow()

        try:
            logger.info("Starting member balance reconciliation")

            # Step 1: Get all members
            members = await self.member_repo.get_all()
            total_members = len(members)

            # Step 2: Check each member for drift
            discrepancies: list[BalanceDiscrepancyDTO] = []

            for member in members:
                ledger_cents = await self.entry_repo.sum_balance(member.id)

                if member.credit_balance_cents != ledger_cents:
                    discrepancy_cents = member.credit_balance_cents - ledger_cents

                    discrepancies.append(
                        BalanceDiscrepancyDTO(
                            member_id=member.id,
                            cached_balance=from_cents(member.credit_balance_cents),
                            ledger_balance=from_cents(ledger_cents),
                            discrepancy=from_cents(discrepancy_cents),
                        )
                    )

                    logger.warning(
                        f"Discrepancy found for member {member.id}: "
                        f"cached_balance={member.credit_balance_cents}, "
                        f"ledger_balance={ledger_cents}, "
                        f"discrepancy={discrepancy_cents} cents"
                    )

            # Step 3: Build response
            execution_time_ms = int((time.time() - start_time) * 1000)

            if discrepancies:
                logger.warning(
                    f"Reconciliation complete. Found {len(discrepancies)} discrepancies "
                    f"out of {total_members} members in {execution_time_ms}ms"
                )
            else:
                logger.info(
                    f"Reconciliation complete. All {total_members} members balanced "
                    f"in {execution_time_ms}ms"
                )

            return Return.ok(
                ReconciliationResultDTO(
                    total_members_checked=total_members,
                    discrepancies_found=len(discrepancies),
                    discrepancies=discrepancies,
                    reconciliation_time=reconciliation_time,
                    execution_time_ms=execution_time_ms,
                )
            )

        except Exception as e:
            logger.error(f"Balance reconciliation failed: {e}")
            return Return.err(
                Error(
                    code="RECONCILIATION_FAILED",
                    message="Failed to reconcile member balances",
                    reason=str(e),
                )
            )
