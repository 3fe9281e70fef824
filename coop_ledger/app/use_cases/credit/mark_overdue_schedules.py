"""MarkOverdueSchedules Use Case

Flags installments that passed their due date unpaid. No monetary effect.
"""

import logging
from datetime import datetime
from typing import Optional
from coop_ledger.domain.clock import as_naive_utc, utcnow
from coop_ledger.libs.result import Result, Return
from coop_ledger.app.services.unit_of_work import UnitOfWork
from coop_ledger.app.repositories.payment_schedule_repository import PaymentScheduleRepository
from .dtos import MarkOverdueResponseDTO
from .failures import failure_from_exception

logger = logging.getLogger(__name__)


class MarkOverdueSchedules:
    """
    Use Case: Transition pending installments past due to overdue

    member_id=None processes every member (batch job).
    """

    def __init__(self, uow: UnitOfWork, schedule_repo: PaymentScheduleRepository):
        self.uow = uow
        self.schedule_repo = schedule_repo

    async def execute(
        self, member_id: Optional[int] = None, now: Optional[datetime] = None
    ) -> Result[MarkOverdueResponseDTO]:
        now = as_naive_utc(now) or utcnow()

        try:
            count = await self.schedule_repo.mark_overdue(now, member_id=member_id)
            await self.uow.commit()

            if count:
                scope = f"member {member_id}" if member_id is not None else "all members"
                logger.info(f"Marked {count} installments overdue for {scope}")

            return Return.ok(
                MarkOverdueResponseDTO(
                    member_id=member_id,
                    marked_overdue=count,
                    checked_at=now,
                )
            )

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                failure_from_exception(e, "MARK_OVERDUE_FAILED", "Failed to mark overdue installments")
            )
