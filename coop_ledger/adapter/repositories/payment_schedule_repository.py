"""SQLAlchemy implementation of PaymentScheduleRepository"""

from datetime import datetime
from typing import Optional
from sqlalchemy import update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from coop_ledger.domain.clock import utcnow
from coop_ledger.app.repositories.payment_schedule_repository import PaymentScheduleRepository
from coop_ledger.domain.errors import InvariantViolation
from coop_ledger.domain.payment_schedule import PaymentScheduleEntry, ScheduleStatus

UNPAID_STATUSES = (ScheduleStatus.PENDING, ScheduleStatus.OVERDUE)


class SqlAlchemyPaymentScheduleRepository(PaymentScheduleRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, schedule: PaymentScheduleEntry) -> PaymentScheduleEntry:
        self.session.add(schedule)
        await self.session.flush()
        await self.session.refresh(schedule)
        return schedule

    async def list_unpaid_by_ledger_entry(self, ledger_entry_id: int) -> list[PaymentScheduleEntry]:
        stmt = (
            select(PaymentScheduleEntry)
            .where(
                PaymentScheduleEntry.ledger_entry_id == ledger_entry_id,
                PaymentScheduleEntry.status.in_(UNPAID_STATUSES),
            )
            .order_by(PaymentScheduleEntry.due_date.asc(), PaymentScheduleEntry.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def apply_payment(self, schedule: PaymentScheduleEntry, amount_cents: int) -> None:
        if amount_cents <= 0 or amount_cents > schedule.unpaid_cents:
            raise InvariantViolation(
                f"Cannot apply {amount_cents} cents to schedule {schedule.id} "
                f"with {schedule.unpaid_cents} cents unpaid"
            )

        schedule.paid_amount_cents += amount_cents
        if schedule.paid_amount_cents == schedule.amount_cents:
            schedule.status = ScheduleStatus.PAID
        schedule.updated_at = utcnow()
        self.session.add(schedule)
        await self.session.flush()

    async def mark_overdue(self, now: datetime, member_id: Optional[int] = None) -> int:
        stmt = (
            update(PaymentScheduleEntry)
            .where(
                PaymentScheduleEntry.status == ScheduleStatus.PENDING,
                PaymentScheduleEntry.due_date < now,
            )
            .values(status=ScheduleStatus.OVERDUE, updated_at=now)
            .execution_options(synchronize_session="evaluate")
        )
        if member_id is not None:
            stmt = stmt.where(PaymentScheduleEntry.member_id == member_id)

        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def list_by_member(self, member_id: int) -> list[PaymentScheduleEntry]:
        stmt = (
            select(PaymentScheduleEntry)
            .where(PaymentScheduleEntry.member_id == member_id)
            .order_by(PaymentScheduleEntry.due_date.asc(), PaymentScheduleEntry.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_by_id(self, schedule_id: int, for_update: bool = False) -> Optional[PaymentScheduleEntry]:
        stmt = select(PaymentScheduleEntry).where(PaymentScheduleEntry.id == schedule_id)

        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_late_fee_candidate_ids(self, member_id: Optional[int] = None) -> list[int]:
        stmt = (
            select(PaymentScheduleEntry.id)
            .where(
                PaymentScheduleEntry.status == ScheduleStatus.OVERDUE,
                PaymentScheduleEntry.late_fee_applied.is_(False),
            )
            .order_by(PaymentScheduleEntry.due_date.asc(), PaymentScheduleEntry.id.asc())
        )
        if member_id is not None:
            stmt = stmt.where(PaymentScheduleEntry.member_id == member_id)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mark_late_fee_applied(self, schedule: PaymentScheduleEntry) -> None:
        if schedule.late_fee_applied:
            raise InvariantViolation(f"Late fee already applied to schedule {schedule.id}")

        schedule.late_fee_applied = True
        schedule.updated_at = utcnow()
        self.session.add(schedule)
        await self.session.flush()
