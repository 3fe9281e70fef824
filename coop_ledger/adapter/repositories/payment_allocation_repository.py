"""SQLAlchemy implementation of PaymentAllocationRepository"""

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from coop_ledger.app.repositories.payment_allocation_repository import PaymentAllocationRepository
from coop_ledger.domain.payment_allocation import PaymentAllocation


class SqlAlchemyPaymentAllocationRepository(PaymentAllocationRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, allocation: PaymentAllocation) -> PaymentAllocation:
        self.session.add(allocation)
        await self.session.flush()
        await self.session.refresh(allocation)
        return allocation

    async def list_by_payment(self, payment_entry_id: int) -> list[PaymentAllocation]:
        stmt = (
            select(PaymentAllocation)
            .where(PaymentAllocation.payment_entry_id == payment_entry_id)
            .order_by(PaymentAllocation.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
