"""SQLAlchemy implementation of MemberRepository

Provides persistence for Member entities with pessimistic locking support.
The member row lock serializes concurrent payments, purchases and accruals
of the same member.
"""

from typing import Optional
from datetime import datetime
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from coop_ledger.app.repositories.member_repository import MemberRepository
from coop_ledger.domain.clock import utcnow
from coop_ledger.domain.member import Member


class SqlAlchemyMemberRepository(MemberRepository):
    """
    SQLAlchemy implementation of MemberRepository

    Features:
    - Pessimistic locking via SELECT FOR UPDATE
    - Cached balance writes within the caller's transaction
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, member_id: int, for_update: bool = False) -> Optional[Member]:
        stmt = select(Member).where(Member.id == member_id)

        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, member: Member) -> Member:
        self.session.add(member)
        await self.session.flush()
        await self.session.refresh(member)
        return member

    async def update_balance(self, member_id: int, balance_cents: int) -> None:
        """
        Update cached balance and updated_at timestamp

        Note:
            Should be called within a transaction with the member already locked
        """
        member = await self.get_by_id(member_id, for_update=False)
        if member:
            member.credit_balance_cents = balance_cents
            member.updated_at = utcnow()
            self.session.add(member)
            await self.session.flush()

    async def mark_interest_accrued(self, member_id: int, through: datetime) -> None:
        member = await self.get_by_id(member_id, for_update=False)
        if member and (
            member.interest_accrued_through is None or through > member.interest_accrued_through
        ):
            member.interest_accrued_through = through
            self.session.add(member)
            await self.session.flush()

    async def get_all(self) -> list[Member]:
        stmt = select(Member).order_by(Member.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
