"""SQLAlchemy implementation of CreditTermsRepository"""

from typing import Optional
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from coop_ledger.app.repositories.credit_terms_repository import CreditTermsRepository
from coop_ledger.domain.credit_terms import CreditTerms


class SqlAlchemyCreditTermsRepository(CreditTermsRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, terms: CreditTerms) -> CreditTerms:
        self.session.add(terms)
        await self.session.flush()
        await self.session.refresh(terms)
        return terms

    async def get_by_ledger_entry_id(self, ledger_entry_id: int) -> Optional[CreditTerms]:
        stmt = select(CreditTerms).where(CreditTerms.ledger_entry_id == ledger_entry_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
