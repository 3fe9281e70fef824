"""SQLAlchemy implementation of LedgerEntryRepository

The ledger store. Appends never contend with each other; reads used for
allocation can lock the returned rows; paid amount mutations are validated
against the ledger invariants before they reach the database.
"""

import logging
from datetime import datetime
from typing import Optional, Sequence
from sqlalchemy import case, func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from coop_ledger.domain.clock import utcnow
from coop_ledger.app.repositories.ledger_entry_repository import LedgerEntryRepository
from coop_ledger.domain.credit_terms import CreditTerms
from coop_ledger.domain.errors import InvariantViolation
from coop_ledger.domain.ledger_entry import (
    LedgerEntry,
    EntryKind,
    EntryStatus,
    DEBIT_KINDS,
)

logger = logging.getLogger(__name__)

OUTSTANDING_STATUSES = (EntryStatus.PENDING, EntryStatus.PARTIALLY_PAID)


class SqlAlchemyLedgerEntryRepository(LedgerEntryRepository):
    """
    SQLAlchemy implementation of LedgerEntryRepository

    Features:
    - Explicit (timestamp, id) FIFO ordering on every ordered read
    - Single-query aggregate balance
    - Invariant checks on paid amount mutations (never clamped)
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, entry: LedgerEntry) -> LedgerEntry:
        self.session.add(entry)
        await self.session.flush()
        await self.session.refresh(entry)
        return entry

    async def get_by_id(self, entry_id: int, for_update: bool = False) -> Optional[LedgerEntry]:
        stmt = select(LedgerEntry).where(LedgerEntry.id == entry_id)

        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_outstanding_debits(
        self, member_id: int, for_update: bool = False
    ) -> list[LedgerEntry]:
        stmt = (
            select(LedgerEntry)
            .where(
                LedgerEntry.member_id == member_id,
                LedgerEntry.kind.in_(DEBIT_KINDS),
                LedgerEntry.status.in_(OUTSTANDING_STATUSES),
            )
            .order_by(LedgerEntry.timestamp.asc(), LedgerEntry.id.asc())
        )

        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mutate_paid_amount(
        self, entry: LedgerEntry, new_paid_amount_cents: int, new_status: EntryStatus
    ) -> None:
        try:
            entry.check_paid_amount_transition(new_paid_amount_cents, new_status)
        except InvariantViolation as e:
            logger.critical(f"Rejected paid amount mutation: {e}")
            raise

        entry.paid_amount_cents = new_paid_amount_cents
        entry.status = new_status
        entry.updated_at = utcnow()
        self.session.add(entry)
        await self.session.flush()

    async def mark_penalty_applied(self, entry: LedgerEntry) -> None:
        if entry.kind != EntryKind.DEBIT_SPENT:
            raise InvariantViolation(
                f"Penalty flag is only defined for debit_spent entries (entry {entry.id})",
                entry.id,
            )

        entry.penalty_applied = True
        entry.updated_at = utcnow()
        self.session.add(entry)
        await self.session.flush()

    async def sum_balance(self, member_id: int) -> int:
        signed_amount = case(
            (LedgerEntry.kind.in_(DEBIT_KINDS), LedgerEntry.amount_cents),
            else_=-LedgerEntry.amount_cents,
        )
        stmt = select(func.coalesce(func.sum(signed_amount), 0)).where(
            LedgerEntry.member_id == member_id
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def list_by_member(self, member_id: int) -> list[LedgerEntry]:
        stmt = (
            select(LedgerEntry)
            .where(LedgerEntry.member_id == member_id)
            .order_by(LedgerEntry.timestamp.asc(), LedgerEntry.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_oldest_outstanding_debit(
        self,
        member_id: int,
        older_than: datetime,
        kinds: Sequence[EntryKind],
    ) -> Optional[LedgerEntry]:
        stmt = (
            select(LedgerEntry)
            .where(
                LedgerEntry.member_id == member_id,
                LedgerEntry.kind.in_(list(kinds)),
                LedgerEntry.status.in_(OUTSTANDING_STATUSES),
                LedgerEntry.timestamp <= older_than,
            )
            .order_by(LedgerEntry.timestamp.asc(), LedgerEntry.id.asc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_penalty_candidate_ids(self) -> list[int]:
        stmt = (
            select(LedgerEntry.id)
            .join(CreditTerms, CreditTerms.ledger_entry_id == LedgerEntry.id)
            .where(
                LedgerEntry.kind == EntryKind.DEBIT_SPENT,
                LedgerEntry.status.in_(OUTSTANDING_STATUSES),
                LedgerEntry.penalty_applied.is_(False),
            )
            .order_by(LedgerEntry.timestamp.asc(), LedgerEntry.id.asc())
        )
        result = await self.session.execute(stmt)
        return [int(entry_id) for entry_id in result.scalars().all()]
