"""Interest Use Cases

CalculateInterest previews the interest a member would be charged;
AccrueInterest posts it to the ledger as a debit_adjustment.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import NamedTuple, Optional
from coop_ledger.domain.clock import as_naive_utc, utcnow
from coop_ledger.libs.result import Result, Return, Error
from coop_ledger.app.services.unit_of_work import UnitOfWork
from coop_ledger.app.services.balance_synchronizer import BalanceSynchronizer
from coop_ledger.app.repositories.member_repository import MemberRepository
from coop_ledger.app.repositories.ledger_entry_repository import LedgerEntryRepository
from coop_ledger.domain.interest import compound_interest_cents, days_outstanding
from coop_ledger.domain.ledger_entry import LedgerEntry, EntryKind, EntryStatus
from coop_ledger.domain.member import Member
from coop_ledger.domain.money import from_cents, format_cents
from .dtos import InterestResponseDTO
from .failures import failure_from_exception

logger = logging.getLogger(__name__)


class InterestQuote(NamedTuple):
    cents: int
    days: int
    through: Optional[datetime]


NO_INTEREST = InterestQuote(0, 0, None)


class _InterestPolicy:
    """Shared interest computation (daily compounding of a monthly rate)"""

    def __init__(
        self,
        entry_repo: LedgerEntryRepository,
        monthly_rate: Decimal,
        grace_period_days: int,
    ):
        self.entry_repo = entry_repo
        self.monthly_rate = Decimal(monthly_rate)
        self.grace_period_days = grace_period_days

    async def compute(self, member: Member, balance_cents: int, now: datetime) -> InterestQuote:
        """
        Interest for the days not charged yet

        The period starts at the oldest qualifying debit, or at the member's
        ``interest_accrued_through`` mark when that is later. Only whole days
        are charged; the remainder is left for the next run.
        """
        if balance_cents <= 0 or self.monthly_rate <= 0:
            return NO_INTEREST

        oldest = await self.entry_repo.get_oldest_outstanding_debit(
            member.id,
            older_than=now - timedelta(days=self.grace_period_days),
            kinds=[EntryKind.DEBIT_SPENT],
        )
        if oldest is None:
            return NO_INTEREST

        mark = member.interest_accrued_through
        if mark is None or mark <= oldest.timestamp:
            start = oldest.timestamp
            days = days_outstanding(start, now)
        else:
            start = mark
            days = (now - mark).days
            if days <= 0:
                return NO_INTEREST

        cents = compound_interest_cents(balance_cents, self.monthly_rate, days)
        return InterestQuote(cents, days, start + timedelta(days=days))


class CalculateInterest:
    """
    Use Case: Preview the interest owed by a member (read only)

    Nothing is written; the balance is derived from the ledger, not the cache.
    """

    def __init__(
        self,
        member_repo: MemberRepository,
        entry_repo: LedgerEntryRepository,
        monthly_rate: Decimal,
        grace_period_days: int,
    ):
        self.member_repo = member_repo
        self.entry_repo = entry_repo
        self.policy = _InterestPolicy(entry_repo, monthly_rate, grace_period_days)

    async def execute(
        self, member_id: int, now: Optional[datetime] = None
    ) -> Result[InterestResponseDTO]:
        now = as_naive_utc(now) or utcnow()

        try:
            member = await self.member_repo.get_by_id(member_id)
            if not member:
                return Return.err(
                    Error(code="MEMBER_NOT_FOUND", message=f"Member {member_id} not found")
                )

            balance_cents = await self.entry_repo.sum_balance(member.id)
            quote = await self.policy.compute(member, balance_cents, now)

            return Return.ok(
                InterestResponseDTO(
                    member_id=member.id,
                    interest_amount=from_cents(quote.cents),
                    balance=from_cents(balance_cents),
                    days_outstanding=quote.days,
                    accrued_through=quote.through,
                    monthly_rate=self.policy.monthly_rate,
                )
            )

        except Exception as e:
            return Return.err(
                failure_from_exception(e, "CALCULATE_INTEREST_FAILED", "Failed to calculate interest")
            )


class AccrueInterest:
    """
    Use Case: Accrue interest on a member's outstanding balance

    Business Rules:
    1. Balance <= 0: nothing accrues
    2. Only debit_spent entries past the grace period qualify; days are counted
       from the oldest one (at least 1), or from the member's
       interest_accrued_through mark when that is later
    3. interest = balance * ((1 + r/100/30)^days - 1), half-up to cents
    4. A positive interest is posted as a debit_adjustment (never mutates
       existing entries), the mark moves to the end of the charged days, then
       the balance is re-derived
    5. Runs under the member lock, one transaction
    """

    def __init__(
        self,
        uow: UnitOfWork,
        member_repo: MemberRepository,
        entry_repo: LedgerEntryRepository,
        monthly_rate: Decimal,
        grace_period_days: int,
    ):
        self.uow = uow
        self.member_repo = member_repo
        self.entry_repo = entry_repo
        self.policy = _InterestPolicy(entry_repo, monthly_rate, grace_period_days)
        self.balance_sync = BalanceSynchronizer(member_repo, entry_repo)

    async def execute(
        self, member_id: int, now: Optional[datetime] = None
    ) -> Result[InterestResponseDTO]:
        now = as_naive_utc(now) or utcnow()

        try:
            member = await self.member_repo.get_by_id(member_id, for_update=True)
            if not member:
                await self.uow.rollback()
                return Return.err(
                    Error(code="MEMBER_NOT_FOUND", message=f"Member {member_id} not found")
                )

            balance_cents = await self.entry_repo.sum_balance(member.id)
            quote = await self.policy.compute(member, balance_cents, now)

            if quote.cents <= 0:
                await self.uow.rollback()
                return Return.ok(
                    InterestResponseDTO(
                        member_id=member_id,
                        interest_amount=from_cents(0),
                        balance=from_cents(balance_cents),
                        days_outstanding=quote.days,
                        monthly_rate=self.policy.monthly_rate,
                        new_balance=from_cents(balance_cents),
                    )
                )

            entry = await self.entry_repo.append(
                LedgerEntry(
                    member_id=member.id,
                    kind=EntryKind.DEBIT_ADJUSTMENT,
                    amount_cents=quote.cents,
                    paid_amount_cents=0,
                    status=EntryStatus.PENDING,
                    notes=(
                        f"Interest of {format_cents(quote.cents)} on balance "
                        f"{format_cents(balance_cents)} for {quote.days} days at "
                        f"{self.policy.monthly_rate}% per month"
                    ),
                    timestamp=now,
                )
            )

            await self.member_repo.mark_interest_accrued(member.id, quote.through)
            new_balance_cents = await self.balance_sync.recompute(member.id)

            await self.uow.commit()

            logger.info(
                f"Accrued interest of {format_cents(quote.cents)} for member {member_id} "
                f"(entry {entry.id}, {quote.days} days through {quote.through:%Y-%m-%d})"
            )

            return Return.ok(
                InterestResponseDTO(
                    member_id=member_id,
                    interest_amount=from_cents(quote.cents),
                    balance=from_cents(balance_cents),
                    days_outstanding=quote.days,
                    accrued_through=quote.through,
                    monthly_rate=self.policy.monthly_rate,
                    entry_id=entry.id,
                    new_balance=from_cents(new_balance_cents),
                )
            )

        except Exception as e:
            await self.uow.rollback()
            return Return.err(
                failure_from_exception(e, "ACCRUE_INTEREST_FAILED", "Failed to accrue interest")
            )
