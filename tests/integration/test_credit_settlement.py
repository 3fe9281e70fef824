"""Integration tests for purchases, FIFO payment allocation and balance sync

Tests cover:
- FIFO allocation across several debits
- Full payment settles every debit
- Overpayment is capped to the balance
- Installment rows move with their debit
- Balance conservation against the ledger
- A failure partway through allocation leaves nothing behind
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from coop_ledger.domain.errors import InvariantViolation
from coop_ledger.domain.ledger_entry import LedgerEntry, EntryKind, EntryStatus
from coop_ledger.domain.member import Member
from coop_ledger.domain.payment_allocation import PaymentAllocation
from coop_ledger.domain.payment_schedule import PaymentScheduleEntry, ScheduleStatus
from coop_ledger.app.use_cases.credit import (
    RecordCreditPurchase,
    AllocatePayment,
    PostAdjustment,
    GetMemberStatement,
    ReconcileBalances,
    RecomputeBalance,
    RecordCreditPurchaseCommandDTO,
    AllocatePaymentCommandDTO,
    PostAdjustmentCommandDTO,
)
from coop_ledger.adapter.repositories import (
    SqlAlchemyMemberRepository,
    SqlAlchemyLedgerEntryRepository,
    SqlAlchemyPaymentAllocationRepository,
    SqlAlchemyPaymentScheduleRepository,
    SqlAlchemyCreditTermsRepository,
)
from coop_ledger.adapter.services.unit_of_work import SqlAlchemyUnitOfWork

T0 = datetime(2024, 1, 1, 9, 0, 0)


def purchase_use_case(session: AsyncSession) -> RecordCreditPurchase:
    return RecordCreditPurchase(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyMemberRepository(session),
        SqlAlchemyLedgerEntryRepository(session),
        SqlAlchemyCreditTermsRepository(session),
        SqlAlchemyPaymentScheduleRepository(session),
        default_installment_interval_days=30,
    )


def payment_use_case(session: AsyncSession) -> AllocatePayment:
    return AllocatePayment(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyMemberRepository(session),
        SqlAlchemyLedgerEntryRepository(session),
        SqlAlchemyPaymentAllocationRepository(session),
        SqlAlchemyPaymentScheduleRepository(session),
    )


async def buy(session, member_id, amount, at, **kwargs):
    result = await purchase_use_case(session).execute(
        RecordCreditPurchaseCommandDTO(
            member_id=member_id, amount=Decimal(amount), purchased_at=at, **kwargs
        )
    )
    assert result.is_ok(), result.error
    return result.value


async def pay(session, member_id, amount="0", full=False):
    result = await payment_use_case(session).execute(
        AllocatePaymentCommandDTO(member_id=member_id, amount=Decimal(amount), full=full)
    )
    assert result.is_ok(), result.error
    return result.value


async def debits_of(session, member_id):
    result = await session.execute(
        select(LedgerEntry)
        .where(LedgerEntry.member_id == member_id, LedgerEntry.kind == EntryKind.DEBIT_SPENT)
        .order_by(LedgerEntry.timestamp, LedgerEntry.id)
    )
    return list(result.scalars().all())


@pytest.mark.asyncio
class TestFifoSettlement:
    async def test_partial_payment_oldest_first(self, db_session: AsyncSession, member):
        """
        Given: Debits of 100.00 and 200.00, oldest first
        When: Member pays 150.00
        Then: First debit fully paid, second paid 50.00, balance 150.00
        """
        await buy(db_session, member.id, "100.00", T0)
        await buy(db_session, member.id, "200.00", T0 + timedelta(days=1))

        response = await pay(db_session, member.id, "150.00")

        assert response.outcome == "applied"
        assert response.applied == Decimal("150.00")
        assert response.new_balance == Decimal("150.00")
        assert [(a.amount, a.status) for a in response.allocations] == [
            (Decimal("100.00"), EntryStatus.FULLY_PAID),
            (Decimal("50.00"), EntryStatus.PARTIALLY_PAID),
        ]

        first, second = await debits_of(db_session, member.id)
        assert (first.paid_amount_cents, first.status) == (10000, EntryStatus.FULLY_PAID)
        assert (second.paid_amount_cents, second.status) == (5000, EntryStatus.PARTIALLY_PAID)

        await db_session.refresh(member)
        assert member.credit_balance_cents == 15000

    async def test_full_payment_settles_remaining(self, db_session: AsyncSession, member):
        await buy(db_session, member.id, "100.00", T0)
        await buy(db_session, member.id, "200.00", T0 + timedelta(days=1))
        await pay(db_session, member.id, "150.00")

        response = await pay(db_session, member.id, full=True)

        assert response.requested == Decimal("150.00")
        assert response.applied == Decimal("150.00")
        assert response.new_balance == Decimal("0.00")
        assert [d.status for d in await debits_of(db_session, member.id)] == [
            EntryStatus.FULLY_PAID, EntryStatus.FULLY_PAID
        ]

        again = await pay(db_session, member.id, full=True)
        assert again.outcome == "nothing_to_pay"

    async def test_exact_payment_settles_everything(self, db_session: AsyncSession, member):
        await buy(db_session, member.id, "45.10", T0)
        await buy(db_session, member.id, "54.90", T0 + timedelta(hours=2))

        response = await pay(db_session, member.id, "100.00")

        assert response.capped is False
        assert response.new_balance == Decimal("0.00")
        assert all(d.status == EntryStatus.FULLY_PAID for d in await debits_of(db_session, member.id))

    async def test_overpayment_is_capped(self, db_session: AsyncSession, member):
        """
        Given: Balance of 100.00
        When: Member tries to pay 250.00
        Then: Only 100.00 is recorded, balance never goes negative
        """
        await buy(db_session, member.id, "100.00", T0)

        response = await pay(db_session, member.id, "250.00")

        assert response.requested == Decimal("250.00")
        assert response.applied == Decimal("100.00")
        assert response.capped is True
        assert response.new_balance == Decimal("0.00")

        payment = await db_session.get(LedgerEntry, response.payment_entry_id)
        assert payment.amount_cents == 10000

    async def test_payment_without_debt_creates_nothing(self, db_session: AsyncSession, member):
        member_id = member.id
        response = await pay(db_session, member_id, "10.00")

        assert response.outcome == "nothing_to_pay"
        assert response.payment_entry_id is None
        result = await db_session.execute(select(LedgerEntry).where(LedgerEntry.member_id == member_id))
        assert result.scalars().all() == []

    async def test_same_timestamp_orders_by_id(self, db_session: AsyncSession, member):
        first = await buy(db_session, member.id, "30.00", T0)
        await buy(db_session, member.id, "30.00", T0)

        response = await pay(db_session, member.id, "30.00")

        assert [a.entry_id for a in response.allocations] == [first.entry.id]

    async def test_allocations_are_recorded(self, db_session: AsyncSession, member):
        await buy(db_session, member.id, "100.00", T0)
        await buy(db_session, member.id, "200.00", T0 + timedelta(days=1))

        response = await pay(db_session, member.id, "150.00")

        rows = (await db_session.execute(
            select(PaymentAllocation).where(
                PaymentAllocation.payment_entry_id == response.payment_entry_id
            )
        )).scalars().all()
        assert sorted(r.amount_cents for r in rows) == [5000, 10000]


@pytest.mark.asyncio
class TestScheduleSync:
    async def test_installments_follow_debit_payments(self, db_session: AsyncSession, member):
        """
        Given: 300.00 purchase in 3 installments
        When: Member pays 150.00
        Then: First installment paid, second paid 50.00, third untouched
        """
        purchase = await buy(db_session, member.id, "300.00", T0, installments=3)
        assert [row.amount for row in purchase.schedule] == [
            Decimal("100.00"), Decimal("100.00"), Decimal("100.00")
        ]

        await pay(db_session, member.id, "150.00")

        statement = (await GetMemberStatement(
            SqlAlchemyMemberRepository(db_session),
            SqlAlchemyLedgerEntryRepository(db_session),
            SqlAlchemyPaymentScheduleRepository(db_session),
        ).execute(member.id)).value

        assert [(row.paid_amount, row.status) for row in statement.schedule] == [
            (Decimal("100.00"), ScheduleStatus.PAID),
            (Decimal("50.00"), ScheduleStatus.PENDING),
            (Decimal("0.00"), ScheduleStatus.PENDING),
        ]

    async def test_credit_terms_create_single_installment(self, db_session: AsyncSession, member):
        purchase = await buy(
            db_session,
            member.id,
            "500.00",
            T0,
            credit_terms={"due_days": 30, "penalty_type": "percentage", "penalty_value": "10"},
        )

        assert len(purchase.schedule) == 1
        assert purchase.schedule[0].due_date == T0 + timedelta(days=30)


@pytest.mark.asyncio
class TestBalanceConservation:
    async def test_balance_matches_ledger_after_mixed_activity(self, db_session: AsyncSession, member):
        await buy(db_session, member.id, "120.00", T0)
        await buy(db_session, member.id, "80.00", T0 + timedelta(days=2))
        await pay(db_session, member.id, "50.00")
        adjustment = await PostAdjustment(
            SqlAlchemyUnitOfWork(db_session),
            SqlAlchemyMemberRepository(db_session),
            SqlAlchemyLedgerEntryRepository(db_session),
        ).execute(
            PostAdjustmentCommandDTO(
                member_id=member.id,
                kind=EntryKind.CREDIT_EARNED,
                amount=Decimal("20.00"),
                notes="Patronage rebate",
            )
        )
        assert adjustment.is_ok()
        await pay(db_session, member.id, "40.00")

        entries = await SqlAlchemyLedgerEntryRepository(db_session).list_by_member(member.id)
        debits = [e for e in entries if e.kind in (EntryKind.DEBIT_SPENT, EntryKind.DEBIT_ADJUSTMENT)]
        payments = [e for e in entries if e.kind == EntryKind.CREDIT_PAYMENT]
        credits = [e for e in entries if e.kind in (EntryKind.CREDIT_PAYMENT, EntryKind.CREDIT_EARNED)]

        await db_session.refresh(member)
        assert member.credit_balance_cents == (
            sum(e.amount_cents for e in debits) - sum(e.amount_cents for e in credits)
        )
        assert member.credit_balance_cents == 9000
        assert sum(e.paid_amount_cents for e in debits) == sum(e.amount_cents for e in payments)
        assert all(0 <= e.paid_amount_cents <= e.amount_cents for e in debits)

    async def test_reconcile_detects_and_recompute_fixes_drift(self, db_session: AsyncSession, member):
        await buy(db_session, member.id, "100.00", T0)
        member.credit_balance_cents = 99999
        db_session.add(member)
        await db_session.commit()

        member_repo = SqlAlchemyMemberRepository(db_session)
        entry_repo = SqlAlchemyLedgerEntryRepository(db_session)

        report = (await ReconcileBalances(member_repo, entry_repo).execute()).value
        assert report.discrepancies_found == 1
        assert report.discrepancies[0].ledger_balance == Decimal("100.00")

        fixed = (await RecomputeBalance(
            SqlAlchemyUnitOfWork(db_session), member_repo, entry_repo
        ).execute(member.id)).value
        assert fixed.previous_balance == Decimal("999.99")
        assert fixed.balance == Decimal("100.00")

        report = (await ReconcileBalances(member_repo, entry_repo).execute()).value
        assert report.discrepancies_found == 0


class AllocationStoreFailingOnSecondDebit(SqlAlchemyPaymentAllocationRepository):
    """Accepts the first allocation of a payment, rejects the second"""

    def __init__(self, session: AsyncSession):
        super().__init__(session)
        self.created = 0

    async def create(self, allocation: PaymentAllocation) -> PaymentAllocation:
        if self.created == 1:
            raise InvariantViolation("allocation store rejected the write", allocation.debit_entry_id)
        self.created += 1
        return await super().create(allocation)


class EntryStoreHidingLastDebit(SqlAlchemyLedgerEntryRepository):
    """Lists one outstanding debit fewer than the ledger holds"""

    async def list_outstanding_debits(self, member_id, for_update=False):
        debits = await super().list_outstanding_debits(member_id, for_update=for_update)
        return debits[:-1]


async def ledger_state(session: AsyncSession, member_id: int) -> dict:
    """Everything a payment may touch, read fresh from the database"""

    async def rows(stmt):
        result = await session.execute(stmt.execution_options(populate_existing=True))
        return list(result.scalars().all())

    entries = await rows(
        select(LedgerEntry).where(LedgerEntry.member_id == member_id).order_by(LedgerEntry.id)
    )
    schedules = await rows(
        select(PaymentScheduleEntry)
        .where(PaymentScheduleEntry.member_id == member_id)
        .order_by(PaymentScheduleEntry.id)
    )
    allocations = await rows(select(PaymentAllocation).order_by(PaymentAllocation.id))
    member = (await rows(select(Member).where(Member.id == member_id)))[0]

    return {
        "entries": [(e.id, e.kind, e.amount_cents, e.paid_amount_cents, e.status) for e in entries],
        "schedules": [(s.id, s.paid_amount_cents, s.status) for s in schedules],
        "allocations": [(a.payment_entry_id, a.debit_entry_id, a.amount_cents) for a in allocations],
        "balance_cents": member.credit_balance_cents,
    }


@pytest.mark.asyncio
class TestPaymentAtomicity:
    async def test_failure_on_second_debit_leaves_nothing_behind(self, db_session: AsyncSession, member):
        """
        Given: Two purchases, the first split into two installments
        When: A payment covering both fails while allocating to the second debit
        Then: No payment entry, paid amounts, allocations, installment
              payments or balance change survive
        """
        member_id = member.id
        await buy(db_session, member_id, "100.00", T0, installments=2)
        await buy(db_session, member_id, "200.00", T0 + timedelta(days=1))
        before = await ledger_state(db_session, member_id)

        result = await AllocatePayment(
            SqlAlchemyUnitOfWork(db_session),
            SqlAlchemyMemberRepository(db_session),
            SqlAlchemyLedgerEntryRepository(db_session),
            AllocationStoreFailingOnSecondDebit(db_session),
            SqlAlchemyPaymentScheduleRepository(db_session),
        ).execute(AllocatePaymentCommandDTO(member_id=member_id, amount=Decimal("150.00")))

        assert result.is_err()
        assert result.error.code == "INVARIANT_VIOLATION"

        after = await ledger_state(db_session, member_id)
        assert after == before
        assert not [e for e in after["entries"] if e[1] == EntryKind.CREDIT_PAYMENT]
        assert all(e[3] == 0 and e[4] == EntryStatus.PENDING for e in after["entries"])
        assert after["schedules"] == [
            (before["schedules"][0][0], 0, ScheduleStatus.PENDING),
            (before["schedules"][1][0], 0, ScheduleStatus.PENDING),
        ]
        assert after["allocations"] == []
        assert after["balance_cents"] == 30000

    async def test_exhausted_ledger_rolls_back(self, db_session: AsyncSession, member):
        """
        Given: The debit listing misses the second purchase
        When: 150.00 is paid against a 300.00 balance
        Then: LEDGER_EXHAUSTED, and the first debit's allocation is undone
        """
        member_id = member.id
        await buy(db_session, member_id, "100.00", T0)
        await buy(db_session, member_id, "200.00", T0 + timedelta(days=1))
        before = await ledger_state(db_session, member_id)

        result = await AllocatePayment(
            SqlAlchemyUnitOfWork(db_session),
            SqlAlchemyMemberRepository(db_session),
            EntryStoreHidingLastDebit(db_session),
            SqlAlchemyPaymentAllocationRepository(db_session),
            SqlAlchemyPaymentScheduleRepository(db_session),
        ).execute(AllocatePaymentCommandDTO(member_id=member_id, amount=Decimal("150.00")))

        assert result.is_err()
        assert result.error.code == "LEDGER_EXHAUSTED"
        assert await ledger_state(db_session, member_id) == before

        # The ledger is still usable afterwards
        receipt = await pay(db_session, member_id, "150.00")
        assert receipt.new_balance == Decimal("150.00")
