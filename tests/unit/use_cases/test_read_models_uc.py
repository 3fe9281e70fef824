"""Unit tests for GetMemberStatement and GetPaymentAllocations use cases"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from coop_ledger.app.use_cases.credit.get_member_statement import GetMemberStatement
from coop_ledger.app.use_cases.credit.get_payment_allocations import GetPaymentAllocations
from coop_ledger.domain.ledger_entry import LedgerEntry, EntryKind, EntryStatus
from coop_ledger.domain.member import Member
from coop_ledger.domain.payment_allocation import PaymentAllocation

T0 = datetime(2024, 1, 1)


@pytest.fixture
def entries():
    return [
        LedgerEntry(id=1, member_id=1, kind=EntryKind.DEBIT_SPENT, amount_cents=10000,
                    paid_amount_cents=10000, status=EntryStatus.FULLY_PAID, timestamp=T0),
        LedgerEntry(id=2, member_id=1, kind=EntryKind.DEBIT_SPENT, amount_cents=20000,
                    paid_amount_cents=5000, status=EntryStatus.PARTIALLY_PAID,
                    related_purchase_id="sale_2", timestamp=T0 + timedelta(days=1)),
        LedgerEntry(id=3, member_id=1, kind=EntryKind.CREDIT_PAYMENT, amount_cents=15000,
                    timestamp=T0 + timedelta(days=2)),
    ]


@pytest.mark.asyncio
class TestGetMemberStatement:
    async def test_running_balance_and_outstanding(self, entries):
        member_repo = MagicMock()
        member_repo.get_by_id = AsyncMock(return_value=Member(
            id=1, name="Ana", credit_balance_cents=15000, credit_limit_cents=50000
        ))
        entry_repo = MagicMock()
        entry_repo.list_by_member = AsyncMock(return_value=entries)
        schedule_repo = MagicMock()
        schedule_repo.list_by_member = AsyncMock(return_value=[])

        result = await GetMemberStatement(member_repo, entry_repo, schedule_repo).execute(1)

        assert result.is_ok()
        statement = result.value
        assert [line.running_balance for line in statement.entries] == [
            Decimal("100.00"), Decimal("300.00"), Decimal("150.00")
        ]
        assert statement.ledger_balance == Decimal("150.00")
        assert statement.cached_balance == Decimal("150.00")
        assert statement.total_outstanding == Decimal("150.00")
        assert statement.entries[1].outstanding_amount == Decimal("150.00")
        assert statement.entries[2].status is None

    async def test_member_not_found(self):
        member_repo = MagicMock()
        member_repo.get_by_id = AsyncMock(return_value=None)

        result = await GetMemberStatement(member_repo, MagicMock(), MagicMock()).execute(1)

        assert result.error.code == "MEMBER_NOT_FOUND"


@pytest.mark.asyncio
class TestGetPaymentAllocations:
    async def test_receipt_lists_covered_debits(self, entries):
        by_id = {entry.id: entry for entry in entries}
        entry_repo = MagicMock()
        entry_repo.get_by_id = AsyncMock(side_effect=lambda entry_id: by_id.get(entry_id))
        allocation_repo = MagicMock()
        allocation_repo.list_by_payment = AsyncMock(return_value=[
            PaymentAllocation(id=1, payment_entry_id=3, debit_entry_id=1, amount_cents=10000),
            PaymentAllocation(id=2, payment_entry_id=3, debit_entry_id=2, amount_cents=5000),
        ])

        result = await GetPaymentAllocations(entry_repo, allocation_repo).execute(3)

        assert result.is_ok()
        assert result.value.amount == Decimal("150.00")
        assert [(a.entry_id, a.amount) for a in result.value.allocations] == [
            (1, Decimal("100.00")), (2, Decimal("50.00"))
        ]
        assert result.value.allocations[1].related_purchase_id == "sale_2"

    async def test_debit_entry_is_not_a_payment(self, entries):
        entry_repo = MagicMock()
        entry_repo.get_by_id = AsyncMock(return_value=entries[0])

        result = await GetPaymentAllocations(entry_repo, MagicMock()).execute(1)

        assert result.is_err()
        assert result.error.code == "PAYMENT_NOT_FOUND"
