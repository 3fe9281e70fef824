"""Unit tests for RecordCreditPurchase use case"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from itertools import count
from unittest.mock import AsyncMock, MagicMock

from coop_ledger.app.use_cases.credit.record_credit_purchase import RecordCreditPurchase
from coop_ledger.app.use_cases.credit.dtos import CreditTermsDTO, RecordCreditPurchaseCommandDTO
from coop_ledger.domain.credit_terms import PenaltyType
from coop_ledger.domain.ledger_entry import EntryKind, EntryStatus
from coop_ledger.domain.member import Member

PURCHASED_AT = datetime(2024, 1, 1, 10, 0)


def id_assigner(start):
    ids = count(start)

    def assign(obj):
        obj.id = next(ids)
        return obj

    return assign


@pytest.fixture
def mock_member_repo():
    repo = MagicMock()
    repo.get_by_id = AsyncMock(return_value=Member(id=1, name="Ana"))
    repo.update_balance = AsyncMock()
    return repo


@pytest.fixture
def mock_entry_repo():
    repo = MagicMock()
    repo.append = AsyncMock(side_effect=id_assigner(1))
    repo.sum_balance = AsyncMock(return_value=50000)
    return repo


@pytest.fixture
def mock_terms_repo():
    repo = MagicMock()
    repo.create = AsyncMock(side_effect=id_assigner(1))
    return repo


@pytest.fixture
def mock_schedule_repo():
    repo = MagicMock()
    repo.create = AsyncMock(side_effect=id_assigner(100))
    return repo


@pytest.fixture
def purchase_use_case(mock_uow, mock_member_repo, mock_entry_repo, mock_terms_repo, mock_schedule_repo):
    return RecordCreditPurchase(
        uow=mock_uow,
        member_repo=mock_member_repo,
        entry_repo=mock_entry_repo,
        terms_repo=mock_terms_repo,
        schedule_repo=mock_schedule_repo,
        default_installment_interval_days=30,
    )


@pytest.mark.asyncio
class TestRecordCreditPurchase:
    async def test_records_debit_spent_entry(self, purchase_use_case, mock_entry_repo, mock_member_repo, mock_uow):
        result = await purchase_use_case.execute(
            RecordCreditPurchaseCommandDTO(
                member_id=1,
                amount=Decimal("500.00"),
                related_purchase_id="sale_1001",
                purchased_at=PURCHASED_AT,
            )
        )

        assert result.is_ok()
        assert result.value.entry.kind == EntryKind.DEBIT_SPENT
        assert result.value.entry.amount == Decimal("500.00")
        assert result.value.entry.status == EntryStatus.PENDING
        assert result.value.entry.timestamp == PURCHASED_AT
        assert result.value.schedule == []
        assert result.value.balance == Decimal("500.00")

        entry = mock_entry_repo.append.call_args[0][0]
        assert entry.amount_cents == 50000
        assert entry.paid_amount_cents == 0
        assert entry.notes == "Credit purchase of 500.00 (sale sale_1001)"

        mock_member_repo.get_by_id.assert_called_once_with(1, for_update=True)
        mock_member_repo.update_balance.assert_called_once_with(1, 50000)
        mock_uow.commit.assert_called_once()

    async def test_credit_terms_create_single_due_row(self, purchase_use_case, mock_terms_repo, mock_schedule_repo):
        """Terms without installments: one schedule row due after due_days"""
        result = await purchase_use_case.execute(
            RecordCreditPurchaseCommandDTO(
                member_id=1,
                amount=Decimal("500.00"),
                purchased_at=PURCHASED_AT,
                credit_terms=CreditTermsDTO(
                    product_id="rice_25kg",
                    due_days=30,
                    penalty_type=PenaltyType.PERCENTAGE,
                    penalty_value=Decimal("10.00"),
                ),
            )
        )

        assert result.is_ok()
        terms = mock_terms_repo.create.call_args[0][0]
        assert terms.ledger_entry_id == 1
        assert terms.due_days == 30
        assert terms.penalty_type == PenaltyType.PERCENTAGE

        assert len(result.value.schedule) == 1
        row = result.value.schedule[0]
        assert row.amount == Decimal("500.00")
        assert row.due_date == PURCHASED_AT + timedelta(days=30)
        assert row.ledger_entry_id == 1

    async def test_installments_split_amount(self, purchase_use_case, mock_schedule_repo):
        result = await purchase_use_case.execute(
            RecordCreditPurchaseCommandDTO(
                member_id=1,
                amount=Decimal("100.00"),
                purchased_at=PURCHASED_AT,
                installments=3,
                installment_interval_days=14,
            )
        )

        assert result.is_ok()
        schedule = result.value.schedule
        assert [row.amount for row in schedule] == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
        assert [row.installment_number for row in schedule] == [1, 2, 3]
        assert all(row.total_installments == 3 for row in schedule)
        assert schedule[2].due_date == PURCHASED_AT + timedelta(days=42)

    async def test_unknown_member(self, purchase_use_case, mock_member_repo, mock_entry_repo, mock_uow):
        mock_member_repo.get_by_id = AsyncMock(return_value=None)

        result = await purchase_use_case.execute(
            RecordCreditPurchaseCommandDTO(member_id=9, amount=Decimal("10.00"))
        )

        assert result.is_err()
        assert result.error.code == "MEMBER_NOT_FOUND"
        mock_entry_repo.append.assert_not_called()
        mock_uow.commit.assert_not_called()

    async def test_sub_cent_amount_rejected(self, purchase_use_case, mock_member_repo):
        result = await purchase_use_case.execute(
            RecordCreditPurchaseCommandDTO(member_id=1, amount=Decimal("0.004"))
        )

        assert result.is_err()
        assert result.error.code == "INVALID_AMOUNT"
        mock_member_repo.get_by_id.assert_not_called()

    async def test_more_installments_than_cents_rejected(
        self, purchase_use_case, mock_member_repo, mock_schedule_repo
    ):
        """
        Given: A 0.02 purchase split into 3 installments
        When: The purchase is recorded
        Then: INVALID_AMOUNT, nothing written (a row would be 0 cents)
        """
        result = await purchase_use_case.execute(
            RecordCreditPurchaseCommandDTO(member_id=1, amount=Decimal("0.02"), installments=3)
        )

        assert result.is_err()
        assert result.error.code == "INVALID_AMOUNT"
        mock_member_repo.get_by_id.assert_not_called()
        mock_schedule_repo.create.assert_not_called()

    async def test_aware_purchase_time_stored_as_naive_utc(self, purchase_use_case, mock_entry_repo):
        result = await purchase_use_case.execute(
            RecordCreditPurchaseCommandDTO(
                member_id=1,
                amount=Decimal("10.00"),
                purchased_at=datetime(2024, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2))),
            )
        )

        assert result.is_ok()
        entry = mock_entry_repo.append.call_args[0][0]
        assert entry.timestamp == datetime(2024, 1, 1, 10, 0)
        assert entry.timestamp.tzinfo is None

    async def test_failure_rolls_back(self, purchase_use_case, mock_entry_repo, mock_uow):
        mock_entry_repo.append = AsyncMock(side_effect=RuntimeError("connection reset"))

        result = await purchase_use_case.execute(
            RecordCreditPurchaseCommandDTO(member_id=1, amount=Decimal("10.00"))
        )

        assert result.is_err()
        assert result.error.code == "RECORD_PURCHASE_FAILED"
        mock_uow.rollback.assert_called_once()
