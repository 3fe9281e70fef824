"""Unit tests for LedgerEntry domain entity"""

import pytest
from datetime import datetime
from coop_ledger.domain.errors import InvariantViolation
from coop_ledger.domain.ledger_entry import (
    LedgerEntry,
    EntryKind,
    EntryStatus,
    derive_status,
)


def make_debit(amount_cents=10000, paid_amount_cents=0, kind=EntryKind.DEBIT_SPENT):
    return LedgerEntry(
        id=1,
        member_id=7,
        kind=kind,
        amount_cents=amount_cents,
        paid_amount_cents=paid_amount_cents,
        status=derive_status(amount_cents, paid_amount_cents),
        timestamp=datetime(2024, 1, 1),
    )


class TestDeriveStatus:
    def test_unpaid_is_pending(self):
        assert derive_status(10000, 0) == EntryStatus.PENDING

    def test_partial_is_partially_paid(self):
        assert derive_status(10000, 1) == EntryStatus.PARTIALLY_PAID
        assert derive_status(10000, 9999) == EntryStatus.PARTIALLY_PAID

    def test_settled_is_fully_paid(self):
        assert derive_status(10000, 10000) == EntryStatus.FULLY_PAID


class TestEntryAmounts:
    def test_debit_outstanding_and_sign(self):
        entry = make_debit(amount_cents=20000, paid_amount_cents=5000)

        assert entry.is_debit
        assert entry.outstanding_cents == 15000
        assert entry.signed_amount_cents == 20000

    def test_debit_adjustment_counts_as_debit(self):
        entry = make_debit(kind=EntryKind.DEBIT_ADJUSTMENT)

        assert entry.is_debit
        assert entry.signed_amount_cents == 10000

    def test_credit_entry_has_no_outstanding_and_negative_sign(self):
        entry = LedgerEntry(
            id=2, member_id=7, kind=EntryKind.CREDIT_PAYMENT, amount_cents=15000
        )

        assert not entry.is_debit
        assert entry.outstanding_cents == 0
        assert entry.signed_amount_cents == -15000
        assert entry.status is None


class TestPaidAmountTransition:
    def test_accepts_valid_increase(self):
        entry = make_debit(amount_cents=10000, paid_amount_cents=2000)

        entry.check_paid_amount_transition(10000, EntryStatus.FULLY_PAID)
        entry.check_paid_amount_transition(5000, EntryStatus.PARTIALLY_PAID)

    def test_rejects_decrease(self):
        entry = make_debit(amount_cents=10000, paid_amount_cents=5000)

        with pytest.raises(InvariantViolation, match="decrease"):
            entry.check_paid_amount_transition(4000, EntryStatus.PARTIALLY_PAID)

    def test_rejects_overflow_without_clamping(self):
        entry = make_debit(amount_cents=10000, paid_amount_cents=5000)

        with pytest.raises(InvariantViolation, match="exceed"):
            entry.check_paid_amount_transition(10001, EntryStatus.FULLY_PAID)

        assert entry.paid_amount_cents == 5000

    def test_rejects_status_mismatch(self):
        entry = make_debit(amount_cents=10000)

        with pytest.raises(InvariantViolation, match="does not match"):
            entry.check_paid_amount_transition(10000, EntryStatus.PARTIALLY_PAID)

    def test_rejects_credit_entries(self):
        entry = LedgerEntry(
            id=3, member_id=7, kind=EntryKind.CREDIT_EARNED, amount_cents=500
        )

        with pytest.raises(InvariantViolation) as exc_info:
            entry.check_paid_amount_transition(100, EntryStatus.PARTIALLY_PAID)

        assert exc_info.value.entry_id == 3
        assert exc_info.value.code == "INVARIANT_VIOLATION"
