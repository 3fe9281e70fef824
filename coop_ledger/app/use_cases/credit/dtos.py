"""Data Transfer Objects for Credit Use Cases

Pydantic models for command inputs and response outputs. Amounts cross this
boundary as Decimal with two fractional digits; everything behind it works in
integer cents.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, field_validator
from coop_ledger.domain.clock import as_naive_utc
from coop_ledger.domain.credit_terms import PenaltyType
from coop_ledger.domain.ledger_entry import LedgerEntry, EntryKind, EntryStatus
from coop_ledger.domain.money import from_cents
from coop_ledger.domain.payment_schedule import PaymentScheduleEntry, ScheduleStatus


class CreditTermsDTO(BaseModel):
    """Product credit terms attached to a credit purchase"""

    product_id: Optional[str] = Field(
        default=None,
        description="Product the terms come from"
    )

    due_days: int = Field(
        ...,
        ge=0,
        description="Days after the purchase before a penalty applies"
    )

    penalty_type: PenaltyType = Field(
        ...,
        description="Penalty computation (percentage, fixed)"
    )

    penalty_value: Decimal = Field(
        ...,
        ge=0,
        description="Percent of outstanding (percentage) or currency amount (fixed)"
    )


class RecordCreditPurchaseCommandDTO(BaseModel):
    """
    Command DTO for recording a purchase on credit

    Used as input to RecordCreditPurchase use case.
    """

    member_id: int = Field(
        ...,
        description="Member identifier"
    )

    amount: Decimal = Field(
        ...,
        gt=0,
        description="Purchase total charged to credit (must be > 0)"
    )

    related_purchase_id: Optional[str] = Field(
        default=None,
        description="Originating sale identifier"
    )

    notes: Optional[str] = Field(
        default=None,
        description="Human-readable description"
    )

    purchased_at: Optional[datetime] = Field(
        default=None,
        description="Purchase time (defaults to now)"
    )

    credit_terms: Optional[CreditTermsDTO] = Field(
        default=None,
        description="Product credit terms (due days and late penalty)"
    )

    installments: Optional[int] = Field(
        default=None,
        ge=1,
        description="Number of installments to schedule"
    )

    installment_interval_days: Optional[int] = Field(
        default=None,
        ge=1,
        description="Days between installments (defaults to configuration)"
    )

    @field_validator('purchased_at')
    @classmethod
    def validate_purchased_at(cls, v):
        return as_naive_utc(v)

    class Config:
        json_schema_extra = {
            "example": {
                "member_id": 42,
                "amount": "500.00",
                "related_purchase_id": "sale_1001",
                "credit_terms": {
                    "product_id": "rice_25kg",
                    "due_days": 30,
                    "penalty_type": "percentage",
                    "penalty_value": "10.00"
                },
                "installments": 2
            }
        }


class LedgerEntryDTO(BaseModel):
    """Ledger entry as seen by collaborators (statements, receipts)"""

    id: int = Field(..., description="Entry ID")
    member_id: int = Field(..., description="Owning member")
    kind: EntryKind = Field(..., description="Entry kind")
    amount: Decimal = Field(..., description="Face value")
    paid_amount: Decimal = Field(..., description="Amount paid against this entry (debits)")
    outstanding_amount: Decimal = Field(..., description="Unpaid remainder (debits)")
    status: Optional[EntryStatus] = Field(default=None, description="Settlement status (debits)")
    related_purchase_id: Optional[str] = Field(default=None, description="Originating sale")
    related_entry_id: Optional[int] = Field(default=None, description="Entry this one derives from")
    penalty_applied: bool = Field(default=False, description="Penalty already posted")
    notes: Optional[str] = Field(default=None, description="Description")
    timestamp: datetime = Field(..., description="Entry time")

    @classmethod
    def from_entity(cls, entry: LedgerEntry) -> "LedgerEntryDTO":
        return cls(
            id=entry.id,
            member_id=entry.member_id,
            kind=entry.kind,
            amount=from_cents(entry.amount_cents),
            paid_amount=from_cents(entry.paid_amount_cents),
            outstanding_amount=from_cents(entry.outstanding_cents),
            status=entry.status,
            related_purchase_id=entry.related_purchase_id,
            related_entry_id=entry.related_entry_id,
            penalty_applied=entry.penalty_applied,
            notes=entry.notes,
            timestamp=entry.timestamp,
        )


class ScheduleEntryDTO(BaseModel):
    """One installment of a payment schedule"""

    id: int = Field(..., description="Schedule ID")
    ledger_entry_id: Optional[int] = Field(default=None, description="Debit entry")
    related_purchase_id: Optional[str] = Field(default=None, description="Originating sale")
    amount: Decimal = Field(..., description="Installment amount")
    paid_amount: Decimal = Field(..., description="Amount paid")
    due_date: datetime = Field(..., description="Due date")
    status: ScheduleStatus = Field(..., description="pending, overdue or paid")
    installment_number: Optional[int] = Field(default=None, description="1-based installment number")
    total_installments: Optional[int] = Field(default=None, description="Installments of the purchase")
    late_fee_applied: bool = Field(default=False, description="Late fee already posted")

    @classmethod
    def from_entity(cls, schedule: PaymentScheduleEntry) -> "ScheduleEntryDTO":
        return cls(
            id=schedule.id,
            ledger_entry_id=schedule.ledger_entry_id,
            related_purchase_id=schedule.related_purchase_id,
            amount=from_cents(schedule.amount_cents),
            paid_amount=from_cents(schedule.paid_amount_cents),
            due_date=schedule.due_date,
            status=schedule.status,
            installment_number=schedule.installment_number,
            total_installments=schedule.total_installments,
            late_fee_applied=schedule.late_fee_applied,
        )


class CreditPurchaseResponseDTO(BaseModel):
    """Response DTO for RecordCreditPurchase"""

    entry: LedgerEntryDTO = Field(..., description="The debit_spent entry")
    schedule: list[ScheduleEntryDTO] = Field(default_factory=list, description="Installments created")
    balance: Decimal = Field(..., description="Member balance after the purchase")


class AllocatePaymentCommandDTO(BaseModel):
    """
    Command DTO for a member payment

    Used as input to AllocatePayment use case. With full=True the amount is
    ignored and the whole outstanding balance is paid.
    """

    member_id: int = Field(
        ...,
        description="Member identifier"
    )

    amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Payment amount (must be > 0 unless full is set)"
    )

    full: bool = Field(
        default=False,
        description="Pay the whole outstanding balance"
    )

    notes: Optional[str] = Field(
        default=None,
        description="Description stored on the payment entry"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "member_id": 42,
                "amount": "150.00",
                "full": False
            }
        }


class AllocationLineDTO(BaseModel):
    """Portion of a payment applied to one debit entry"""

    entry_id: int = Field(..., description="Debit entry paid")
    amount: Decimal = Field(..., description="Amount applied to the entry")
    related_purchase_id: Optional[str] = Field(default=None, description="Originating sale of the debit")
    paid_amount: Optional[Decimal] = Field(default=None, description="Entry paid amount after this payment")
    status: Optional[EntryStatus] = Field(default=None, description="Entry status after this payment")


class AllocatePaymentResponseDTO(BaseModel):
    """
    Response DTO for AllocatePayment

    outcome is "applied" when a payment entry was created, or
    "nothing_to_pay" when the member had no outstanding balance.
    """

    member_id: int = Field(..., description="Member identifier")
    outcome: str = Field(..., description="applied or nothing_to_pay")
    payment_entry_id: Optional[int] = Field(default=None, description="The credit_payment entry")
    requested: Decimal = Field(..., description="Requested amount (balance when full)")
    applied: Decimal = Field(..., description="Amount actually applied (<= requested)")
    capped: bool = Field(default=False, description="Requested amount exceeded the balance")
    allocations: list[AllocationLineDTO] = Field(default_factory=list, description="Per-debit allocations, FIFO order")
    new_balance: Decimal = Field(..., description="Member balance after the payment")
    message: Optional[str] = Field(default=None, description="Human-readable outcome")

    class Config:
        json_schema_extra = {
            "example": {
                "member_id": 42,
                "outcome": "applied",
                "payment_entry_id": 7,
                "requested": "150.00",
                "applied": "150.00",
                "capped": False,
                "allocations": [
                    {"entry_id": 1, "amount": "100.00", "paid_amount": "100.00", "status": "fully_paid"},
                    {"entry_id": 2, "amount": "50.00", "paid_amount": "50.00", "status": "partially_paid"}
                ],
                "new_balance": "150.00"
            }
        }


class PaymentAllocationsResponseDTO(BaseModel):
    """Allocation receipt of one payment"""

    payment_entry_id: int = Field(..., description="The credit_payment entry")
    member_id: int = Field(..., description="Member identifier")
    amount: Decimal = Field(..., description="Payment amount")
    timestamp: datetime = Field(..., description="Payment time")
    allocations: list[AllocationLineDTO] = Field(default_factory=list, description="Debits covered")


class PostAdjustmentCommandDTO(BaseModel):
    """
    Command DTO for a manual ledger correction

    Corrections are new entries: debit_adjustment raises the balance,
    credit_earned lowers it.
    """

    member_id: int = Field(..., description="Member identifier")

    kind: EntryKind = Field(
        ...,
        description="debit_adjustment or credit_earned"
    )

    amount: Decimal = Field(
        ...,
        gt=0,
        description="Adjustment amount (must be > 0)"
    )

    notes: str = Field(
        ...,
        min_length=1,
        description="Reason for the adjustment (required)"
    )

    related_entry_id: Optional[int] = Field(
        default=None,
        description="Entry being corrected"
    )


class AdjustmentResponseDTO(BaseModel):
    """Response DTO for PostAdjustment"""

    entry: LedgerEntryDTO = Field(..., description="The adjustment entry")
    balance: Decimal = Field(..., description="Member balance after the adjustment")


class BalanceResponseDTO(BaseModel):
    """
    Response DTO for get balance operation

    within_limit is only set when a prospective purchase amount is given.
    """

    member_id: int = Field(..., description="Member identifier")
    balance: Decimal = Field(..., description="Cached outstanding balance")
    credit_limit: Decimal = Field(..., description="Credit limit")
    available_credit: Decimal = Field(..., description="credit_limit - balance (may be negative)")
    prospective_amount: Optional[Decimal] = Field(default=None, description="Amount of the purchase being checked")
    within_limit: Optional[bool] = Field(default=None, description="balance + prospective_amount <= credit_limit")
    last_updated: datetime = Field(..., description="Timestamp of last balance update")


class RecomputeBalanceResponseDTO(BaseModel):
    """Response DTO for RecomputeBalance"""

    member_id: int = Field(..., description="Member identifier")
    previous_balance: Decimal = Field(..., description="Cached balance before the recompute")
    balance: Decimal = Field(..., description="Balance re-derived from the ledger")
    drift: Decimal = Field(..., description="balance - previous_balance")


class StatementLineDTO(LedgerEntryDTO):
    """Ledger entry with the running balance after it"""

    running_balance: Decimal = Field(..., description="Balance after this entry")


class MemberStatementDTO(BaseModel):
    """Member-facing credit statement"""

    member_id: int = Field(..., description="Member identifier")
    cached_balance: Decimal = Field(..., description="Balance stored on the member")
    ledger_balance: Decimal = Field(..., description="Balance derived from the entries below")
    total_outstanding: Decimal = Field(..., description="Sum of unpaid debit remainders")
    credit_limit: Decimal = Field(..., description="Credit limit")
    entries: list[StatementLineDTO] = Field(default_factory=list, description="Entries in FIFO order")
    schedule: list[ScheduleEntryDTO] = Field(default_factory=list, description="Installments")


class InterestResponseDTO(BaseModel):
    """Response DTO for CalculateInterest / AccrueInterest"""

    member_id: int = Field(..., description="Member identifier")
    interest_amount: Decimal = Field(..., description="Interest computed (0 if none)")
    balance: Decimal = Field(..., description="Balance the interest accrues on")
    days_outstanding: int = Field(
        default=0,
        description="Days charged: since the oldest qualifying debit, or since interest was last accrued"
    )
    accrued_through: Optional[datetime] = Field(
        default=None,
        description="End of the charged period (the member's new high-water mark once posted)"
    )
    monthly_rate: Decimal = Field(..., description="Monthly interest rate in percent")
    entry_id: Optional[int] = Field(default=None, description="Posted debit_adjustment entry")
    new_balance: Optional[Decimal] = Field(default=None, description="Balance after posting")


class PenaltyResultDTO(BaseModel):
    """
    Result of a single-entry penalty application

    outcome is "applied" or "skipped"; reason explains a skip
    (not_spent_entry, no_credit_terms, fully_paid, not_due, already_applied,
    zero_penalty).
    """

    entry_id: int = Field(..., description="Penalised debit_spent entry")
    outcome: str = Field(..., description="applied or skipped")
    reason: Optional[str] = Field(default=None, description="Why the penalty was skipped")
    penalty_amount: Decimal = Field(default=Decimal("0.00"), description="Penalty posted")
    penalty_entry_id: Optional[int] = Field(default=None, description="Posted debit_adjustment entry")
    due_date: Optional[datetime] = Field(default=None, description="Date after which the penalty applies")
    new_balance: Optional[Decimal] = Field(default=None, description="Member balance after posting")


class ProductPenaltiesResultDTO(BaseModel):
    """Summary of a batch penalty run"""

    candidates: int = Field(..., description="Entries examined")
    applied: int = Field(..., description="Penalties posted")
    skipped: int = Field(..., description="Entries skipped (not due, zero penalty, ...)")
    failed: int = Field(..., description="Entries whose transaction failed")
    total_penalty: Decimal = Field(..., description="Sum of penalties posted")
    run_at: datetime = Field(..., description="Reference time of the run")
    execution_time_ms: int = Field(..., description="Execution time in milliseconds")


class LateFeeResultDTO(BaseModel):
    """Outcome of ApplyLateFee for one installment"""

    schedule_id: int = Field(..., description="Installment examined")
    member_id: Optional[int] = Field(default=None, description="Owning member")
    outcome: str = Field(..., description="applied or skipped")
    reason: Optional[str] = Field(default=None, description="Why the fee was skipped")
    fee_amount: Decimal = Field(default=Decimal("0.00"), description="Fee posted")
    fee_entry_id: Optional[int] = Field(default=None, description="Posted debit_adjustment entry")
    new_balance: Optional[Decimal] = Field(default=None, description="Member balance after posting")


class LateFeesResultDTO(BaseModel):
    """Summary of a batch late-fee run"""

    candidates: int = Field(..., description="Overdue installments examined")
    applied: int = Field(..., description="Fees posted")
    skipped: int = Field(..., description="Installments skipped (paid meanwhile, zero fee, ...)")
    failed: int = Field(..., description="Installments whose transaction failed")
    total_fees: Decimal = Field(..., description="Sum of fees posted")
    run_at: datetime = Field(..., description="Reference time of the run")
    execution_time_ms: int = Field(..., description="Execution time in milliseconds")


class MarkOverdueResponseDTO(BaseModel):
    """Response DTO for MarkOverdueSchedules"""

    member_id: Optional[int] = Field(default=None, description="Member processed (None = all)")
    marked_overdue: int = Field(..., description="Installments transitioned to overdue")
    checked_at: datetime = Field(..., description="Reference time")


class BalanceDiscrepancyDTO(BaseModel):
    """A member whose cached balance differs from the ledger"""

    member_id: int = Field(..., description="Member identifier")
    cached_balance: Decimal = Field(..., description="Balance stored on the member")
    ledger_balance: Decimal = Field(..., description="Balance derived from the ledger")
    discrepancy: Decimal = Field(..., description="cached_balance - ledger_balance")


class ReconciliationResultDTO(BaseModel):
    """Result of a balance reconciliation run"""

    total_members_checked: int = Field(..., description="Members examined")
    discrepancies_found: int = Field(..., description="Members out of sync")
    discrepancies: list[BalanceDiscrepancyDTO] = Field(default_factory=list, description="Details")
    reconciliation_time: datetime = Field(..., description="Run start time")
    execution_time_ms: int = Field(..., description="Execution time in milliseconds")


class AccrualRunResultDTO(BaseModel):
    """Summary of one accrual worker cycle"""

    run_at: datetime = Field(..., description="Reference time of the run")
    marked_overdue: int = Field(default=0, description="Installments transitioned to overdue")
    late_fees: Optional[LateFeesResultDTO] = Field(default=None, description="Late-fee run summary")
    penalties: Optional[ProductPenaltiesResultDTO] = Field(default=None, description="Penalty run summary")
    interest_members: int = Field(default=0, description="Members charged interest")
    interest_failed: int = Field(default=0, description="Members whose interest accrual failed")
    total_interest: Decimal = Field(default=Decimal("0.00"), description="Sum of interest posted")
    execution_time_ms: int = Field(default=0, description="Execution time in milliseconds")
