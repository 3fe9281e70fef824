"""Request schemas for Credit API

Pydantic models for validating incoming HTTP requests.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, field_validator
from coop_ledger.domain.clock import as_naive_utc
from coop_ledger.domain.credit_terms import PenaltyType
from coop_ledger.domain.ledger_entry import EntryKind


def _check_cents(v: Decimal) -> Decimal:
    if v is not None and v != v.quantize(Decimal("0.01")):
        raise ValueError("Amount cannot have more than 2 decimal places")
    return v


class CreditTermsSchema(BaseModel):
    product_id: Optional[str] = Field(default=None, description="Product the terms come from")
    due_days: int = Field(..., ge=0, description="Days after the purchase before a penalty applies")
    penalty_type: PenaltyType = Field(..., description="percentage or fixed")
    penalty_value: Decimal = Field(..., ge=0, description="Percent (percentage) or amount (fixed)")


class CreditPurchaseRequestSchema(BaseModel):
    """
    Request schema for recording a credit purchase

    Used for POST /credit/purchases endpoint.
    """

    member_id: int = Field(..., description="Member identifier")

    amount: Decimal = Field(
        ...,
        gt=0,
        description="Purchase total charged to credit (must be > 0)"
    )

    related_purchase_id: Optional[str] = Field(
        default=None,
        description="Originating sale identifier"
    )

    notes: Optional[str] = Field(default=None, description="Description")

    purchased_at: Optional[datetime] = Field(
        default=None,
        description="Purchase time (defaults to now)"
    )

    credit_terms: Optional[CreditTermsSchema] = Field(
        default=None,
        description="Product credit terms"
    )

    installments: Optional[int] = Field(
        default=None,
        ge=1,
        le=120,
        description="Number of installments"
    )

    installment_interval_days: Optional[int] = Field(
        default=None,
        ge=1,
        description="Days between installments"
    )

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        """Ensure amount is positive and has at most cent precision"""
        if v <= 0:
            raise ValueError("Amount must be greater than 0")
        return _check_cents(v)

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
                }
            }
        }


class PaymentRequestSchema(BaseModel):
    """
    Request schema for a member payment

    Used for POST /credit/payments endpoint. Either a positive amount or
    full=true is required.
    """

    member_id: int = Field(..., description="Member identifier")

    amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Payment amount"
    )

    full: bool = Field(default=False, description="Pay the whole outstanding balance")

    notes: Optional[str] = Field(default=None, description="Description")

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        """Ensure amount has at most cent precision"""
        return _check_cents(v)

    class Config:
        json_schema_extra = {
            "example": {
                "member_id": 42,
                "amount": "150.00"
            }
        }


class AdjustmentRequestSchema(BaseModel):
    """
    Request schema for a manual ledger adjustment

    Used for POST /credit/adjustments endpoint.
    """

    member_id: int = Field(..., description="Member identifier")

    kind: EntryKind = Field(..., description="debit_adjustment or credit_earned")

    amount: Decimal = Field(..., gt=0, description="Adjustment amount (must be > 0)")

    notes: str = Field(..., min_length=1, description="Reason for the adjustment")

    related_entry_id: Optional[int] = Field(default=None, description="Entry being corrected")

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        return _check_cents(v)

    @field_validator('kind')
    @classmethod
    def validate_kind(cls, v):
        """Only adjustment kinds can be posted manually"""
        if v not in (EntryKind.DEBIT_ADJUSTMENT, EntryKind.CREDIT_EARNED):
            raise ValueError("kind must be debit_adjustment or credit_earned")
        return v


class PenaltyTriggerRequestSchema(BaseModel):
    """Request schema for POST /credit/penalties/trigger"""

    entry_id: int = Field(..., description="debit_spent entry to penalise")
    force: bool = Field(default=False, description="Re-apply even if already penalised")
    now: Optional[datetime] = Field(default=None, description="Reference time (defaults to now)")

    @field_validator('now')
    @classmethod
    def validate_now(cls, v):
        """Offsets are converted to naive UTC, the form stored timestamps use"""
        return as_naive_utc(v)


class PenaltyRunRequestSchema(BaseModel):
    """Request schema for POST /credit/penalties/run"""

    now: Optional[datetime] = Field(default=None, description="Reference time (defaults to now)")

    @field_validator('now')
    @classmethod
    def validate_now(cls, v):
        return as_naive_utc(v)


class LateFeeRunRequestSchema(BaseModel):
    """Request schema for POST /credit/late-fees/run"""

    member_id: Optional[int] = Field(default=None, description="Restrict to one member")
    now: Optional[datetime] = Field(default=None, description="Reference time (defaults to now)")

    @field_validator('now')
    @classmethod
    def validate_now(cls, v):
        return as_naive_utc(v)
