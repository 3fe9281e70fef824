"""Member credit ledger use cases"""
from .record_credit_purchase import RecordCreditPurchase
from .allocate_payment import AllocatePayment
from .accrue_interest import CalculateInterest, AccrueInterest
from .apply_penalties import ApplyPenaltyToCredit, ApplyProductPenalties, SkipReason
from .apply_late_fees import ApplyLateFee, ApplyLateFees, LateFeeSkipReason
from .mark_overdue_schedules import MarkOverdueSchedules
from .post_adjustment import PostAdjustment
from .get_balance import GetBalance
from .recompute_balance import RecomputeBalance
from .get_member_statement import GetMemberStatement
from .get_payment_allocations import GetPaymentAllocations
from .reconcile_balances import ReconcileBalances
from .dtos import (
    CreditTermsDTO,
    RecordCreditPurchaseCommandDTO,
    CreditPurchaseResponseDTO,
    LedgerEntryDTO,
    ScheduleEntryDTO,
    AllocatePaymentCommandDTO,
    AllocatePaymentResponseDTO,
    AllocationLineDTO,
    PaymentAllocationsResponseDTO,
    PostAdjustmentCommandDTO,
    AdjustmentResponseDTO,
    BalanceResponseDTO,
    RecomputeBalanceResponseDTO,
    StatementLineDTO,
    MemberStatementDTO,
    InterestResponseDTO,
    PenaltyResultDTO,
    ProductPenaltiesResultDTO,
    LateFeeResultDTO,
    LateFeesResultDTO,
    MarkOverdueResponseDTO,
    BalanceDiscrepancyDTO,
    ReconciliationResultDTO,
    AccrualRunResultDTO,
)

__all__ = [
    "RecordCreditPurchase",
    "AllocatePayment",
    "CalculateInterest",
    "AccrueInterest",
    "ApplyPenaltyToCredit",
    "ApplyProductPenalties",
    "SkipReason",
    "ApplyLateFee",
    "ApplyLateFees",
    "LateFeeSkipReason",
    "MarkOverdueSchedules",
    "PostAdjustment",
    "GetBalance",
    "RecomputeBalance",
    "GetMemberStatement",
    "GetPaymentAllocations",
    "ReconcileBalances",
    "CreditTermsDTO",
    "RecordCreditPurchaseCommandDTO",
    "CreditPurchaseResponseDTO",
    "LedgerEntryDTO",
    "ScheduleEntryDTO",
    "AllocatePaymentCommandDTO",
    "AllocatePaymentResponseDTO",
    "AllocationLineDTO",
    "PaymentAllocationsResponseDTO",
    "PostAdjustmentCommandDTO",
    "AdjustmentResponseDTO",
    "BalanceResponseDTO",
    "RecomputeBalanceResponseDTO",
    "StatementLineDTO",
    "MemberStatementDTO",
    "InterestResponseDTO",
    "PenaltyResultDTO",
    "ProductPenaltiesResultDTO",
    "LateFeeResultDTO",
    "LateFeesResultDTO",
    "MarkOverdueResponseDTO",
    "BalanceDiscrepancyDTO",
    "ReconciliationResultDTO",
    "AccrualRunResultDTO",
]
