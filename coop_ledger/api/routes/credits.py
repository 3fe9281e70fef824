"""Credit API Routes

FastAPI routes for the member credit ledger: purchases, payments,
adjustments, accruals and read models.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from coop_ledger.api.schemas.credit_request import (
    CreditPurchaseRequestSchema,
    PaymentRequestSchema,
    AdjustmentRequestSchema,
    PenaltyTriggerRequestSchema,
    PenaltyRunRequestSchema,
    LateFeeRunRequestSchema,
)
from coop_ledger.app.use_cases.credit.dtos import (
    CreditTermsDTO,
    RecordCreditPurchaseCommandDTO,
    CreditPurchaseResponseDTO,
    AllocatePaymentCommandDTO,
    AllocatePaymentResponseDTO,
    PaymentAllocationsResponseDTO,
    PostAdjustmentCommandDTO,
    AdjustmentResponseDTO,
    BalanceResponseDTO,
    RecomputeBalanceResponseDTO,
    MemberStatementDTO,
    InterestResponseDTO,
    PenaltyResultDTO,
    ProductPenaltiesResultDTO,
    LateFeesResultDTO,
    MarkOverdueResponseDTO,
    ReconciliationResultDTO,
)
from coop_ledger.app.use_cases.credit.record_credit_purchase import RecordCreditPurchase
from coop_ledger.app.use_cases.credit.allocate_payment import AllocatePayment
from coop_ledger.app.use_cases.credit.get_payment_allocations import GetPaymentAllocations
from coop_ledger.app.use_cases.credit.post_adjustment import PostAdjustment
from coop_ledger.app.use_cases.credit.get_balance import GetBalance
from coop_ledger.app.use_cases.credit.recompute_balance import RecomputeBalance
from coop_ledger.app.use_cases.credit.get_member_statement import GetMemberStatement
from coop_ledger.app.use_cases.credit.accrue_interest import CalculateInterest, AccrueInterest
from coop_ledger.app.use_cases.credit.apply_penalties import ApplyPenaltyToCredit, ApplyProductPenalties
from coop_ledger.app.use_cases.credit.apply_late_fees import ApplyLateFee, ApplyLateFees
from coop_ledger.app.use_cases.credit.mark_overdue_schedules import MarkOverdueSchedules
from coop_ledger.app.use_cases.credit.reconcile_balances import ReconcileBalances
from coop_ledger.adapter.repositories import (
    SqlAlchemyMemberRepository,
    SqlAlchemyLedgerEntryRepository,
    SqlAlchemyPaymentAllocationRepository,
    SqlAlchemyPaymentScheduleRepository,
    SqlAlchemyCreditTermsRepository,
)
from coop_ledger.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from coop_ledger.depends import get_session
from coop_ledger.api.error import ClientError

router = APIRouter(prefix="/credit", tags=["Credit"])

ERROR_EXAMPLE = {
    "content": {
        "application/json": {
            "example": {"error": {"code": "MEMBER_NOT_FOUND", "message": "Member 42 not found"}}
        }
    }
}


def _raise_for(result):
    if result.is_err():
        raise ClientError.from_error(result.error)
    return result.value


def _interest_settings() -> tuple[Decimal, int]:
    return (
        Decimal(ApplicationConfig.CREDIT_INTEREST_MONTHLY_RATE),
        ApplicationConfig.CREDIT_INTEREST_GRACE_PERIOD_DAYS,
    )


def _penalty_use_case(session: AsyncSession) -> ApplyPenaltyToCredit:
    return ApplyPenaltyToCredit(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyMemberRepository(session),
        SqlAlchemyLedgerEntryRepository(session),
        SqlAlchemyCreditTermsRepository(session),
    )


def _late_fee_use_case(session: AsyncSession) -> ApplyLateFee:
    return ApplyLateFee(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyMemberRepository(session),
        SqlAlchemyLedgerEntryRepository(session),
        SqlAlchemyPaymentScheduleRepository(session),
        Decimal(ApplicationConfig.LATE_FEE_AMOUNT),
        Decimal(ApplicationConfig.LATE_FEE_PERCENTAGE),
    )


@router.post(
    "/purchases",
    response_model=CreditPurchaseResponseDTO,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"description": "Member not found", **ERROR_EXAMPLE}},
)
async def record_purchase(
    request: CreditPurchaseRequestSchema,
    session: AsyncSession = Depends(get_session)
):
    """
    Record a purchase on credit.

    Appends a debit_spent entry, stores the product credit terms snapshot and
    creates installment rows. The credit limit is checked by the caller
    (see GET /credit/members/{member_id}/balance).

    **Returns:**
    - 201: Purchase recorded
    - 404: Member not found
    - 400: Invalid request parameters
    """
    command = RecordCreditPurchaseCommandDTO(
        member_id=request.member_id,
        amount=request.amount,
        related_purchase_id=request.related_purchase_id,
        notes=request.notes,
        purchased_at=request.purchased_at,
        credit_terms=CreditTermsDTO(**request.credit_terms.model_dump()) if request.credit_terms else None,
        installments=request.installments,
        installment_interval_days=request.installment_interval_days,
    )

    use_case = RecordCreditPurchase(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyMemberRepository(session),
        SqlAlchemyLedgerEntryRepository(session),
        SqlAlchemyCreditTermsRepository(session),
        SqlAlchemyPaymentScheduleRepository(session),
        default_installment_interval_days=ApplicationConfig.DEFAULT_INSTALLMENT_INTERVAL_DAYS,
    )
    return _raise_for(await use_case.execute(command))


@router.post(
    "/payments",
    response_model=AllocatePaymentResponseDTO,
    status_code=status.HTTP_200_OK,
    responses={
        404: {"description": "Member not found", **ERROR_EXAMPLE},
        409: {"description": "Concurrent update, safe to retry"},
    },
)
async def make_payment(
    request: PaymentRequestSchema,
    session: AsyncSession = Depends(get_session)
):
    """
    Apply a member payment to outstanding debits, oldest first.

    **Request body:**
    - `member_id` (required): Member identifier
    - `amount`: Payment amount (required unless `full` is true)
    - `full`: Pay the whole outstanding balance
    - `notes` (optional): Description stored on the payment entry

    Amounts above the outstanding balance are capped; the response reports
    both `requested` and `applied`. A member with nothing outstanding gets
    `outcome="nothing_to_pay"` and no payment entry is created.

    **Returns:**
    - 200: Payment applied (or nothing to pay)
    - 404: Member not found
    - 409: Concurrent update conflict
    - 400: Invalid request parameters
    """
    command = AllocatePaymentCommandDTO(
        member_id=request.member_id,
        amount=request.amount or Decimal("0"),
        full=request.full,
        notes=request.notes,
    )

    use_case = AllocatePayment(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyMemberRepository(session),
        SqlAlchemyLedgerEntryRepository(session),
        SqlAlchemyPaymentAllocationRepository(session),
        SqlAlchemyPaymentScheduleRepository(session),
    )
    return _raise_for(await use_case.execute(command))


@router.get(
    "/payments/{payment_entry_id}/allocations",
    response_model=PaymentAllocationsResponseDTO,
)
async def get_payment_allocations(
    payment_entry_id: int,
    session: AsyncSession = Depends(get_session)
):
    """Allocation receipt of a payment: which debits it covered."""
    use_case = GetPaymentAllocations(
        SqlAlchemyLedgerEntryRepository(session),
        SqlAlchemyPaymentAllocationRepository(session),
    )
    return _raise_for(await use_case.execute(payment_entry_id))


@router.post(
    "/adjustments",
    response_model=AdjustmentResponseDTO,
    status_code=status.HTTP_201_CREATED,
)
async def post_adjustment(
    request: AdjustmentRequestSchema,
    session: AsyncSession = Depends(get_session)
):
    """
    Post a manual correction as a new entry.

    `debit_adjustment` raises the balance, `credit_earned` lowers it.
    Existing entries are never modified.
    """
    command = PostAdjustmentCommandDTO(
        member_id=request.member_id,
        kind=request.kind,
        amount=request.amount,
        notes=request.notes,
        related_entry_id=request.related_entry_id,
    )

    use_case = PostAdjustment(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyMemberRepository(session),
        SqlAlchemyLedgerEntryRepository(session),
    )
    return _raise_for(await use_case.execute(command))


@router.get(
    "/members/{member_id}/balance",
    response_model=BalanceResponseDTO,
    responses={404: {"description": "Member not found", **ERROR_EXAMPLE}},
)
async def get_balance(
    member_id: int,
    prospective_amount: Optional[Decimal] = Query(
        default=None, description="Amount of a purchase about to be charged to credit"
    ),
    session: AsyncSession = Depends(get_session)
):
    """
    Get the cached balance, credit limit and available credit of a member.

    With `prospective_amount`, `within_limit` tells the POS whether the
    purchase fits under the credit limit.
    """
    use_case = GetBalance(SqlAlchemyMemberRepository(session))
    return _raise_for(await use_case.execute(member_id, prospective_amount))


@router.post(
    "/members/{member_id}/recompute",
    response_model=RecomputeBalanceResponseDTO,
)
async def recompute_balance(
    member_id: int,
    session: AsyncSession = Depends(get_session)
):
    """Re-derive the cached balance of a member from the ledger."""
    use_case = RecomputeBalance(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyMemberRepository(session),
        SqlAlchemyLedgerEntryRepository(session),
    )
    return _raise_for(await use_case.execute(member_id))


@router.get(
    "/members/{member_id}/statement",
    response_model=MemberStatementDTO,
)
async def get_statement(
    member_id: int,
    session: AsyncSession = Depends(get_session)
):
    """Ledger entries with running balance, outstanding amounts and installments."""
    use_case = GetMemberStatement(
        SqlAlchemyMemberRepository(session),
        SqlAlchemyLedgerEntryRepository(session),
        SqlAlchemyPaymentScheduleRepository(session),
    )
    return _raise_for(await use_case.execute(member_id))


@router.get(
    "/members/{member_id}/interest",
    response_model=InterestResponseDTO,
)
async def preview_interest(
    member_id: int,
    now: Optional[datetime] = Query(default=None, description="Reference time"),
    session: AsyncSession = Depends(get_session)
):
    """Interest the member would be charged now. Nothing is posted."""
    monthly_rate, grace_days = _interest_settings()
    use_case = CalculateInterest(
        SqlAlchemyMemberRepository(session),
        SqlAlchemyLedgerEntryRepository(session),
        monthly_rate,
        grace_days,
    )
    return _raise_for(await use_case.execute(member_id, now=now))


@router.post(
    "/members/{member_id}/interest",
    response_model=InterestResponseDTO,
)
async def accrue_interest(
    member_id: int,
    now: Optional[datetime] = Query(default=None, description="Reference time"),
    session: AsyncSession = Depends(get_session)
):
    """Post accrued interest as a debit_adjustment entry."""
    monthly_rate, grace_days = _interest_settings()
    use_case = AccrueInterest(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyMemberRepository(session),
        SqlAlchemyLedgerEntryRepository(session),
        monthly_rate,
        grace_days,
    )
    return _raise_for(await use_case.execute(member_id, now=now))


@router.post(
    "/members/{member_id}/schedules/mark-overdue",
    response_model=MarkOverdueResponseDTO,
)
async def mark_member_overdue(
    member_id: int,
    session: AsyncSession = Depends(get_session)
):
    """Flag the member's unpaid installments that passed their due date."""
    use_case = MarkOverdueSchedules(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyPaymentScheduleRepository(session),
    )
    return _raise_for(await use_case.execute(member_id))


@router.post(
    "/schedules/mark-overdue",
    response_model=MarkOverdueResponseDTO,
)
async def mark_all_overdue(session: AsyncSession = Depends(get_session)):
    """Flag unpaid installments past due for every member."""
    use_case = MarkOverdueSchedules(
        SqlAlchemyUnitOfWork(session),
        SqlAlchemyPaymentScheduleRepository(session),
    )
    return _raise_for(await use_case.execute())


@router.post(
    "/penalties/trigger",
    response_model=PenaltyResultDTO,
    responses={404: {"description": "Entry not found"}},
)
async def trigger_penalty(
    request: PenaltyTriggerRequestSchema,
    session: AsyncSession = Depends(get_session)
):
    """
    Apply the late penalty of one credit purchase.

    Skipped penalties (not due, already applied, fully paid, ...) return 200
    with `outcome="skipped"` and a `reason`. `force` re-applies a penalty that
    was already posted.
    """
    use_case = _penalty_use_case(session)
    return _raise_for(
        await use_case.execute(request.entry_id, now=request.now, force=request.force)
    )


@router.post(
    "/penalties/run",
    response_model=ProductPenaltiesResultDTO,
)
async def run_penalties(
    request: Optional[PenaltyRunRequestSchema] = None,
    session: AsyncSession = Depends(get_session)
):
    """Batch penalty run over every unpenalised credit purchase."""
    use_case = ApplyProductPenalties(
        SqlAlchemyLedgerEntryRepository(session),
        lambda: _penalty_use_case(session),
    )
    return _raise_for(await use_case.execute(now=request.now if request else None))


@router.post(
    "/late-fees/run",
    response_model=LateFeesResultDTO,
)
async def run_late_fees(
    request: Optional[LateFeeRunRequestSchema] = None,
    session: AsyncSession = Depends(get_session)
):
    """
    Charge the late fee of every overdue installment that has none yet.

    Installments are flagged overdue by the mark-overdue endpoints or the
    accrual worker; this run does not change schedule status.
    """
    use_case = ApplyLateFees(
        SqlAlchemyPaymentScheduleRepository(session),
        lambda: _late_fee_use_case(session),
    )
    return _raise_for(
        await use_case.execute(
            member_id=request.member_id if request else None,
            now=request.now if request else None,
        )
    )


@router.get(
    "/reconciliation",
    response_model=ReconciliationResultDTO,
)
async def reconcile(session: AsyncSession = Depends(get_session)):
    """Compare cached balances with the ledger (read only)."""
    use_case = ReconcileBalances(
        SqlAlchemyMemberRepository(session),
        SqlAlchemyLedgerEntryRepository(session),
    )
    return _raise_for(await use_case.execute())
