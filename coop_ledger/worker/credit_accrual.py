"""Credit Accrual Background Worker

Daily job for the member credit ledger:
1. Marks unpaid installments past due as overdue
2. Charges late fees on overdue installments (when enabled)
3. Applies product credit penalties to lapsed purchases
4. Accrues interest on outstanding balances (when enabled)

Each late fee, penalty and interest posting runs in its own session and
transaction. Can be run as a standalone script or integrated with a scheduler.
"""

import asyncio
import logging
import time
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from coop_ledger.domain.clock import as_naive_utc, utcnow
from coop_ledger.adapter.repositories.member_repository import SqlAlchemyMemberRepository
from coop_ledger.adapter.repositories.ledger_entry_repository import SqlAlchemyLedgerEntryRepository
from coop_ledger.adapter.repositories.payment_schedule_repository import SqlAlchemyPaymentScheduleRepository
from coop_ledger.adapter.repositories.credit_terms_repository import SqlAlchemyCreditTermsRepository
from coop_ledger.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from coop_ledger.app.use_cases.credit import (
    AccrueInterest,
    ApplyLateFee,
    ApplyLateFees,
    ApplyPenaltyToCredit,
    ApplyProductPenalties,
    MarkOverdueSchedules,
    AccrualRunResultDTO,
    LateFeesResultDTO,
    ProductPenaltiesResultDTO,
)
from coop_ledger.domain.money import from_cents, to_cents

logger = logging.getLogger(__name__)


class CreditAccrualWorker:
    """
    Background worker for overdue schedules, penalties and interest

    Features:
    - Idempotent penalties: a purchase is penalised once (flag set in the
      same transaction as the penalty entry)
    - One failing member or entry does not abort the cycle
    - Idempotent late fees: one per overdue installment (flag on the schedule row)
    - Interest only when CREDIT_INTEREST_AUTO_ACCRUAL is enabled
    - Late fees only when LATE_FEES_ENABLED is set

    Usage:
        # Run once
        worker = CreditAccrualWorker()
        result = await worker.run_once()

        # Run continuously
        worker = CreditAccrualWorker()
        await worker.run_forever(interval_seconds=86400)  # Daily
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
        accrue_interest: Optional[bool] = None,
    ):
        """
        Initialize the worker

        Args:
            db_uri: Database URI (defaults to ApplicationConfig.DB_URI)
            accrue_interest: Override ApplicationConfig.CREDIT_INTEREST_AUTO_ACCRUAL
        """
        self.db_uri = db_uri or ApplicationConfig.DB_URI
        self.accrue_interest = (
            ApplicationConfig.CREDIT_INTEREST_AUTO_ACCRUAL
            if accrue_interest is None
            else accrue_interest
        )
        self.monthly_rate = Decimal(str(ApplicationConfig.CREDIT_INTEREST_MONTHLY_RATE))
        self.grace_period_days = ApplicationConfig.CREDIT_INTEREST_GRACE_PERIOD_DAYS
        self.late_fees_enabled = ApplicationConfig.LATE_FEES_ENABLED
        self.late_fee_amount = Decimal(str(ApplicationConfig.LATE_FEE_AMOUNT))
        self.late_fee_percentage = Decimal(str(ApplicationConfig.LATE_FEE_PERCENTAGE))

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

        logger.info("CreditAccrualWorker initialized")

    async def run_once(self, now: Optional[datetime] = None) -> AccrualRunResultDTO:
        """
        Run one accrual cycle

        Args:
            now: Reference time (defaults to now)

        Returns:
            AccrualRunResultDTO with the cycle summary
        """
        start_time = time.time()
        now = as_naive_utc(now) or utcnow()

        if not ApplicationConfig.ACCRUAL_ENABLED:
            logger.info("Credit accrual is disabled, skipping")
            return AccrualRunResultDTO(run_at=now)

        marked_overdue = await self._mark_overdue(now)
        late_fees = await self._apply_late_fees(now) if self.late_fees_enabled else None
        penalties = await self._apply_penalties(now)

        interest_members = interest_failed = 0
        total_interest_cents = 0
        if self.accrue_interest:
            interest_members, interest_failed, total_interest_cents = await self._accrue_interest(now)

        execution_time_ms = int((time.time() - start_time) * 1000)

        logger.info(
            f"Accrual cycle complete: {marked_overdue} installments overdue, "
            f"{late_fees.applied if late_fees else 0} late fees, "
            f"{penalties.applied if penalties else 0} penalties, "
            f"{interest_members} interest postings in {execution_time_ms}ms"
        )

        return AccrualRunResultDTO(
            run_at=now,
            marked_overdue=marked_overdue,
            late_fees=late_fees,
            penalties=penalties,
            interest_members=interest_members,
            interest_failed=interest_failed,
            total_interest=from_cents(total_interest_cents),
            execution_time_ms=execution_time_ms,
        )

    async def _mark_overdue(self, now: datetime) -> int:
        async with self.async_session_factory() as session:
            use_case = MarkOverdueSchedules(
                uow=SqlAlchemyUnitOfWork(session),
                schedule_repo=SqlAlchemyPaymentScheduleRepository(session),
            )
            result = await use_case.execute(now=now)

        if result.is_err():
            logger.error(f"Failed to mark overdue installments: {result.error.message}")
            return 0
        return result.value.marked_overdue

    async def _apply_late_fees(self, now: datetime) -> Optional[LateFeesResultDTO]:
        sessions = []

        def late_fee_factory() -> ApplyLateFee:
            session = self.async_session_factory()
            sessions.append(session)
            return ApplyLateFee(
                uow=SqlAlchemyUnitOfWork(session),
                member_repo=SqlAlchemyMemberRepository(session),
                entry_repo=SqlAlchemyLedgerEntryRepository(session),
                schedule_repo=SqlAlchemyPaymentScheduleRepository(session),
                fee_amount=self.late_fee_amount,
                fee_percentage=self.late_fee_percentage,
            )

        try:
            async with self.async_session_factory() as session:
                use_case = ApplyLateFees(
                    schedule_repo=SqlAlchemyPaymentScheduleRepository(session),
                    apply_late_fee_factory=late_fee_factory,
                )
                result = await use_case.execute(now=now)
        finally:
            for session in sessions:
                await session.close()

        if result.is_err():
            logger.error(f"Late-fee run failed: {result.error.message}")
            return None
        return result.value

    async def _apply_penalties(self, now: datetime) -> Optional[ProductPenaltiesResultDTO]:
        sessions = []

        def penalty_factory() -> ApplyPenaltyToCredit:
            # Fresh session per entry isolates each penalty transaction
            session = self.async_session_factory()
            sessions.append(session)
            return ApplyPenaltyToCredit(
                uow=SqlAlchemyUnitOfWork(session),
                member_repo=SqlAlchemyMemberRepository(session),
                entry_repo=SqlAlchemyLedgerEntryRepository(session),
                terms_repo=SqlAlchemyCreditTermsRepository(session),
            )

        try:
            async with self.async_session_factory() as session:
                use_case = ApplyProductPenalties(
                    entry_repo=SqlAlchemyLedgerEntryRepository(session),
                    apply_penalty_factory=penalty_factory,
                )
                result = await use_case.execute(now=now)
        finally:
            for session in sessions:
                await session.close()

        if result.is_err():
            logger.error(f"Penalty run failed: {result.error.message}")
            return None
        return result.value

    async def _accrue_interest(self, now: datetime) -> tuple[int, int, int]:
        async with self.async_session_factory() as session:
            members = await SqlAlchemyMemberRepository(session).get_all()

        charged = failed = 0
        total_cents = 0

        for member in members:
            if member.credit_balance_cents <= 0:
                continue

            async with self.async_session_factory() as member_session:
                use_case = AccrueInterest(
                    uow=SqlAlchemyUnitOfWork(member_session),
                    member_repo=SqlAlchemyMemberRepository(member_session),
                    entry_repo=SqlAlchemyLedgerEntryRepository(member_session),
                    monthly_rate=self.monthly_rate,
                    grace_period_days=self.grace_period_days,
                )
                result = await use_case.execute(member.id, now=now)

            if result.is_err():
                failed += 1
                logger.error(
                    f"Interest accrual failed for member {member.id}: {result.error.message}"
                )
            elif result.value.entry_id is not None:
                charged += 1
                total_cents += to_cents(result.value.interest_amount)

        return charged, failed, total_cents

    async def run_forever(self, interval_seconds: int = 86400):
        """
        Run accrual cycles continuously at specified interval

        Args:
            interval_seconds: Seconds between cycles (default: 24 hours)
        """
        logger.info(f"Starting continuous credit accrual with {interval_seconds}s interval")

        while True:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Accrual cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        """Cleanup resources"""
        await self.engine.dispose()
        logger.info("CreditAccrualWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        # Run once
        python -m coop_ledger.worker.credit_accrual --once

        # Run once including interest
        python -m coop_ledger.worker.credit_accrual --once --interest

        # Run continuously with custom interval (in seconds)
        python -m coop_ledger.worker.credit_accrual --interval 3600
    """
    import argparse

    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Credit Accrual Worker")
    parser.add_argument(
        "--once", action="store_true", help="Run once and exit"
    )
    parser.add_argument(
        "--interest", action="store_true", default=None,
        help="Accrue interest regardless of CREDIT_INTEREST_AUTO_ACCRUAL"
    )
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.ACCRUAL_INTERVAL_SECONDS,
        help="Interval between runs in seconds (default: 86400 = 24 hours)"
    )
    args = parser.parse_args()

    worker = CreditAccrualWorker(accrue_interest=args.interest)

    try:
        if args.once:
            result = await worker.run_once()
            print("Accrual complete:")
            print(f"  Installments marked overdue: {result.marked_overdue}")
            if result.late_fees:
                print(
                    f"  Late fees: {result.late_fees.applied} applied "
                    f"(total {result.late_fees.total_fees})"
                )
            if result.penalties:
                print(
                    f"  Penalties: {result.penalties.applied} applied, "
                    f"{result.penalties.skipped} skipped, {result.penalties.failed} failed "
                    f"(total {result.penalties.total_penalty})"
                )
            print(f"  Interest postings: {result.interest_members} (total {result.total_interest})")
            print(f"  Execution time: {result.execution_time_ms}ms")
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
