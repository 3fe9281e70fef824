"""Balance Reconciliation Background Worker

Periodically compares cached member balances with the ledger. With fix
enabled, drifted members are re-derived through RecomputeBalance.
Can be run as a standalone script or integrated with a scheduler.
"""

import asyncio
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from coop_ledger.domain.clock import utcnow
from coop_ledger.adapter.repositories.member_repository import SqlAlchemyMemberRepository
from coop_ledger.adapter.repositories.ledger_entry_repository import SqlAlchemyLedgerEntryRepository
from coop_ledger.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from coop_ledger.app.use_cases.credit import (
    ReconcileBalances,
    RecomputeBalance,
    ReconciliationResultDTO,
)

logger = logging.getLogger(__name__)


class BalanceReconcilerWorker:
    """
    Background worker for member balance reconciliation

    Features:
    - Compares cached balances against the ledger aggregate
    - Logs discrepancies for investigation
    - Optionally re-derives drifted balances (fix=True)
    - Can run once or continuously

    Usage:
        # Run once
        worker = BalanceReconcilerWorker()
        result = await worker.run_once()

        # Run continuously
        worker = BalanceReconcilerWorker(fix=True)
        await worker.run_forever(interval_seconds=86400)  # Daily
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
        fix: bool = False,
    ):
        """
        Initialize the worker

        Args:
            db_uri: Database URI (defaults to ApplicationConfig.DB_URI)
            fix: Re-derive the balance of members found out of sync
        """
        self.db_uri = db_uri or ApplicationConfig.DB_URI
        self.fix = fix

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

        logger.info("BalanceReconcilerWorker initialized")

    async def run_once(self) -> ReconciliationResultDTO:
        """
        Run reconciliation once

        Returns:
            ReconciliationResultDTO with reconciliation results

        Raises:
            RuntimeError: If the reconciliation use case fails
        """
        if not ApplicationConfig.RECONCILIATION_ENABLED:
            logger.info("Balance reconciliation is disabled, skipping")
            return ReconciliationResultDTO(
                total_members_checked=0,
                discrepancies_found=0,
                discrepancies=[],
                reconciliation_time=utcnow(),
                execution_time_ms=0,
            )

        async with self.async_session_factory() as session:
            use_case = ReconcileBalances(
                member_repo=SqlAlchemyMemberRepository(session),
                entry_repo=SqlAlchemyLedgerEntryRepository(session),
            )

            result = await use_case.execute()

            if result.is_err():
                logger.error(f"Reconciliation failed: {result.error.message}")
                raise RuntimeError(f"Reconciliation failed: {result.error.message}")

            response = result.value

            if response.discrepancies_found > 0:
                logger.error(
                    f"ALERT: {response.discrepancies_found} member balance discrepancies found!"
                )
                for d in response.discrepancies:
                    logger.error(
                        f"  - Member {d.member_id}: ledger={d.ledger_balance}, "
                        f"cached={d.cached_balance}, diff={d.discrepancy}"
                    )

        if self.fix and response.discrepancies:
            await self._fix(response)

        return response

    async def _fix(self, response: ReconciliationResultDTO) -> None:
        for d in response.discrepancies:
            async with self.async_session_factory() as session:
                use_case = RecomputeBalance(
                    uow=SqlAlchemyUnitOfWork(session),
                    member_repo=SqlAlchemyMemberRepository(session),
                    entry_repo=SqlAlchemyLedgerEntryRepository(session),
                )
                result = await use_case.execute(d.member_id)

            if result.is_err():
                logger.error(
                    f"Could not re-derive balance of member {d.member_id}: "
                    f"{result.error.message}"
                )
            else:
                logger.info(f"Re-derived balance of member {d.member_id}: {result.value.balance}")

    async def run_forever(self, interval_seconds: int = 86400):
        """
        Run reconciliation continuously at specified interval

        Args:
            interval_seconds: Seconds between reconciliation runs (default: 24 hours)
        """
        logger.info(
            f"Starting continuous balance reconciliation with {interval_seconds}s interval"
        )

        while True:
            try:
                result = await self.run_once()
                logger.info(
                    f"Reconciliation cycle complete. "
                    f"Checked {result.total_members_checked} members, "
                    f"found {result.discrepancies_found} discrepancies "
                    f"in {result.execution_time_ms}ms"
                )
            except Exception as e:
                logger.error(f"Reconciliation cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        """Cleanup resources"""
        await self.engine.dispose()
        logger.info("BalanceReconcilerWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        # Run once
        python -m coop_ledger.worker.balance_reconciler --once

        # Run once and re-derive drifted balances
        python -m coop_ledger.worker.balance_reconciler --once --fix

        # Run continuously with custom interval (in seconds)
        python -m coop_ledger.worker.balance_reconciler --interval 3600
    """
    import argparse

    logging.basicConfig(
        level=ApplicationConfig.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Balance Reconciliation Worker")
    parser.add_argument(
        "--once", action="store_true", help="Run once and exit"
    )
    parser.add_argument(
        "--fix", action="store_true", help="Re-derive balances found out of sync"
    )
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.RECONCILIATION_INTERVAL_SECONDS,
        help="Interval between runs in seconds (default: 86400 = 24 hours)"
    )
    args = parser.parse_args()

    worker = BalanceReconcilerWorker(fix=args.fix)

    try:
        if args.once:
            result = await worker.run_once()
            print("Reconciliation complete:")
            print(f"  Total members checked: {result.total_members_checked}")
            print(f"  Discrepancies found: {result.discrepancies_found}")
            print(f"  Execution time: {result.execution_time_ms}ms")
            if result.discrepancies:
                print("\nDiscrepancies:")
                for d in result.discrepancies:
                    print(
                        f"  - Member {d.member_id}: "
                        f"ledger={d.ledger_balance}, "
                        f"cached={d.cached_balance}, "
                        f"diff={d.discrepancy}"
                    )
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
