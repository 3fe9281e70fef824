"""Unit tests for BalanceReconcilerWorker

Tests cover:
- Worker initialization with configuration
- run_once execution with reconciliation
- Reconciliation disabled scenario
- Re-deriving drifted balances with fix enabled
- Error handling
"""

import pytest
from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

from coop_ledger.worker.balance_reconciler import BalanceReconcilerWorker
from coop_ledger.app.use_cases.credit.dtos import (
    BalanceDiscrepancyDTO,
    ReconciliationResultDTO,
    RecomputeBalanceResponseDTO,
)
from coop_ledger.libs.result import Return, Error

MODULE = "coop_ledger.worker.balance_reconciler"


def session_factory():
    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=session)


@pytest.fixture
def discrepancy_result():
    return ReconciliationResultDTO(
        total_members_checked=5,
        discrepancies_found=2,
        discrepancies=[
            BalanceDiscrepancyDTO(
                member_id=1,
                cached_balance=Decimal("120.00"),
                ledger_balance=Decimal("100.00"),
                discrepancy=Decimal("20.00"),
            ),
            BalanceDiscrepancyDTO(
                member_id=4,
                cached_balance=Decimal("0.00"),
                ledger_balance=Decimal("15.00"),
                discrepancy=Decimal("-15.00"),
            ),
        ],
        reconciliation_time=datetime.utcnow(),
        execution_time_ms=40,
    )


@patch(f"{MODULE}.ApplicationConfig")
@patch(f"{MODULE}.create_async_engine")
def test_initializes_with_custom_db_uri(mock_create_engine, mock_app_config):
    """
    Given: Custom DB URI provided
    When: Worker is initialized
    Then: Uses custom DB URI instead of ApplicationConfig
    """
    mock_app_config.DB_URI = "sqlite+aiosqlite:///default.db"
    mock_create_engine.return_value = MagicMock()

    worker = BalanceReconcilerWorker(db_uri="sqlite+aiosqlite:///custom.db")

    assert worker.db_uri == "sqlite+aiosqlite:///custom.db"
    assert worker.fix is False
    mock_create_engine.assert_called_once()


@pytest.mark.asyncio
class TestBalanceReconcilerWorkerRunOnce:
    @patch(f"{MODULE}.ApplicationConfig")
    @patch(f"{MODULE}.create_async_engine")
    async def test_skips_when_disabled(self, mock_create_engine, mock_app_config):
        mock_app_config.DB_URI = "sqlite+aiosqlite:///test.db"
        mock_app_config.RECONCILIATION_ENABLED = False
        mock_create_engine.return_value = MagicMock()

        result = await BalanceReconcilerWorker().run_once()

        assert result.total_members_checked == 0
        assert result.discrepancies_found == 0

    @patch(f"{MODULE}.ApplicationConfig")
    @patch(f"{MODULE}.RecomputeBalance")
    @patch(f"{MODULE}.ReconcileBalances")
    @patch(f"{MODULE}.SqlAlchemyUnitOfWork")
    @patch(f"{MODULE}.SqlAlchemyMemberRepository")
    @patch(f"{MODULE}.SqlAlchemyLedgerEntryRepository")
    @patch(f"{MODULE}.create_async_engine")
    @patch(f"{MODULE}.sessionmaker")
    async def test_reports_without_fixing_by_default(
        self,
        mock_sessionmaker,
        mock_create_engine,
        mock_entry_repo_class,
        mock_member_repo_class,
        mock_uow_class,
        mock_reconcile_class,
        mock_recompute_class,
        mock_app_config,
        discrepancy_result,
    ):
        mock_app_config.RECONCILIATION_ENABLED = True
        mock_sessionmaker.return_value = session_factory()
        mock_reconcile_class.return_value.execute = AsyncMock(
            return_value=Return.ok(discrepancy_result)
        )

        result = await BalanceReconcilerWorker().run_once()

        assert result.discrepancies_found == 2
        mock_recompute_class.assert_not_called()

    @patch(f"{MODULE}.ApplicationConfig")
    @patch(f"{MODULE}.RecomputeBalance")
    @patch(f"{MODULE}.ReconcileBalances")
    @patch(f"{MODULE}.SqlAlchemyUnitOfWork")
    @patch(f"{MODULE}.SqlAlchemyMemberRepository")
    @patch(f"{MODULE}.SqlAlchemyLedgerEntryRepository")
    @patch(f"{MODULE}.create_async_engine")
    @patch(f"{MODULE}.sessionmaker")
    async def test_fix_recomputes_each_drifted_member(
        self,
        mock_sessionmaker,
        mock_create_engine,
        mock_entry_repo_class,
        mock_member_repo_class,
        mock_uow_class,
        mock_reconcile_class,
        mock_recompute_class,
        mock_app_config,
        discrepancy_result,
    ):
        """
        Given: Two members out of sync and fix enabled
        When: run_once completes
        Then: RecomputeBalance runs once per drifted member
        """
        mock_app_config.RECONCILIATION_ENABLED = True
        mock_sessionmaker.return_value = session_factory()
        mock_reconcile_class.return_value.execute = AsyncMock(
            return_value=Return.ok(discrepancy_result)
        )
        recompute = MagicMock()
        recompute.execute = AsyncMock(return_value=Return.ok(
            RecomputeBalanceResponseDTO(
                member_id=1,
                previous_balance=Decimal("120.00"),
                balance=Decimal("100.00"),
                drift=Decimal("-20.00"),
            )
        ))
        mock_recompute_class.return_value = recompute

        await BalanceReconcilerWorker(fix=True).run_once()

        assert [c.args[0] for c in recompute.execute.call_args_list] == [1, 4]

    @patch(f"{MODULE}.ApplicationConfig")
    @patch(f"{MODULE}.ReconcileBalances")
    @patch(f"{MODULE}.SqlAlchemyMemberRepository")
    @patch(f"{MODULE}.SqlAlchemyLedgerEntryRepository")
    @patch(f"{MODULE}.create_async_engine")
    @patch(f"{MODULE}.sessionmaker")
    async def test_raises_on_use_case_error(
        self,
        mock_sessionmaker,
        mock_create_engine,
        mock_entry_repo_class,
        mock_member_repo_class,
        mock_reconcile_class,
        mock_app_config,
    ):
        mock_app_config.RECONCILIATION_ENABLED = True
        mock_sessionmaker.return_value = session_factory()
        mock_reconcile_class.return_value.execute = AsyncMock(
            return_value=Return.err(Error(code="RECONCILIATION_FAILED", message="db down"))
        )

        with pytest.raises(RuntimeError, match="Reconciliation failed"):
            await BalanceReconcilerWorker().run_once()

    @patch(f"{MODULE}.ApplicationConfig")
    @patch(f"{MODULE}.create_async_engine")
    async def test_shutdown_disposes_engine(self, mock_create_engine, mock_app_config):
        engine = MagicMock()
        engine.dispose = AsyncMock()
        mock_create_engine.return_value = engine

        await BalanceReconcilerWorker().shutdown()

        engine.dispose.assert_called_once()
