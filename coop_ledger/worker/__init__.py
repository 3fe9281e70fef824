"""Background workers for the member credit ledger"""
from .credit_accrual import CreditAccrualWorker
from .balance_reconciler import BalanceReconcilerWorker

__all__ = ["CreditAccrualWorker", "BalanceReconcilerWorker"]
