from .unit_of_work import UnitOfWork
from .balance_synchronizer import BalanceSynchronizer

__all__ = [
    "UnitOfWork",
    "BalanceSynchronizer",
]
