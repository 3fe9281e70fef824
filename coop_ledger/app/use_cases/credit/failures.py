"""Failure classification shared by the credit use cases

Maps exceptions raised inside a use case transaction to typed Result errors.
The caller is responsible for rolling back before calling this.
"""

import logging
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from coop_ledger.domain.errors import InvariantViolation
from coop_ledger.libs.result import Error

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected, lock_not_available
RETRYABLE_SQLSTATES = {"40001", "40P01", "55P03"}


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_retryable(exc: Exception) -> bool:
    if isinstance(exc, OperationalError):
        return True
    return isinstance(exc, DBAPIError) and _sqlstate(exc) in RETRYABLE_SQLSTATES


def failure_from_exception(exc: Exception, code: str, message: str) -> Error:
    """
    Classify an exception raised inside an atomic unit

    Args:
        exc: The exception
        code: Error code for unexpected failures (e.g. ALLOCATE_PAYMENT_FAILED)
        message: Error message for unexpected failures

    Returns:
        Error with INVARIANT_VIOLATION / LEDGER_EXHAUSTED, TRANSACTION_CONFLICT
        or the given code
    """
    if isinstance(exc, InvariantViolation):
        logger.critical(f"Ledger integrity error ({exc.code}): {exc}")
        return Error(
            code=exc.code,
            message="Ledger integrity error, operation rolled back",
            reason=str(exc),
        )

    if is_retryable(exc):
        logger.warning(f"Transaction conflict, operation rolled back: {exc}")
        return Error(
            code="TRANSACTION_CONFLICT",
            message="Concurrent update conflict, safe to retry",
            reason=str(exc),
        )

    if isinstance(exc, IntegrityError):
        logger.critical(f"Database constraint rejected ledger write: {exc}")
        return Error(
            code="INVARIANT_VIOLATION",
            message="Ledger integrity error, operation rolled back",
            reason=str(exc),
        )

    logger.error(f"{message}: {exc}")
    return Error(code=code, message=message, reason=str(exc))
