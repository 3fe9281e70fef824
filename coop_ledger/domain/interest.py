"""Daily compounding interest"""

from datetime import datetime
from decimal import Decimal
from coop_ledger.domain.money import round_cents

DAYS_PER_MONTH = Decimal(30)


def days_outstanding(since: datetime, now: datetime) -> int:
    """Whole days between ``since`` and ``now``, at least 1"""
    return max(1, (now - since).days)


def compound_interest_cents(balance_cents: int, monthly_rate: Decimal, days: int) -> int:
    """
    Interest on a balance compounded daily

    interest = balance * ((1 + monthly_rate / 100 / 30) ** days - 1)

    Args:
        balance_cents: Balance the interest accrues on
        monthly_rate: Monthly interest rate in percent (e.g. Decimal("3") for 3%)
        days: Days outstanding

    Returns:
        Interest rounded half-up to cents, floored at 0
    """
    if balance_cents <= 0 or days <= 0 or monthly_rate <= 0:
        return 0

    daily_rate = Decimal(monthly_rate) / Decimal(100) / DAYS_PER_MONTH
    factor = (Decimal(1) + daily_rate) ** days - Decimal(1)
    return max(0, round_cents(Decimal(balance_cents) * factor))
