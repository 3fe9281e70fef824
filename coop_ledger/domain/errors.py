"""Ledger integrity errors

These signal broken ledger invariants (conservation, paid amount bounds), not user input
problems. Use cases log them at CRITICAL and roll back; they are never clamped
or corrected silently.
"""


class LedgerError(Exception):
    code = "LEDGER_ERROR"


class InvariantViolation(LedgerError):
    code = "INVARIANT_VIOLATION"

    def __init__(self, message: str, entry_id: int | None = None):
        super().__init__(message)
        self.entry_id = entry_id


class LedgerExhausted(InvariantViolation):
    """FIFO walk ran out of outstanding debits with payment still remaining."""

    code = "LEDGER_EXHAUSTED"

    def __init__(self, member_id: int, remaining_cents: int):
        super().__init__(
            f"Outstanding debits of member {member_id} exhausted with "
            f"{remaining_cents} cents of payment unallocated"
        )
        self.member_id = member_id
        self.remaining_cents = remaining_cents
