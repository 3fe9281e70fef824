"""API error types

Use case errors are raised as ClientError from route handlers and rendered by
the handlers registered in create_app as ``{"error": {"code", "message"}}``.
"""

from fastapi import status
from coop_ledger.libs.result import Error

# Error codes whose HTTP status differs from the 400 default
ERROR_STATUS_CODES = {
    "MEMBER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "ENTRY_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PAYMENT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "SCHEDULE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "TRANSACTION_CONFLICT": status.HTTP_409_CONFLICT,
    "INVARIANT_VIOLATION": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "LEDGER_EXHAUSTED": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class ClientError(Exception):
    def __init__(self, error: Error, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(error.message)
        self.error = error
        self.status_code = status_code

    @classmethod
    def from_error(cls, error: Error) -> "ClientError":
        return cls(error, status_code=ERROR_STATUS_CODES.get(error.code, status.HTTP_400_BAD_REQUEST))
