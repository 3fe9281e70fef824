"""Get Balance Use Case

Retrieves a member's cached credit balance and credit limit headroom.
"""

from decimal import Decimal
from typing import Optional
from coop_ledger.libs.result import Result, Return, Error
from coop_ledger.app.repositories.member_repository import MemberRepository
from coop_ledger.app.use_cases.credit.dtos import BalanceResponseDTO
from coop_ledger.domain.money import from_cents, to_cents


class GetBalance:
    """
    Get Balance Use Case

    Read-only operation used by the POS before a credit checkout. The ledger
    does not enforce the credit limit; it only reports whether a prospective
    purchase would stay within it.
    """

    def __init__(self, member_repo: MemberRepository):
        """
        Initialize GetBalance use case

        Args:
            member_repo: Repository for accessing members
        """
        self.member_repo = member_repo

    async def execute(
        self, member_id: int, prospective_amount: Optional[Decimal] = None
    ) -> Result[BalanceResponseDTO]:
        """
        Execute get balance operation

        Args:
            member_id: The member identifier
            prospective_amount: Amount of a purchase about to be charged

        Returns:
            Result[BalanceResponseDTO]: Success with balance data or error

        Errors:
            MEMBER_NOT_FOUND: Unknown member
            INVALID_AMOUNT: Negative prospective amount
        """
        if prospective_amount is not None and prospective_amount < 0:
            return Return.err(
                Error(
                    code="INVALID_AMOUNT",
                    message="Prospective amount cannot be negative",
                    reason=f"prospective_amount={prospective_amount}",
                )
            )

        member = await self.member_repo.get_by_id(member_id)

        if not member:
            return Return.err(
                Error(
                    code="MEMBER_NOT_FOUND",
                    message=f"Member {member_id} not found",
                )
            )

        within_limit = None
        if prospective_amount is not None:
            within_limit = (
                member.credit_balance_cents + to_cents(prospective_amount)
                <= member.credit_limit_cents
            )

        return Return.ok(
            BalanceResponseDTO(
                member_id=member.id,
                balance=from_cents(member.credit_balance_cents),
                credit_limit=from_cents(member.credit_limit_cents),
                available_credit=from_cents(
                    member.credit_limit_cents - member.credit_balance_cents
                ),
                prospective_amount=prospective_amount,
                within_limit=within_limit,
                last_updated=member.updated_at,
            )
        )
