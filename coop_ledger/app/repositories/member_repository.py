"""Member Repository Interface

Defines the contract for member persistence operations.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from coop_ledger.domain.member import Member


class MemberRepository(ABC):
    """
    Repository interface for Member persistence

    The member row is the per-member serialization point: operations that
    walk or extend a member's ledger lock it with SELECT FOR UPDATE first.
    """

    @abstractmethod
    async def get_by_id(self, member_id: int, for_update: bool = False) -> Optional[Member]:
        """
        Retrieve member by ID

        Args:
            member_id: Member ID
            for_update: If True, lock the row with SELECT FOR UPDATE (pessimistic lock)

        Returns:
            Member if found, None otherwise
        """
        pass

    @abstractmethod
    async def create(self, member: Member) -> Member:
        """
        Create a new member

        Args:
            member: Member entity to persist

        Returns:
            Created Member with generated ID
        """
        pass

    @abstractmethod
    async def update_balance(self, member_id: int, balance_cents: int) -> None:
        """
        Write the cached credit balance

        Args:
            member_id: Member ID
            balance_cents: Balance re-derived from the ledger
        """
        pass

    @abstractmethod
    async def mark_interest_accrued(self, member_id: int, through: datetime) -> None:
        """
        Advance the interest high-water mark

        Args:
            member_id: Member ID (already locked by the caller)
            through: End of the last day interest was posted for
        """
        pass

    @abstractmethod
    async def get_all(self) -> list[Member]:
        """
        Retrieve all members

        Returns:
            List of all members
        """
        pass
