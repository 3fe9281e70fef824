"""Ledger Entry Repository Interface

Defines the contract of the ledger store.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, Sequence
from coop_ledger.domain.ledger_entry import LedgerEntry, EntryKind, EntryStatus


class LedgerEntryRepository(ABC):
    """
    Repository interface for LedgerEntry persistence

    Entries are appended once and never deleted. Only paid_amount_cents,
    status and penalty_applied may change afterwards, and only through
    mutate_paid_amount / mark_penalty_applied.
    """

    @abstractmethod
    async def append(self, entry: LedgerEntry) -> LedgerEntry:
        """
        Append a new ledger entry

        Args:
            entry: LedgerEntry to persist

        Returns:
            Created LedgerEntry with generated ID
        """
        pass

    @abstractmethod
    async def get_by_id(self, entry_id: int, for_update: bool = False) -> Optional[LedgerEntry]:
        """
        Retrieve entry by ID

        Args:
            entry_id: Entry ID
            for_update: If True, lock the row with SELECT FOR UPDATE

        Returns:
            LedgerEntry if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_outstanding_debits(
        self, member_id: int, for_update: bool = False
    ) -> list[LedgerEntry]:
        """
        List debit entries that are not fully paid, oldest first

        Ordered by (timestamp, id) ascending. This is the FIFO order used for
        payment allocation.

        Args:
            member_id: Member ID
            for_update: If True, lock the returned rows

        Returns:
            Outstanding debit_spent and debit_adjustment entries
        """
        pass

    @abstractmethod
    async def mutate_paid_amount(
        self, entry: LedgerEntry, new_paid_amount_cents: int, new_status: EntryStatus
    ) -> None:
        """
        Update the paid amount and status of a debit entry

        Must run inside the same transaction as the dependent balance recompute.

        Raises:
            InvariantViolation: If the paid amount would decrease, exceed the
                entry amount, or the status does not match
        """
        pass

    @abstractmethod
    async def mark_penalty_applied(self, entry: LedgerEntry) -> None:
        """
        Set penalty_applied on a debit_spent entry

        Raises:
            InvariantViolation: If the entry is not a debit_spent entry
        """
        pass

    @abstractmethod
    async def sum_balance(self, member_id: int) -> int:
        """
        Aggregate balance of a member in one query

        Returns:
            sum(debit amounts) - sum(credit amounts), in cents
        """
        pass

    @abstractmethod
    async def list_by_member(self, member_id: int) -> list[LedgerEntry]:
        """
        List all entries of a member in (timestamp, id) order

        Returns:
            List of LedgerEntry
        """
        pass

    @abstractmethod
    async def get_oldest_outstanding_debit(
        self,
        member_id: int,
        older_than: datetime,
        kinds: Sequence[EntryKind],
    ) -> Optional[LedgerEntry]:
        """
        Oldest not fully paid debit created at or before a cutoff

        Args:
            member_id: Member ID
            older_than: Cutoff timestamp (inclusive)
            kinds: Debit kinds to consider

        Returns:
            LedgerEntry if any, None otherwise
        """
        pass

    @abstractmethod
    async def list_penalty_candidate_ids(self) -> list[int]:
        """
        IDs of outstanding debit_spent entries that carry credit terms and
        have no penalty applied yet, in (timestamp, id) order

        Returns:
            List of entry IDs
        """
        pass
