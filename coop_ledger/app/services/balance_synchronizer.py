"""Balance Synchronizer

Re-derives a member's cached credit balance from the ledger.
"""

import logging
from coop_ledger.app.repositories.ledger_entry_repository import LedgerEntryRepository
from coop_ledger.app.repositories.member_repository import MemberRepository

logger = logging.getLogger(__name__)


class BalanceSynchronizer:
    """
    Sole writer of Member.credit_balance_cents

    recompute() always re-derives the balance with one aggregate query and
    never patches the cached value incrementally. It does not commit: callers
    run it as the last step of their own transaction so a reader can never see
    the ledger and the cached balance disagree. If it fails, the caller rolls
    back and the previous cached balance stays in place.
    """

    def __init__(self, member_repo: MemberRepository, entry_repo: LedgerEntryRepository):
        self.member_repo = member_repo
        self.entry_repo = entry_repo

    async def recompute(self, member_id: int) -> int:
        balance_cents = await self.entry_repo.sum_balance(member_id)
        await self.member_repo.update_balance(member_id, balance_cents)
        logger.debug(f"Synchronized balance of member {member_id}: {balance_cents} cents")
        return balance_cents
