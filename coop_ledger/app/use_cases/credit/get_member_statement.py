"""Get Member Statement Use Case

Ledger history of a member with running balance, outstanding amounts and
installments.
"""

from coop_ledger.libs.result import Result, Return, Error
from coop_ledger.app.repositories.member_repository import MemberRepository
from coop_ledger.app.repositories.ledger_entry_repository import LedgerEntryRepository
from coop_ledger.app.repositories.payment_schedule_repository import PaymentScheduleRepository
from coop_ledger.domain.money import from_cents
from .dtos import MemberStatementDTO, StatementLineDTO, LedgerEntryDTO, ScheduleEntryDTO


class GetMemberStatement:
    """
    Read-only member statement

    Entries are listed in FIFO order. ledger_balance is the running balance
    after the last entry; it differs from cached_balance only if the cache
    drifted (see ReconcileBalances).
    """

    def __init__(
        self,
        member_repo: MemberRepository,
        entry_repo: LedgerEntryRepository,
        schedule_repo: PaymentScheduleRepository,
    ):
        self.member_repo = member_repo
        self.entry_repo = entry_repo
        self.schedule_repo = schedule_repo

    async def execute(self, member_id: int) -> Result[MemberStatementDTO]:
        try:
            member = await self.member_repo.get_by_id(member_id)
            if not member:
                return Return.err(
                    Error(code="MEMBER_NOT_FOUND", message=f"Member {member_id} not found")
                )

            entries = await self.entry_repo.list_by_member(member.id)
            schedule = await self.schedule_repo.list_by_member(member.id)

            running_cents = 0
            outstanding_cents = 0
            lines = []
            for entry in entries:
                running_cents += entry.signed_amount_cents
                outstanding_cents += entry.outstanding_cents
                lines.append(
                    StatementLineDTO(
                        **LedgerEntryDTO.from_entity(entry).model_dump(),
                        running_balance=from_cents(running_cents),
                    )
                )

            return Return.ok(
                MemberStatementDTO(
                    member_id=member.id,
                    cached_balance=from_cents(member.credit_balance_cents),
                    ledger_balance=from_cents(running_cents),
                    total_outstanding=from_cents(outstanding_cents),
                    credit_limit=from_cents(member.credit_limit_cents),
                    entries=lines,
                    schedule=[ScheduleEntryDTO.from_entity(row) for row in schedule],
                )
            )

        except Exception as e:
            return Return.err(
                Error(
                    code="STATEMENT_FAILED",
                    message="Failed to build member statement",
                    reason=str(e),
                )
            )
