"""Credit Terms Repository Interface"""

from abc import ABC, abstractmethod
from typing import Optional
from coop_ledger.domain.credit_terms import CreditTerms


class CreditTermsRepository(ABC):
    """Repository interface for CreditTerms persistence"""

    @abstractmethod
    async def create(self, terms: CreditTerms) -> CreditTerms:
        """
        Store the credit terms of a purchase

        Returns:
            Created CreditTerms with generated ID
        """
        pass

    @abstractmethod
    async def get_by_ledger_entry_id(self, ledger_entry_id: int) -> Optional[CreditTerms]:
        """
        Retrieve the credit terms of a ledger entry

        Returns:
            CreditTerms if the purchase carried terms, None otherwise
        """
        pass
