"""
Ledger Query Service interface.

Defines contract for reading escrow records from the ledger.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping, Sequence, Union

RawEscrow = Union[Sequence[Any], Mapping[str, Any]]


class ILedgerQueryService(ABC):
    """
    Interface for read-only ledger queries.

    Clean Architecture: Domain layer defines interface,
    Infrastructure layer implements the concrete transport.
    Implementations raise their native errors (or LedgerCallError);
    classification into typed ledger errors happens in the fetcher.
    """

    @abstractmethod
    async def get_record(self, record_id: str) -> RawEscrow:
        """
        Get raw escrow details.

        Args:
            record_id: Escrow identifier

        Returns:
            (buyer, seller, arbiter, amount, fundsDisbursed, disputeRaised)
            as a sequence, or a mapping with those keys
        """

    @abstractmethod
    async def get_record_count(self) -> int:
        """
        Get total number of escrows ever created.

        Returns:
            Record count (ids run from 0 to count - 1)
        """

    @abstractmethod
    async def get_user_record_ids(self, address: str) -> Sequence[Any]:
        """
        Get ids of escrows involving an address.

        Args:
            address: Account identifier

        Returns:
            Record ids, in ledger order
        """

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
