"""
RoleStatistics value object - How a user participates in their escrows.
"""

from dataclasses import dataclass
from typing import Iterable

from greffier.domain.entities.escrow_record import EscrowRecord, EscrowRole


@dataclass(frozen=True)
class RoleStatistics:
    """
    Value object summarizing a user's roles across a record collection.

    Business rules:
    - Derived wholesale from a collection, never patched incrementally
    - A user holding two roles in one escrow counts toward both
    - total counts records, not roles
    """

    total: int = 0
    as_buyer: int = 0
    as_seller: int = 0
    as_arbiter: int = 0
    disputed: int = 0

    @classmethod
    def from_records(
        cls, records: Iterable[EscrowRecord], user_address: str
    ) -> "RoleStatistics":
        """
        Compute statistics for user_address over populated records.

        Placeholders and error markers are ignored.
        """
        total = as_buyer = as_seller = as_arbiter = disputed = 0

        for record in records:
            if not record.is_populated:
                continue

            roles = record.roles_of(user_address)
            total += 1
            if EscrowRole.BUYER in roles:
                as_buyer += 1
            if EscrowRole.SELLER in roles:
                as_seller += 1
            if EscrowRole.ARBITER in roles:
                as_arbiter += 1
            if record.dispute_raised:
                disputed += 1

        return cls(
            total=total,
            as_buyer=as_buyer,
            as_seller=as_seller,
            as_arbiter=as_arbiter,
            disputed=disputed,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "total": self.total,
            "asBuyer": self.as_buyer,
            "asSeller": self.as_seller,
            "asArbiter": self.as_arbiter,
            "disputed": self.disputed,
        }
