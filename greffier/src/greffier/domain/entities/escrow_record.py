"""
EscrowRecord entity - one escrow agreement as last observed on the ledger.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List


class EscrowRole(str, Enum):
    """Roles an account can hold in an escrow agreement."""

    BUYER = "buyer"
    SELLER = "seller"
    ARBITER = "arbiter"


def same_account(a: str, b: str) -> bool:
    """Compare two account identifiers case-insensitively."""
    return bool(a) and bool(b) and a.lower() == b.lower()


@dataclass
class EscrowRecord:
    """
    EscrowRecord entity.

    Business rules:
    - id is stable and never reused
    - Account identifiers compare case-insensitively
    - A record is a placeholder, an error marker, or fully populated;
      never more than one of these
    - Once funds_disbursed is true the record is terminal
    """

    id: str
    buyer: str = field(default="")
    seller: str = field(default="")
    arbiter: str = field(default="")
    amount: str = field(default="0")
    funds_disbursed: bool = field(default=False)
    dispute_raised: bool = field(default=False)
    placeholder: bool = field(default=False)
    error: bool = field(default=False)

    def __post_init__(self):
        """Validate record data after initialization."""
        self.id = str(self.id)
        if not self.id:
            raise ValueError("Escrow record id is required")

        if self.placeholder and self.error:
            raise ValueError(
                f"Escrow {self.id} cannot be both placeholder and error"
            )

    @classmethod
    def placeholder_for(cls, record_id: str) -> "EscrowRecord":
        """Create a placeholder known only by id."""
        return cls(id=str(record_id), placeholder=True)

    @classmethod
    def failed(cls, record_id: str) -> "EscrowRecord":
        """Create an error marker for an id whose fetch failed."""
        return cls(id=str(record_id), error=True)

    @property
    def is_populated(self) -> bool:
        """True when details have been loaded successfully."""
        return not self.placeholder and not self.error

    @property
    def is_active(self) -> bool:
        """True for populated records whose funds are still in escrow."""
        return self.is_populated and not self.funds_disbursed

    @property
    def sort_key(self) -> int:
        """Numeric ordering key; ids grow with creation order."""
        try:
            return int(self.id)
        except ValueError:
            return -1

    def roles_of(self, address: str) -> List[EscrowRole]:
        """
        Get the roles an address holds in this escrow.

        Args:
            address: Account identifier

        Returns:
            Roles in buyer, seller, arbiter order (may be empty)
        """
        roles = []
        if same_account(self.buyer, address):
            roles.append(EscrowRole.BUYER)
        if same_account(self.seller, address):
            roles.append(EscrowRole.SELLER)
        if same_account(self.arbiter, address):
            roles.append(EscrowRole.ARBITER)
        return roles

    def involves(self, address: str) -> bool:
        """Check if address is buyer, seller or arbiter."""
        return bool(self.roles_of(address))

    def with_changes(self, **changes) -> "EscrowRecord":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict:
        """Convert entity to dictionary representation."""
        data = {
            "id": self.id,
            "buyer": self.buyer,
            "seller": self.seller,
            "arbiter": self.arbiter,
            "amount": self.amount,
            "fundsDisbursed": self.funds_disbursed,
            "disputeRaised": self.dispute_raised,
        }
        if self.placeholder:
            data["placeholder"] = True
        if self.error:
            data["error"] = True
        return data
