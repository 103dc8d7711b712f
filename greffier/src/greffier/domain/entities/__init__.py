"""Domain entities."""

from greffier.domain.entities.escrow_record import (
    EscrowRecord,
    EscrowRole,
    same_account,
)

__all__ = [
    "EscrowRecord",
    "EscrowRole",
    "same_account",
]
