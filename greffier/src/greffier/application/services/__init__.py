"""Application services."""

from greffier.application.services.escrow_sync_session import EscrowSyncSession

__all__ = ["EscrowSyncSession"]
