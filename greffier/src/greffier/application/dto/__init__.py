"""Application DTOs."""

from greffier.application.dto.sync_snapshot import (
    SyncOutcome,
    SyncSnapshot,
    SyncUpdate,
)

__all__ = [
    "SyncOutcome",
    "SyncSnapshot",
    "SyncUpdate",
]
