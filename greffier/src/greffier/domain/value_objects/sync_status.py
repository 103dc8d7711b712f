"""
Sync status and notices published by a synchronization session.
"""

from dataclasses import dataclass
from enum import Enum


class SyncStatus(str, Enum):
    """Batch run states."""

    IDLE = "idle"
    RESOLVING = "resolving"
    LOADING = "loading"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """True for states a run cannot leave."""
        return self in (
            SyncStatus.COMPLETED,
            SyncStatus.CANCELLED,
            SyncStatus.FAILED,
        )

    @property
    def is_running(self) -> bool:
        """True while a run is resolving or loading."""
        return self in (SyncStatus.RESOLVING, SyncStatus.LOADING)


@dataclass(frozen=True)
class RateLimitNotice:
    """
    User-visible "network busy" notice raised by ledger rate limiting.

    Business rules:
    - Carries an absolute retry time so a countdown can be rendered
    - Expires on its own once the cooldown has elapsed
    - Can be dismissed without affecting the cooldown itself
    """

    retry_at: float
    cooldown_seconds: float
    message: str = (
        "The network is busy. Slowing down requests to avoid rate limiting."
    )

    def seconds_remaining(self, now: float) -> int:
        """Whole seconds left before requests resume."""
        return max(0, int(round(self.retry_at - now)))

    def is_expired(self, now: float) -> bool:
        """True once the cooldown has elapsed."""
        return now >= self.retry_at

    def to_dict(self, now: float) -> dict:
        """Convert to dictionary representation."""
        return {
            "message": self.message,
            "cooldownSeconds": self.cooldown_seconds,
            "secondsRemaining": self.seconds_remaining(now),
        }
