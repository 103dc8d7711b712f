"""
Synchronization Data Transfer Objects.

Immutable views of batch run state handed from the synchronizer to the
session and from the session to its subscribers.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from greffier.domain.entities.escrow_record import EscrowRecord, EscrowRole
from greffier.domain.value_objects import (
    LoadProgress,
    RateLimitNotice,
    RoleStatistics,
    SyncStatus,
)


@dataclass(frozen=True)
class SyncUpdate:
    """
    Incremental update published by a batch run.

    Fields left as None are unchanged by the update.
    """

    status: SyncStatus
    records: Optional[Tuple[EscrowRecord, ...]] = None
    progress: Optional[LoadProgress] = None
    stats: Optional[RoleStatistics] = None
    error: Optional[str] = None
    last_updated: Optional[float] = None
    clear_error: bool = False


@dataclass(frozen=True)
class SyncOutcome:
    """Final result of one batch run."""

    run_id: str
    user_address: str
    status: SyncStatus
    records: Tuple[EscrowRecord, ...] = ()
    progress: LoadProgress = field(default_factory=LoadProgress)
    stats: RoleStatistics = field(default_factory=RoleStatistics)
    error: Optional[str] = None

    @property
    def summary(self) -> str:
        """Human-readable outcome."""
        if self.status == SyncStatus.FAILED and self.progress.total == 0:
            return self.error or "Synchronization failed"
        if self.status == SyncStatus.CANCELLED:
            return f"Cancelled: {self.progress.summary}"
        return self.progress.summary


@dataclass(frozen=True)
class SyncSnapshot:
    """Published synchronization state for one session."""

    records: Tuple[EscrowRecord, ...] = ()
    progress: LoadProgress = field(default_factory=LoadProgress)
    stats: RoleStatistics = field(default_factory=RoleStatistics)
    status: SyncStatus = SyncStatus.IDLE
    error: Optional[str] = None
    last_updated: Optional[float] = None
    rate_limit_notice: Optional[RateLimitNotice] = None
    user_address: Optional[str] = None

    @property
    def loading(self) -> bool:
        """True while a run is resolving or loading."""
        return self.status.is_running

    @property
    def has_data(self) -> bool:
        """True if any record is published."""
        return len(self.records) > 0

    @property
    def is_partially_loaded(self) -> bool:
        """True if some ids loaded and some failed."""
        return self.progress.is_partial

    @property
    def summary(self) -> str:
        """Human-readable progress, e.g. "Loaded 2/3 escrows (1 failed)"."""
        return self.progress.summary

    def records_by_role(
        self, address: str, role: EscrowRole
    ) -> Tuple[EscrowRecord, ...]:
        """Published records in which address holds role."""
        return tuple(r for r in self.records if role in r.roles_of(address))

    def apply(self, update: SyncUpdate) -> "SyncSnapshot":
        """Return the snapshot with a run update folded in."""
        changes = {"status": update.status}
        if update.records is not None:
            changes["records"] = update.records
        if update.progress is not None:
            changes["progress"] = update.progress
        if update.stats is not None:
            changes["stats"] = update.stats
        if update.last_updated is not None:
            changes["last_updated"] = update.last_updated
        if update.error is not None:
            changes["error"] = update.error
        elif update.clear_error:
            changes["error"] = None
        return replace(self, **changes)

    def to_dict(self, now: Optional[float] = None) -> dict:
        """Convert to dictionary representation."""
        notice = None
        if self.rate_limit_notice is not None and now is not None:
            notice = self.rate_limit_notice.to_dict(now)
        return {
            "escrows": [record.to_dict() for record in self.records],
            "progress": self.progress.to_dict(),
            "stats": self.stats.to_dict(),
            "status": self.status.value,
            "loading": self.loading,
            "error": self.error,
            "lastUpdated": self.last_updated,
            "rateLimitNotice": notice,
        }
