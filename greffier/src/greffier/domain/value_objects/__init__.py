"""Domain value objects."""

from greffier.domain.value_objects.load_progress import LoadProgress
from greffier.domain.value_objects.role_statistics import RoleStatistics
from greffier.domain.value_objects.sync_status import (
    RateLimitNotice,
    SyncStatus,
)

__all__ = [
    "LoadProgress",
    "RoleStatistics",
    "RateLimitNotice",
    "SyncStatus",
]
