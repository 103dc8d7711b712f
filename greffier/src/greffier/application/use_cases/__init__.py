"""Application use cases."""

from greffier.application.use_cases.fetch_escrow_record import RecordFetcher
from greffier.application.use_cases.resolve_user_records import (
    MembershipResolver,
    dedupe_ids,
)
from greffier.application.use_cases.synchronize_user_escrows import (
    BatchSynchronizer,
    CancellationToken,
)

__all__ = [
    "RecordFetcher",
    "MembershipResolver",
    "dedupe_ids",
    "BatchSynchronizer",
    "CancellationToken",
]
