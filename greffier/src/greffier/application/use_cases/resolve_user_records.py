"""
Resolve user records use case.

Finds the ids of every escrow in which an account is buyer, seller or
arbiter.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Union

from greffier.application.use_cases.fetch_escrow_record import RecordFetcher
from greffier.domain.entities.escrow_record import EscrowRecord
from greffier.domain.exceptions import (
    LedgerError,
    RecordNotFoundError,
    ResolutionFailedError,
)

logger = logging.getLogger(__name__)


def dedupe_ids(ids: Iterable[Any]) -> List[str]:
    """Stringify ids and drop repeats, keeping first-seen order."""
    seen = set()
    unique = []
    for raw_id in ids:
        record_id = str(raw_id)
        if record_id not in seen:
            seen.add(record_id)
            unique.append(record_id)
    return unique


class MembershipResolver:
    """
    Use case for resolving which escrows involve a user.

    Strategy:
    - Primary: the ledger's per-user index (one query)
    - Fallback: read the escrow count and probe the most recent
      scan_limit ids in small batches through the record fetcher,
      keeping those where the user holds any role

    The fallback is bounded, so a user whose only escrows are older than
    the scan window is not found by it.
    """

    def __init__(
        self,
        fetcher: RecordFetcher,
        scan_limit: int = 50,
        scan_batch_size: int = 5,
        scan_batch_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize use case.

        Args:
            fetcher: Record fetcher (shares the gate and cache)
            scan_limit: Most recent ids probed by the fallback scan
            scan_batch_size: Concurrent probes per batch
            scan_batch_delay: Pause between batches in seconds
            sleep: Async sleep used between batches
        """
        self.fetcher = fetcher
        self.scan_limit = scan_limit
        self.scan_batch_size = scan_batch_size
        self.scan_batch_delay = scan_batch_delay
        self._sleep = sleep

    async def resolve_ids(self, user_address: str) -> List[str]:
        """
        Resolve escrow ids involving user_address.

        Args:
            user_address: Account identifier

        Returns:
            Deduplicated ids, in ledger order for the index and newest
            first for the scan

        Raises:
            ResolutionFailedError: If both the index and the scan fail
                (a scan that could read none of its ids has failed)
        """
        try:
            return await self._from_index(user_address)
        except LedgerError as e:
            logger.info(
                f"User index unavailable for {user_address} ({e}), "
                f"falling back to ledger scan"
            )

        try:
            return await self._scan(user_address)
        except LedgerError as e:
            logger.error(f"Escrow resolution failed for {user_address}: {e}")
            raise ResolutionFailedError(user_address, cause=e) from e

    async def _from_index(self, user_address: str) -> List[str]:
        ledger = self.fetcher.ledger
        ids = await self.fetcher.query(
            "get_user_record_ids", ledger.get_user_record_ids, user_address
        )
        resolved = dedupe_ids(ids)
        logger.debug(f"User index returned {len(resolved)} escrows")
        return resolved

    def _scan_window(self, count: int) -> List[str]:
        if count > self.scan_limit:
            logger.warning(
                f"Ledger holds {count} escrows; scanning only the most "
                f"recent {self.scan_limit}, older escrows will be missed"
            )
        lowest = max(0, count - self.scan_limit)
        return [str(i) for i in range(count - 1, lowest - 1, -1)]

    async def _probe(
        self, record_id: str, user_address: str
    ) -> Union[bool, LedgerError]:
        """Return membership, or the error if the id could not be read."""
        try:
            record: EscrowRecord = await self.fetcher.fetch(record_id)
        except RecordNotFoundError:
            return False
        except LedgerError as e:
            return e
        return record.involves(user_address)

    async def _scan(self, user_address: str) -> List[str]:
        ledger = self.fetcher.ledger
        count = await self.fetcher.query("get_record_count", ledger.get_record_count)
        window = self._scan_window(int(count))

        matched: List[str] = []
        skipped = 0
        last_error: Optional[LedgerError] = None
        for start in range(0, len(window), self.scan_batch_size):
            if start > 0 and self.scan_batch_delay > 0:
                await self._sleep(self.scan_batch_delay)

            batch = window[start : start + self.scan_batch_size]
            results = await asyncio.gather(
                *(self._probe(record_id, user_address) for record_id in batch)
            )
            for record_id, member in zip(batch, results):
                if isinstance(member, LedgerError):
                    skipped += 1
                    last_error = member
                elif member:
                    matched.append(record_id)

        # An empty result only counts if at least one id was readable
        if window and skipped == len(window):
            raise last_error

        if skipped:
            logger.debug(f"Ledger scan skipped {skipped} unreadable escrows")
        logger.info(
            f"Ledger scan found {len(matched)} escrows for {user_address} "
            f"in {len(window)} probed"
        )
        return dedupe_ids(matched)
