"""
Staleness policy for published escrow data.
"""

import time
from typing import Optional

WALLET_CONNECT_MAX_AGE = 30.0
DEFAULT_MAX_AGE = 60.0
TAB_SWITCH_MAX_AGE = 120.0


def is_stale(
    last_updated: Optional[float],
    max_age: float = DEFAULT_MAX_AGE,
    now: Optional[float] = None,
) -> bool:
    """
    Decide whether data last updated at last_updated needs a refresh.

    Args:
        last_updated: Wall-clock timestamp of last successful run
            (None or 0 = never updated)
        max_age: Acceptable age in seconds
        now: Current timestamp (defaults to time.time())

    Returns:
        True if now - last_updated > max_age
    """
    if now is None:
        now = time.time()
    return now - (last_updated or 0.0) > max_age
