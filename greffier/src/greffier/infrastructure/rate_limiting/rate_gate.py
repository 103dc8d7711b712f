"""
Rate Gate implementation.

Enforces the ledger endpoint's request budget over two sliding windows
(short and long) shared by every fetch path in the process.
Implements the sliding window log algorithm: each accepted request is
timestamped and requests older than the window drop out of the count.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque

from greffier.infrastructure.monitoring import metrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateGateInfo:
    """Snapshot of rate gate usage."""

    short_window_count: int
    short_window_max: int
    long_window_count: int
    long_window_max: int
    cooldown_remaining: float

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "per10Sec": self.short_window_count,
            "maxPer10Sec": self.short_window_max,
            "per10Min": self.long_window_count,
            "maxPer10Min": self.long_window_max,
            "cooldownRemaining": round(self.cooldown_remaining, 1),
        }


class _SlidingWindow:
    """Timestamps of accepted requests within one window."""

    def __init__(self, max_requests: int, seconds: float):
        self.max_requests = max_requests
        self.seconds = seconds
        self.timestamps: Deque[float] = deque()

    def prune(self, now: float) -> None:
        while self.timestamps and now - self.timestamps[0] >= self.seconds:
            self.timestamps.popleft()

    @property
    def count(self) -> int:
        return len(self.timestamps)

    def has_room(self) -> bool:
        return self.count < self.max_requests

    def time_until_room(self, now: float) -> float:
        if self.has_room():
            return 0.0
        return max(0.0, self.timestamps[0] + self.seconds - now)


class RateGate:
    """
    Dual sliding-window rate gate.

    Features:
    - Short window (default 250 requests / 10s) and long window
      (default 10000 requests / 10min) with independent clocks
    - A request passes only if both windows have room
    - Cooldown after the endpoint reports rate limiting blocks all slots
    - Injectable clock and sleep so tests run on a fake clock

    Single event loop: try_acquire() checks and records without
    suspending, so concurrent await_slot() callers cannot both take the
    last slot.
    """

    def __init__(
        self,
        short_window_max: int = 250,
        short_window_seconds: float = 10.0,
        long_window_max: int = 10_000,
        long_window_seconds: float = 600.0,
        poll_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize rate gate.

        Args:
            short_window_max: Max requests per short window
            short_window_seconds: Short window length
            long_window_max: Max requests per long window
            long_window_seconds: Long window length
            poll_interval: Seconds between slot checks in await_slot()
            clock: Monotonic time source
            sleep: Async sleep used while waiting
        """
        self._short = _SlidingWindow(short_window_max, short_window_seconds)
        self._long = _SlidingWindow(long_window_max, long_window_seconds)
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep
        self._cooldown_until = 0.0

    def _refresh(self) -> float:
        now = self._clock()
        self._short.prune(now)
        self._long.prune(now)
        return now

    def can_proceed(self) -> bool:
        """
        Check if a request may be issued now.

        Returns:
            True if both windows have room and no cooldown is active
        """
        now = self._refresh()
        return (
            now >= self._cooldown_until
            and self._short.has_room()
            and self._long.has_room()
        )

    def record_request(self) -> None:
        """Count a request against both windows."""
        now = self._refresh()
        self._short.timestamps.append(now)
        self._long.timestamps.append(now)

    def try_acquire(self) -> bool:
        """
        Take a slot if one is free (check and record in one step).

        Returns:
            True if slot acquired, False if rate limited
        """
        if not self.can_proceed():
            return False
        self.record_request()
        return True

    def time_until_slot(self) -> float:
        """Seconds until a slot could become free."""
        now = self._refresh()
        return max(
            self._cooldown_until - now,
            self._short.time_until_room(now),
            self._long.time_until_room(now),
            0.0,
        )

    async def await_slot(self) -> None:
        """Suspend until a slot is free, then take it."""
        waited = False
        while not self.try_acquire():
            if not waited:
                waited = True
                metrics.rate_gate_waits_total.inc()
                logger.debug(
                    f"Rate limit reached, waiting "
                    f"(short {self._short.count}/{self._short.max_requests}, "
                    f"long {self._long.count}/{self._long.max_requests})"
                )

            delay = self.time_until_slot()
            if self.poll_interval > 0:
                delay = min(self.poll_interval, delay)
            await self._sleep(delay)

    def trigger_cooldown(self, seconds: float) -> float:
        """
        Block all slots for a while after the endpoint rejected a call.

        Overlapping cooldowns extend, never shorten, the block.

        Args:
            seconds: Cooldown length

        Returns:
            Clock time at which requests resume
        """
        now = self._clock()
        self._cooldown_until = max(self._cooldown_until, now + seconds)
        logger.warning(f"Ledger rate limited, cooling down for {seconds:.0f}s")
        return self._cooldown_until

    def cooldown_remaining(self) -> float:
        """Seconds left in the current cooldown (0 if none)."""
        return max(0.0, self._cooldown_until - self._clock())

    def info(self) -> RateGateInfo:
        """Get current window usage."""
        self._refresh()
        return RateGateInfo(
            short_window_count=self._short.count,
            short_window_max=self._short.max_requests,
            long_window_count=self._long.count,
            long_window_max=self._long.max_requests,
            cooldown_remaining=self.cooldown_remaining(),
        )

    def reset(self) -> None:
        """Reset the gate to its initial state."""
        self._short.timestamps.clear()
        self._long.timestamps.clear()
        self._cooldown_until = 0.0
        logger.info("Rate gate reset")
