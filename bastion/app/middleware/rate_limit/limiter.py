"""In-memory fixed window rate limiter.

Each client key gets a window that opens with its first request and
covers ``[window_start, window_start + window_seconds)``. Requests 1 to
``max_requests`` inside the window are admitted, later ones are rejected
until a request arrives at or after the window end, which opens a fresh
window with a zeroed counter.

All reads and updates happen under one ``asyncio.Lock`` and use the clock
value read inside it, so simultaneous requests are ordered by lock
acquisition and the boundary rule is applied deterministically.
"""

import asyncio
import math
import time
from collections import OrderedDict
from typing import Callable

from bastion.app.middleware.rate_limit.models import RateLimitEntry, RateLimitResult


class InMemoryRateLimiter:
    """Per-key fixed window counters for a single process.

    Memory optimization:
    - Uses OrderedDict for LRU cache behavior
    - Limits max entries to prevent unbounded memory growth
    - Expired windows are dropped first when the limit is exceeded
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 180.0,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize rate limiter.

        Args:
            max_requests: Requests admitted per key and window
            window_seconds: Window length in seconds
            max_entries: Maximum number of keys to track (LRU eviction)
            clock: Monotonic time source in seconds
        """
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._max_entries = max_entries
        self._clock = clock

        self._storage: OrderedDict[str, RateLimitEntry] = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._storage)

    def _expired(self, entry: RateLimitEntry, now: float) -> bool:
        return now - entry.window_start >= self.window_seconds

    def _drop_expired(self, now: float) -> int:
        expired = [key for key, entry in self._storage.items() if self._expired(entry, now)]
        for key in expired:
            del self._storage[key]
        return len(expired)

    def _enforce_lru_limit(self, now: float) -> None:
        """Enforce max entries limit, expired windows first, then LRU."""
        if len(self._storage) <= self._max_entries:
            return
        self._drop_expired(now)
        # Evicting a live window resets that client early; only under memory pressure
        while len(self._storage) > self._max_entries:
            self._storage.popitem(last=False)

    async def is_allowed(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` and decide whether it is admitted."""
        async with self._lock:
            now = self._clock()

            entry = self._storage.get(key)
            if entry is None or self._expired(entry, now):
                entry = RateLimitEntry(requests=0, window_start=now)
                self._storage[key] = entry

            # Move key to end (most recently used)
            self._storage.move_to_end(key)
            self._enforce_lru_limit(now)

            window_end = entry.window_start + self.window_seconds
            reset_after = max(0, math.ceil(window_end - now))

            if entry.requests >= self.max_requests:
                return RateLimitResult(
                    allowed=False,
                    limit=self.max_requests,
                    remaining=0,
                    reset_after=reset_after,
                    retry_after=max(1, reset_after),
                )

            entry.requests += 1
            return RateLimitResult(
                allowed=True,
                limit=self.max_requests,
                remaining=self.max_requests - entry.requests,
                reset_after=reset_after,
            )

    async def reset(self, key: str) -> None:
        """Forget the counter for ``key``."""
        async with self._lock:
            self._storage.pop(key, None)

    async def prune(self) -> int:
        """Clean up expired entries.

        Returns:
            Number of entries removed
        """
        async with self._lock:
            return self._drop_expired(self._clock())
