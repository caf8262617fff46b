"""
Request Rate Limiter
Fixed-window request budget per client key, stored in a TTLStore.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional

from infrastructure.ttl_store import InMemoryTTLStore, TTLStore


@dataclass
class RateLimitConfig:
    requests_per_window: int = 10
    window_seconds: int = 60


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float  # epoch seconds


class FixedWindowRateLimiter:
    """
    Counts requests per key inside a fixed window.

    A window opens on the first request (or the first request after the
    previous window expired) and lasts `window_seconds`. Once `limit`
    requests were admitted in the window, further requests are rejected
    until it resets.
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        store: Optional[TTLStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or RateLimitConfig()
        self._store = store or InMemoryTTLStore()
        self._clock = clock
        self._lock = asyncio.Lock()

    async def hit(self, key: str) -> RateLimitDecision:
        limit = self.config.requests_per_window
        window = self.config.window_seconds
        store_key = f"ratelimit:{key}"

        async with self._lock:
            now = self._clock()
            entry = await self._store.get(store_key)

            if entry is None or now > entry["reset_at"]:
                entry = {"count": 1, "reset_at": now + window}
                await self._store.set(store_key, entry, window)
                return RateLimitDecision(True, limit, limit - 1, entry["reset_at"])

            if entry["count"] >= limit:
                return RateLimitDecision(False, limit, 0, entry["reset_at"])

            entry = {"count": entry["count"] + 1, "reset_at": entry["reset_at"]}
            await self._store.set(store_key, entry, max(entry["reset_at"] - now, 0.001))
            return RateLimitDecision(True, limit, limit - entry["count"], entry["reset_at"])
