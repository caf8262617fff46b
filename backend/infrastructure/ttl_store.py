"""
TTL Store
Async get/set-with-TTL capability used for adapter result caches and rate-limit windows.

InMemoryTTLStore keeps state in process memory, so it is only correct for a
single-instance deployment. A shared backend (e.g. Redis) can implement the
same TTLStore protocol and be injected without touching adapter code.
"""

import asyncio
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple, runtime_checkable


@runtime_checkable
class TTLStore(Protocol):
    async def get(self, key: str) -> Optional[Any]:
        ...

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


class InMemoryTTLStore:
    """
    Dict-backed TTLStore guarded by an asyncio.Lock.

    Expired entries are dropped when read, and every `sweep_every` writes
    a full sweep removes the ones nobody reads again.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_every: int = 128):
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._lock = asyncio.Lock()
        self._sweep_every = max(1, sweep_every)
        self._writes = 0

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        async with self._lock:
            now = self._clock()
            self._entries[key] = (value, now + ttl_seconds)
            self._writes += 1
            if self._writes >= self._sweep_every:
                self._writes = 0
                self._sweep(now)

    def _sweep(self, now: float) -> None:
        for key in [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]:
            del self._entries[key]

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
