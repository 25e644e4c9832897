"""Deduplication and cooldown gate for incoming cast deliveries."""

import asyncio
import logging
import time
from typing import Callable, Protocol

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class CastGate(Protocol):
    """Decides whether a delivered cast hash should be processed."""

    async def seen(self, cast_hash: str) -> bool: ...

    async def mark_seen(self, cast_hash: str) -> None: ...

    async def cooldown_active(self, cast_hash: str) -> bool: ...

    async def mark_cooldown(self, cast_hash: str) -> None: ...

    async def try_mark_seen(self, cast_hash: str) -> bool: ...

    async def try_start_cooldown(self, cast_hash: str) -> bool: ...

    async def clear_cooldown(self, cast_hash: str) -> None: ...

    async def evict_expired(self) -> int: ...


class InMemoryCastGate:
    """Process-local gate.

    Two independent structures:

    - the processed set, which is never evicted and guards against handling
      the same cast twice within a process lifetime
    - the cooldown map (hash -> last delivery time), which rejects rapid
      duplicate deliveries before any expensive work and drops entries older
      than the eviction window
    """

    def __init__(
        self,
        cooldown_seconds: float = 30,
        eviction_seconds: float = 3600,
        clock: Clock = time.monotonic,
    ):
        self.cooldown_seconds = cooldown_seconds
        self.eviction_seconds = eviction_seconds
        self._clock = clock
        self._processed: set[str] = set()
        self._cooldowns: dict[str, float] = {}
        self._lock = asyncio.Lock()

    async def seen(self, cast_hash: str) -> bool:
        async with self._lock:
            return cast_hash in self._processed

    async def mark_seen(self, cast_hash: str) -> None:
        async with self._lock:
            self._processed.add(cast_hash)

    async def try_mark_seen(self, cast_hash: str) -> bool:
        """Mark a hash as processed.

        Returns:
            True if this call claimed the hash, False if it was already claimed.
        """
        async with self._lock:
            if cast_hash in self._processed:
                return False
            self._processed.add(cast_hash)
            return True

    async def cooldown_active(self, cast_hash: str) -> bool:
        async with self._lock:
            last = self._cooldowns.get(cast_hash)
            return last is not None and self._clock() - last < self.cooldown_seconds

    async def mark_cooldown(self, cast_hash: str) -> None:
        async with self._lock:
            self._cooldowns[cast_hash] = self._clock()

    async def try_start_cooldown(self, cast_hash: str) -> bool:
        """Evict stale entries, then claim the cooldown slot for a hash.

        Returns:
            False if a delivery for the same hash arrived within the cooldown window.
        """
        async with self._lock:
            now = self._clock()
            self._evict_expired(now)
            last = self._cooldowns.get(cast_hash)
            if last is not None and now - last < self.cooldown_seconds:
                return False
            self._cooldowns[cast_hash] = now
            return True

    async def clear_cooldown(self, cast_hash: str) -> None:
        """Forget a cooldown entry so the user can retry right away."""
        async with self._lock:
            self._cooldowns.pop(cast_hash, None)

    async def evict_expired(self) -> int:
        async with self._lock:
            return self._evict_expired(self._clock())

    def _evict_expired(self, now: float) -> int:
        stale = [h for h, t in self._cooldowns.items() if now - t > self.eviction_seconds]
        for cast_hash in stale:
            del self._cooldowns[cast_hash]
        if stale:
            logger.debug("Evicted %d cooldown entries", len(stale))
        return len(stale)

    @property
    def processed_count(self) -> int:
        return len(self._processed)

    @property
    def cooldown_count(self) -> int:
        return len(self._cooldowns)
