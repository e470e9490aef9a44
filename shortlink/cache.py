"""In-process resolution cache: sharded LRU with per-entry lifetimes.

The cache is a bounded, non-owning copy of the mapping store used only on
the redirect path. Each entry carries its own deadline, so staleness is
bounded by ``ttl`` no matter how often the entry is read: a link expired
in the store (out of band) may keep resolving from here for at most ``ttl``
seconds. Administrative expiry through the service invalidates immediately.

Layout
======
::
    code ──hash──► shard[i]  (capacity / shards entries each)
                    ├─ lock
                    └─ cachetools.TLRUCache[code -> (lifetime, CachedLink)]
                         deadline = put time + lifetime

- get():  purge expired entries of the shard, then an LRU lookup.
- put():  insert/refresh with a fresh deadline, evict least recently used
          while over capacity.

Lookups of different codes usually land on different shards, so readers
do not queue behind one global lock. The lock is a plain threading.Lock:
no critical section awaits, so the cache is safe from threads and tasks.

How to Use
===========
**Step 1 — Build**::
    cache = LinkCache(capacity=100_000, ttl_seconds=300, shards=16)

**Step 2 — Read / write**::
    cached = cache.get("aZ3kP9q")
    if cached is None:
        cache.put("aZ3kP9q", CachedLink.model_validate(link))

**Step 3 — Invalidate**::
    cache.invalidate("aZ3kP9q")
"""

import threading
import time
import zlib
from collections.abc import Callable
from dataclasses import dataclass

from cachetools import TLRUCache

from shortlink.config import Settings
from shortlink.schemas import CachedLink

__all__ = ["CacheStats", "LinkCache"]


@dataclass
class CacheStats:
    """Running counters for one cache instance."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0

    @property
    def hit_rate(self) -> float:
        """Hit rate as a percentage."""
        total_requests = self.hits + self.misses
        return (self.hits / max(total_requests, 1)) * 100


def _entry_deadline(code: str, entry: tuple[float, CachedLink], now: float) -> float:
    lifetime, _ = entry
    return now + lifetime


class _Shard:
    __slots__ = ("entries", "lock")

    def __init__(self, capacity: int, clock: Callable[[], float]) -> None:
        self.entries: TLRUCache = TLRUCache(maxsize=capacity, ttu=_entry_deadline, timer=clock)
        self.lock = threading.Lock()


class LinkCache:
    def __init__(
        self,
        capacity: int = 100_000,
        ttl_seconds: float = 300.0,
        shards: int = 16,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity!r}")
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be > 0, got {ttl_seconds!r}")

        shards = max(1, min(shards, capacity))
        base, extra = divmod(capacity, shards)
        self._shards = [_Shard(base + (1 if i < extra else 0), clock) for i in range(shards)]
        self._ttl = ttl_seconds
        self._stats_lock = threading.Lock()
        self.capacity = capacity
        self.stats = CacheStats()

    @classmethod
    def from_settings(cls, settings: Settings) -> "LinkCache":
        return cls(
            capacity=settings.CACHE_CAPACITY,
            ttl_seconds=settings.CACHE_TTL_SECONDS,
            shards=settings.CACHE_SHARDS,
        )

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def _shard_for(self, code: str) -> _Shard:
        return self._shards[zlib.crc32(code.encode("utf-8")) % len(self._shards)]

    def _purge(self, shard: _Shard) -> None:
        # Caller holds shard.lock. len() still counts expired entries until expire() runs.
        before = len(shard.entries)
        shard.entries.expire()
        expired = before - len(shard.entries)
        if expired:
            with self._stats_lock:
                self.stats.expirations += expired

    def get(self, code: str) -> CachedLink | None:
        shard = self._shard_for(code)
        with shard.lock:
            self._purge(shard)
            entry = shard.entries.get(code)

        with self._stats_lock:
            if entry is None:
                self.stats.misses += 1
            else:
                self.stats.hits += 1
        return entry[1] if entry is not None else None

    def put(self, code: str, link: CachedLink, ttl: float | None = None) -> None:
        assert code == link.code, f"cache key {code!r} does not match link code {link.code!r}"
        lifetime = self._ttl if ttl is None else ttl
        if lifetime <= 0:
            self.invalidate(code)
            return

        shard = self._shard_for(code)
        with shard.lock:
            self._purge(shard)
            size = len(shard.entries) + (0 if code in shard.entries else 1)
            shard.entries[code] = (lifetime, link)
            evicted = size - len(shard.entries)
        if evicted:
            with self._stats_lock:
                self.stats.evictions += evicted

    def invalidate(self, code: str) -> bool:
        shard = self._shard_for(code)
        with shard.lock:
            return shard.entries.pop(code, None) is not None

    def clear(self) -> None:
        for shard in self._shards:
            with shard.lock:
                shard.entries.clear()

    def __contains__(self, code: str) -> bool:
        shard = self._shard_for(code)
        with shard.lock:
            return code in shard.entries

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                self._purge(shard)
                total += len(shard.entries)
        return total
