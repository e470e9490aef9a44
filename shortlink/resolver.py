"""Resolver: short code -> target URL on the redirect hot path.

Flow Diagram — resolve()
========================
::
    ┌─────────────┐
    │  code       │
    └──────┬──────┘
           ▼
    ┌─────────────┐  wrong length / alphabet
    │ shape check │ ─────────────────────────► NotFound
    └──────┬──────┘
           ▼
    ┌─────────────┐  hit, cached expires_at passed
    │ LinkCache   │ ──► invalidate, fall through
    └──────┬──────┘
    HIT?  │
    ┌─────┴──────────────┐
    │ NO                  │ YES
    ▼                     │
┌─────────────┐           │
│ store.get() │──► NotFound
└──────┬──────┘           │
  expired? ──► invalidate,│
       │       NotFound   │
       ▼                  │
┌─────────────┐           │
│ cache.put() │           │
└──────┬──────┘           │
       └────────┬─────────┘
                ▼
    ┌─────────────────────┐
    │ hit_counter.record() │  (non-blocking, never fails the redirect)
    └──────────┬──────────┘
               ▼
          target_url

Staleness
=========
A link expired in the store without going through the service can keep
resolving from the cache until its cache entry dies (at most the cache ttl).
Links whose expires_at is known at cache time stop resolving at exactly that
instant, because the cached copy carries expires_at.
"""

import logging
import time

from shortlink.cache import LinkCache
from shortlink.clock import Clock, utcnow
from shortlink.enums import CacheStatus, RequestStatus
from shortlink.errors import NotFound
from shortlink.generator import CodeGenerator
from shortlink.hits import DirectHitCounter, RedisHitBuffer
from shortlink.metrics import LinkMetrics
from shortlink.schemas import CachedLink
from shortlink.store import MappingStore

__all__ = ["Resolver"]


class Resolver:
    def __init__(
        self,
        store: MappingStore,
        cache: LinkCache,
        hit_counter: DirectHitCounter | RedisHitBuffer,
        generator: CodeGenerator | None = None,
        clock: Clock = utcnow,
        metrics: LinkMetrics | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._hit_counter = hit_counter
        self._generator = generator
        self._clock = clock
        self._metrics = metrics or LinkMetrics()
        self._logger = logger or logging.getLogger(__name__)

    async def resolve(self, code: str) -> str:
        """Return the target URL for ``code``.

        Raises:
            NotFound: ``code`` was never created or has expired.
            StoreUnavailable: cache miss and the store could not be reached.
        """
        start_time = time.perf_counter()
        cache_status = CacheStatus.MISS
        try:
            if self._generator is not None and not self._generator.is_valid(code):
                raise NotFound(code)

            cached = self._lookup_cache(code)
            if cached is not None:
                cache_status = CacheStatus.HIT
                target_url = cached.target_url
            else:
                target_url = await self._lookup_store(code)
        except NotFound:
            self._metrics.resolution(RequestStatus.NOT_FOUND, cache_status, time.perf_counter() - start_time)
            self._logger.debug(f"Short code not found: {code}")
            raise
        except Exception as exc:
            self._metrics.resolution(RequestStatus.ERROR, cache_status, time.perf_counter() - start_time)
            self._logger.error(f"Resolution error for {code}: {exc}")
            raise

        self._hit_counter.record(code)

        duration = time.perf_counter() - start_time
        self._metrics.resolution(RequestStatus.SUCCESS, cache_status, duration)
        self._logger.debug(f"Resolved {code} (cache_hit={cache_status}) in {duration:.4f}s")
        return target_url

    def _lookup_cache(self, code: str) -> CachedLink | None:
        cached = self._cache.get(code)
        if cached is None:
            return None
        if cached.is_expired(self._clock()):
            self._cache.invalidate(code)
            return None
        return cached

    async def _lookup_store(self, code: str) -> str:
        link = await self._store.get(code)
        if link.is_expired(self._clock()):
            self._cache.invalidate(code)
            raise NotFound(code)

        self._cache.put(code, CachedLink.model_validate(link))
        return link.target_url
