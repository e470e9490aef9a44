"""Link service: the narrow interface callers use to reach the engine.

Architecture Overview
=====================
::
    ┌──────────────────────────────────────────────────────────────┐
    │                      ShortLinkService                         │
    │   create_link()      resolve_link()      get_link_stats()     │
    │        │                   │              expire_link()       │
    │        ▼                   ▼                    │             │
    │ ┌──────────────┐   ┌──────────────┐             │             │
    │ │ Allocation   │   │  Resolver    │──► LinkCache│             │
    │ │ Coordinator  │   │              │──► HitCounter             │
    │ └──────┬───────┘   └──────┬───────┘             │             │
    │        │ CodeGenerator    │                     │             │
    └────────┼──────────────────┼─────────────────────┼─────────────┘
             ▼                  ▼                     ▼
    ┌──────────────────────────────────────────────────────────────┐
    │                 MappingStore (PostgreSQL / SQLite)             │
    └──────────────────────────────────────────────────────────────┘

How to Use
===========
**Step 1 — Build from settings**::
    service = build_link_service(settings, get_session_factory())
    await service.start()

**Step 2 — Create and resolve**::
    created = await service.create_link("https://example.com/very/long/path")
    resolution = await service.resolve_link(created.code)

**Step 3 — Shutdown**::
    await service.aclose()

Key Behaviours
===============
- The service is stateless per request; one instance serves the process.
- Stats are read from the store and never cached.
- expire_link() invalidates the cache entry, so the code stops resolving
  immediately in this process.
- create_link() is not idempotent: each call yields a new code.
"""

import datetime
import logging

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortlink.cache import LinkCache
from shortlink.clock import Clock, utcnow
from shortlink.config import Settings
from shortlink.coordinator import AllocationCoordinator
from shortlink.enums import HealthStatus
from shortlink.generator import CodeGenerator
from shortlink.hits import DirectHitCounter, RedisHitBuffer, build_hit_counter
from shortlink.metrics import LinkMetrics
from shortlink.models import ShortLink
from shortlink.resolver import Resolver
from shortlink.schemas import CreatedLink, HealthResponse, LinkResolution, LinkStats
from shortlink.store import MappingStore

__all__ = ["ShortLinkService", "build_link_service"]


class ShortLinkService:
    """Create, resolve, inspect and expire short links.

    Example:
        >>> service = build_link_service(settings, session_factory)
        >>> created = await service.create_link("https://example.com")
        >>> (await service.resolve_link(created.code)).target_url
        'https://example.com'
    """

    def __init__(
        self,
        coordinator: AllocationCoordinator,
        resolver: Resolver,
        store: MappingStore,
        cache: LinkCache,
        hit_counter: DirectHitCounter | RedisHitBuffer,
        clock: Clock = utcnow,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._coordinator = coordinator
        self._resolver = resolver
        self._store = store
        self._cache = cache
        self._hit_counter = hit_counter
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)

    @property
    def cache(self) -> LinkCache:
        return self._cache

    @property
    def hit_counter(self) -> DirectHitCounter | RedisHitBuffer:
        return self._hit_counter

    # ========================================================================
    # PUBLIC API METHODS
    # ========================================================================

    async def create_link(self, target_url: str, ttl: datetime.timedelta | None = None) -> CreatedLink:
        link = await self._coordinator.allocate(target_url, ttl)
        return CreatedLink.model_validate(link)

    async def resolve_link(self, code: str) -> LinkResolution:
        target_url = await self._resolver.resolve(code)
        return LinkResolution(target_url=target_url)

    async def get_link_stats(self, code: str) -> LinkStats:
        link = await self._store.get(code)
        return self._to_stats(link)

    async def expire_link(self, code: str) -> LinkStats:
        """Administratively tombstone ``code``. The code is never reissued."""
        link = await self._store.expire(code, self._clock())
        self._cache.invalidate(code)
        self._logger.info(f"Short link expired: {code} at {link.expires_at}")
        return self._to_stats(link)

    async def check_health(self) -> HealthResponse:
        try:
            database = HealthStatus.from_bool(await self._store.ping())
        except Exception as exc:
            self._logger.error(f"Database health check failed: {exc}")
            database = HealthStatus.UNHEALTHY

        try:
            hit_counter = HealthStatus.from_bool(await self._hit_counter.ping())
        except Exception as exc:
            self._logger.error(f"Hit counter health check failed: {exc}")
            hit_counter = HealthStatus.UNHEALTHY

        status = HealthStatus.from_bool(
            database is HealthStatus.HEALTHY and hit_counter is HealthStatus.HEALTHY
        )
        return HealthResponse(status=status, database=database, hit_counter=hit_counter)

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def start(self) -> None:
        await self._hit_counter.start()

    async def aclose(self) -> None:
        await self._hit_counter.close()

    def _to_stats(self, link: ShortLink) -> LinkStats:
        return LinkStats(
            code=link.code,
            target_url=link.target_url,
            hit_count=link.hit_count,
            created_at=link.created_at,
            expires_at=link.expires_at,
            state=link.state(self._clock()),
        )


def build_link_service(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    cache_write: redis.Redis | None = None,
    clock: Clock = utcnow,
    metrics: LinkMetrics | None = None,
    logger: logging.Logger | logging.LoggerAdapter | None = None,
) -> ShortLinkService:
    metrics = metrics or LinkMetrics()
    logger = logger or logging.getLogger("shortlink")

    store = MappingStore.from_settings(settings, session_factory, logger=logger)
    generator = CodeGenerator.from_settings(settings)
    cache = LinkCache.from_settings(settings)
    hit_counter = build_hit_counter(settings, store, cache_write, metrics=metrics, logger=logger)

    coordinator = AllocationCoordinator(
        store,
        generator,
        max_attempts=settings.ALLOCATION_MAX_ATTEMPTS,
        clock=clock,
        metrics=metrics,
        logger=logger,
    )
    resolver = Resolver(
        store,
        cache,
        hit_counter,
        generator=generator,
        clock=clock,
        metrics=metrics,
        logger=logger,
    )
    return ShortLinkService(coordinator, resolver, store, cache, hit_counter, clock=clock, logger=logger)
