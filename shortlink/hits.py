"""Hit counting off the redirect path.

Resolutions never wait on the hit counter: ``record()`` schedules the work
and returns immediately, and every failure is logged and counted instead of
raised. Two strategies share the same shape:

Direct (default)
================
::
    resolve() ──record()──► background task ──► UPDATE hit_count = hit_count + 1

Redis buffer (multi-instance, batched)
======================================
::
    resolve() ──record()──► INCR click_buffer:{code}
                            SADD click_buffer:pending {code}
                                     │
                     every HIT_FLUSH_INTERVAL_SECONDS
                                     ▼
                            SPOP pending (batch)
                            GETDEL click_buffer:{code}
                                     ▼
                            UPDATE hit_count = hit_count + delta
                            (store down → INCRBY + SADD back for next flush)

The buffered mode trades count freshness for fewer store writes; counts are
eventually exact as long as Redis keeps the buffer.

How to Use
===========
**Step 1 — Build**::
    counter = build_hit_counter(settings, store, redis_client)
    await counter.start()

**Step 2 — Record from the resolver**::
    counter.record("aZ3kP9q")

**Step 3 — Shutdown**::
    await counter.close()   # drains pending tasks, final flush
"""

import asyncio
import contextlib
import logging
from abc import ABC, abstractmethod

import redis.asyncio as redis

from shortlink.config import Settings
from shortlink.enums import HitCounterMode
from shortlink.metrics import LinkMetrics
from shortlink.store import MappingStore

__all__ = ["DirectHitCounter", "RedisHitBuffer", "build_hit_counter"]


class _BackgroundHitCounter(ABC):
    def __init__(
        self,
        store: MappingStore,
        metrics: LinkMetrics | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._store = store
        self._metrics = metrics or LinkMetrics()
        self._logger = logger or logging.getLogger(__name__)
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def record(self, code: str) -> None:
        task = asyncio.get_running_loop().create_task(self._record(code))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @abstractmethod
    async def _record(self, code: str) -> None:
        """Hand one hit for ``code`` off to the counting backend without raising."""

    async def drain(self) -> None:
        """Wait for every hit recorded so far to be handed off."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def flush(self) -> int:
        await self.drain()
        return 0

    async def start(self) -> None:
        return None

    async def close(self) -> None:
        await self.drain()

    async def ping(self) -> bool:
        return True


class DirectHitCounter(_BackgroundHitCounter):
    """One atomic store increment per resolution, fire-and-forget."""

    async def _record(self, code: str) -> None:
        try:
            await self._store.increment_hits(code)
        except Exception as exc:
            self._metrics.hit_count_failure()
            self._logger.warning(f"Hit count increment failed for {code}: {exc}")


class RedisHitBuffer(_BackgroundHitCounter):
    """Buffers hits in Redis and applies them to the store in batches."""

    def __init__(
        self,
        cache_write: redis.Redis,
        store: MappingStore,
        key_prefix: str = "click_buffer",
        flush_interval: float = 5.0,
        batch_size: int = 500,
        metrics: LinkMetrics | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        super().__init__(store, metrics, logger)
        assert flush_interval > 0, f"flush_interval must be positive, got {flush_interval!r}"
        assert batch_size > 0, f"batch_size must be positive, got {batch_size!r}"
        self._redis = cache_write
        self._key_prefix = key_prefix
        self._pending_key = f"{key_prefix}:pending"
        self._flush_interval = flush_interval
        self._batch_size = batch_size
        self._flush_task: asyncio.Task | None = None

    def _buffer_key(self, code: str) -> str:
        return f"{self._key_prefix}:{code}"

    async def _record(self, code: str) -> None:
        try:
            await self._redis.incr(self._buffer_key(code))
            await self._redis.sadd(self._pending_key, code)
        except Exception as exc:
            self._metrics.hit_count_failure()
            self._logger.warning(f"Buffering hit for {code} failed: {exc}")

    async def flush(self) -> int:
        """Apply buffered deltas to the store.

        Returns:
            int: Number of hits written to the store by this call.
        """
        await self.drain()
        applied = 0
        while True:
            codes = await self._redis.spop(self._pending_key, self._batch_size)
            if not codes:
                break

            for index, code in enumerate(codes):
                raw = await self._redis.getdel(self._buffer_key(code))
                delta = int(raw) if raw else 0
                if delta <= 0:
                    continue
                try:
                    await self._store.increment_hits(code, delta)
                except Exception as exc:
                    self._logger.warning(f"Flushing {delta} hits for {code} failed, requeueing: {exc}")
                    await self._requeue(code, delta)
                    await self._restore_pending(codes[index + 1 :])
                    return applied
                applied += delta

            if len(codes) < self._batch_size:
                break

        if applied:
            self._logger.debug(f"Flushed {applied} buffered hits")
        return applied

    async def _requeue(self, code: str, delta: int) -> None:
        try:
            await self._redis.incrby(self._buffer_key(code), delta)
            await self._redis.sadd(self._pending_key, code)
        except Exception as exc:
            self._metrics.hit_count_failure(delta)
            self._logger.error(f"Lost {delta} buffered hits for {code}: {exc}")

    async def _restore_pending(self, codes: list[str]) -> None:
        # SPOP already removed these from the pending set; their buffers are untouched.
        if not codes:
            return
        try:
            await self._redis.sadd(self._pending_key, *codes)
        except Exception as exc:
            self._logger.error(f"Could not restore {len(codes)} pending codes after failed flush: {exc}")

    async def _flush_loop(self) -> None:
        while True:
            await asyncio.sleep(self._flush_interval)
            try:
                await self.flush()
            except Exception as exc:
                self._logger.error(f"Hit buffer flush failed: {exc}")

    async def start(self) -> None:
        if self._flush_task is None:
            self._flush_task = asyncio.create_task(self._flush_loop())

    async def close(self) -> None:
        if self._flush_task is not None:
            self._flush_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._flush_task
            self._flush_task = None
        try:
            await self.flush()
        except Exception as exc:
            self._logger.error(f"Final hit buffer flush failed: {exc}")

    async def ping(self) -> bool:
        return bool(await self._redis.ping())


def build_hit_counter(
    settings: Settings,
    store: MappingStore,
    cache_write: redis.Redis | None = None,
    metrics: LinkMetrics | None = None,
    logger: logging.Logger | logging.LoggerAdapter | None = None,
) -> DirectHitCounter | RedisHitBuffer:
    if settings.HIT_COUNTER_MODE is HitCounterMode.REDIS:
        if cache_write is None:
            raise ValueError("HIT_COUNTER_MODE=redis requires a Redis client")
        return RedisHitBuffer(
            cache_write,
            store,
            key_prefix=settings.CLICK_BUFFER_KEY_PREFIX,
            flush_interval=settings.HIT_FLUSH_INTERVAL_SECONDS,
            batch_size=settings.HIT_FLUSH_BATCH_SIZE,
            metrics=metrics,
            logger=logger,
        )
    return DirectHitCounter(store, metrics=metrics, logger=logger)
