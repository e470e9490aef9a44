"""Allocation coordinator: the only writer of new ShortLink rows.

Flow Diagram — allocate()
=========================
::
    ┌─────────────┐
    │ target_url, │
    │ ttl?        │
    └──────┬──────┘
           ▼
    ┌─────────────┐  malformed
    │ Validate URL│ ──────────► InvalidURL (no store access)
    └──────┬──────┘
           ▼
    ┌─────────────┐◄───────────────────┐
    │ generate()  │                    │ taken → retry metric
    └──────┬──────┘                    │ (no backoff)
           ▼                           │
    ┌─────────────┐  False             │
    │ insert_if_  │ ───────────────────┘
    │ absent()    │
    └──────┬──────┘  attempts used up
           │ True    ────────────────► AllocationExhausted
           ▼
    ┌─────────────┐
    │ ShortLink   │
    └─────────────┘

StoreUnavailable from the store propagates untouched: only candidate
collisions are retried here. The cache is never warmed on creation.
"""

import datetime
import logging
import time

from shortlink.clock import Clock, utcnow
from shortlink.enums import RequestStatus
from shortlink.errors import AllocationExhausted, InvalidURL
from shortlink.generator import CodeGenerator
from shortlink.metrics import LinkMetrics
from shortlink.models import ShortLink
from shortlink.schemas import validate_target_url
from shortlink.store import MappingStore

__all__ = ["AllocationCoordinator"]


class AllocationCoordinator:
    """Turns a target URL into a persisted ShortLink with a fresh code.

    Concurrent ``allocate`` calls need no coordination beyond the store's
    unique constraint: two callers racing on the same candidate get exactly
    one True from ``insert_if_absent`` and the other simply draws again.

    Example:
        >>> coordinator = AllocationCoordinator(store, CodeGenerator(length=7))
        >>> link = await coordinator.allocate("https://example.com/very/long/path")
        >>> len(link.code)
        7
    """

    def __init__(
        self,
        store: MappingStore,
        generator: CodeGenerator,
        max_attempts: int = 8,
        clock: Clock = utcnow,
        metrics: LinkMetrics | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        assert max_attempts >= 1, f"max_attempts must be >= 1, got {max_attempts!r}"
        self._store = store
        self._generator = generator
        self._max_attempts = max_attempts
        self._clock = clock
        self._metrics = metrics or LinkMetrics()
        self._logger = logger or logging.getLogger(__name__)

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def allocate(self, target_url: str, ttl: datetime.timedelta | None = None) -> ShortLink:
        """Create a link for ``target_url``, optionally expiring after ``ttl``.

        Args:
            target_url: Absolute http(s) URL to redirect to.
            ttl: Lifetime of the link. A non-positive ttl creates a link that
                is already expired.

        Returns:
            ShortLink: The persisted record, hit_count 0.

        Raises:
            InvalidURL: ``target_url`` is malformed.
            AllocationExhausted: Every candidate within max_attempts was taken.
            StoreUnavailable: The store timed out or could not be reached.
        """
        start_time = time.perf_counter()
        try:
            target_url = validate_target_url(target_url)
        except InvalidURL as exc:
            self._metrics.allocation_failed(RequestStatus.VALIDATION_ERROR, time.perf_counter() - start_time)
            self._logger.info(f"Rejected link creation: {exc}")
            raise

        try:
            link = await self._insert_unique(target_url, ttl)
        except AllocationExhausted as exc:
            self._metrics.allocation_exhausted()
            self._metrics.allocation_failed(RequestStatus.EXHAUSTED, time.perf_counter() - start_time)
            self._logger.error(str(exc))
            raise
        except Exception:
            self._metrics.allocation_failed(RequestStatus.ERROR, time.perf_counter() - start_time)
            raise

        duration = time.perf_counter() - start_time
        self._metrics.link_created(duration)
        self._logger.info(f"Short link created: {link.code} -> {target_url} in {duration:.3f}s")
        return link

    async def _insert_unique(self, target_url: str, ttl: datetime.timedelta | None) -> ShortLink:
        for attempt in range(1, self._max_attempts + 1):
            created_at = self._clock()
            link = ShortLink(
                code=self._generator.generate(),
                target_url=target_url,
                created_at=created_at,
                expires_at=created_at + ttl if ttl is not None else None,
                hit_count=0,
            )
            if await self._store.insert_if_absent(link):
                return link

            self._metrics.allocation_retry()
            self._logger.debug(f"Candidate {link.code} already taken (attempt {attempt}/{self._max_attempts})")

        raise AllocationExhausted(self._max_attempts, self._generator.code_space)
