"""Mapping store: the durable, authoritative code -> URL relation.

Every operation opens its own AsyncSession from the injected factory, so one
store instance can be shared by any number of concurrent requests. All
shared mutation goes through two database primitives: the primary-key
unique constraint (insert-if-absent) and a single-statement atomic add
(hit counting). No application-level lock is taken.

Flow Diagram — insert_if_absent()
=================================
::
    ┌─────────────┐
    │  ShortLink  │
    │  candidate  │
    └──────┬──────┘
           ▼
    ┌─────────────┐     caller cancelled?
    │ shield +    │ ──► write keeps running,
    │ wait_for    │     result discarded
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ INSERT +    │
    │ COMMIT      │
    └──────┬──────┘
    UNIQUE │ violation?
    ┌──────┴─────┐
    │ NO          │ YES
    ▼             ▼
 ┌──────┐    ┌──────────┐
 │ True │    │ rollback │
 └──────┘    │ → False  │
             └──────────┘

Key Behaviours
===============
- Timeouts and connection failures surface as StoreUnavailable, never hang.
- Other database errors (bad data, bad SQL) propagate unchanged.
- Reads hit the database directly; this layer never serves stale data.
- increment_hits on a vanished row logs a warning and returns.
- expire() only moves expires_at earlier, never later.

Classes:
    MappingStore:  Async SQLAlchemy implementation of the store contract.
"""

import asyncio
import datetime
import logging
from collections.abc import Coroutine
from typing import Any, TypeVar

from sqlalchemy import or_, text, update
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortlink.config import Settings
from shortlink.errors import NotFound, StoreUnavailable
from shortlink.models import ShortLink

__all__ = ["MappingStore"]

T = TypeVar("T")


class MappingStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout: float = 2.0,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        assert timeout > 0, f"timeout must be positive, got {timeout!r}"
        self._session_factory = session_factory
        self._timeout = timeout
        self._logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> "MappingStore":
        return cls(session_factory, timeout=settings.STORE_TIMEOUT_SECONDS, logger=logger)

    # ========================================================================
    # STORE CONTRACT
    # ========================================================================

    async def insert_if_absent(self, link: ShortLink) -> bool:
        """Insert ``link`` unless its code already exists, active or tombstoned.

        Returns:
            bool: True when the row was written, False when the code was taken.
        """
        assert link.code, "link.code must be set"
        return await self._run("insert_if_absent", self._insert(link), write=True)

    async def get(self, code: str) -> ShortLink:
        link = await self._run("get", self._get(code))
        if link is None:
            raise NotFound(code)
        return link

    async def increment_hits(self, code: str, delta: int = 1) -> None:
        """Atomically add ``delta`` to the link's hit_count.

        A missing row is logged and ignored; store failures still raise
        StoreUnavailable so the hit counters can decide what to do with them.
        """
        assert isinstance(delta, int) and delta > 0, f"delta must be positive int, got {delta!r}"
        updated = await self._run("increment_hits", self._increment(code, delta), write=True)
        if not updated:
            self._logger.warning(f"Hit count increment for missing code {code} dropped (delta={delta})")

    async def expire(self, code: str, now: datetime.datetime) -> ShortLink:
        """Tombstone ``code`` as of ``now`` unless it already expired earlier."""
        link = await self._run("expire", self._expire(code, now), write=True)
        if link is None:
            raise NotFound(code)
        return link

    async def ping(self) -> bool:
        await self._run("ping", self._ping())
        return True

    # ========================================================================
    # SESSION-LEVEL IMPLEMENTATIONS
    # ========================================================================

    async def _insert(self, link: ShortLink) -> bool:
        async with self._session_factory() as session:
            session.add(link)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                return False
        return True

    async def _get(self, code: str) -> ShortLink | None:
        async with self._session_factory() as session:
            return await session.get(ShortLink, code)

    async def _increment(self, code: str, delta: int) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                update(ShortLink)
                .where(ShortLink.code == code)
                .values(hit_count=ShortLink.hit_count + delta)
            )
            await session.commit()
        return result.rowcount > 0

    async def _expire(self, code: str, now: datetime.datetime) -> ShortLink | None:
        async with self._session_factory() as session:
            await session.execute(
                update(ShortLink)
                .where(ShortLink.code == code)
                .where(or_(ShortLink.expires_at.is_(None), ShortLink.expires_at > now))
                .values(expires_at=now)
            )
            await session.commit()
            return await session.get(ShortLink, code, populate_existing=True)

    async def _ping(self) -> None:
        async with self._session_factory() as session:
            await session.execute(text("SELECT 1"))

    # ========================================================================
    # TIMEOUT / FAILURE TRANSLATION
    # ========================================================================

    async def _run(self, operation: str, coro: Coroutine[Any, Any, T], *, write: bool = False) -> T:
        if write:
            # Writes run as their own task so a timeout or caller cancellation
            # never interrupts a commit half way.
            task = asyncio.ensure_future(coro)
            task.add_done_callback(self._consume_orphaned_result)
            awaitable = asyncio.shield(task)
        else:
            awaitable = coro

        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            self._logger.error(f"Store {operation} timed out after {self._timeout}s")
            raise StoreUnavailable(operation, f"timed out after {self._timeout}s") from exc
        except (OperationalError, InterfaceError, PoolTimeoutError, OSError) as exc:
            self._logger.error(f"Store {operation} failed: {exc}")
            raise StoreUnavailable(operation, str(exc)) from exc
        except DBAPIError as exc:
            # Data and programming errors are not transient and propagate as-is.
            if not exc.connection_invalidated:
                raise
            self._logger.error(f"Store {operation} lost its connection: {exc}")
            raise StoreUnavailable(operation, str(exc)) from exc

    def _consume_orphaned_result(self, task: "asyncio.Future[Any]") -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.debug(f"Store write finished with {type(exc).__name__}: {exc}")
