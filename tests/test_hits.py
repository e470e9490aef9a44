"""Hit counter tests: direct fire-and-forget increments and the Redis buffer."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError

from shortlink.config import Settings
from shortlink.enums import HitCounterMode
from shortlink.errors import StoreUnavailable
from shortlink.hits import DirectHitCounter, RedisHitBuffer, _BackgroundHitCounter, build_hit_counter
from shortlink.store import MappingStore


@pytest.fixture
def mock_store() -> MagicMock:
    store = MagicMock(spec=MappingStore)
    store.increment_hits = AsyncMock(return_value=None)
    return store


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Mock Redis client."""
    redis_client = AsyncMock(spec=redis.Redis)
    redis_client.incr = AsyncMock(return_value=1)
    redis_client.incrby = AsyncMock(return_value=1)
    redis_client.sadd = AsyncMock(return_value=1)
    redis_client.spop = AsyncMock(return_value=[])
    redis_client.getdel = AsyncMock(return_value=None)
    redis_client.ping = AsyncMock(return_value=True)
    return redis_client


# ============================================================================
# DIRECT COUNTER
# ============================================================================


@pytest.mark.asyncio
async def test_direct_record_is_applied_in_background(mock_store: MagicMock, metrics: MagicMock) -> None:
    counter = DirectHitCounter(mock_store, metrics=metrics)

    counter.record("abc1234")
    counter.record("abc1234")
    assert counter.pending == 2
    await counter.drain()

    assert counter.pending == 0
    assert mock_store.increment_hits.await_count == 2
    mock_store.increment_hits.assert_awaited_with("abc1234")


@pytest.mark.asyncio
async def test_direct_failure_is_swallowed_and_counted(mock_store: MagicMock, metrics: MagicMock) -> None:
    mock_store.increment_hits.side_effect = StoreUnavailable("increment_hits", "timed out")
    counter = DirectHitCounter(mock_store, metrics=metrics)

    counter.record("abc1234")
    await counter.close()

    metrics.hit_count_failure.assert_called_once_with()


@pytest.mark.asyncio
async def test_direct_ping_is_healthy(mock_store: MagicMock) -> None:
    assert await DirectHitCounter(mock_store).ping() is True


# ============================================================================
# REDIS BUFFER
# ============================================================================


@pytest.mark.asyncio
async def test_buffer_record_increments_redis(mock_redis: AsyncMock, mock_store: MagicMock) -> None:
    buffer = RedisHitBuffer(mock_redis, mock_store, key_prefix="click_buffer")

    buffer.record("abc1234")
    await buffer.drain()

    mock_redis.incr.assert_awaited_once_with("click_buffer:abc1234")
    mock_redis.sadd.assert_awaited_once_with("click_buffer:pending", "abc1234")


@pytest.mark.asyncio
async def test_failed_flush_keeps_rest_of_batch_for_next_flush(mock_store: MagicMock) -> None:
    buffers: dict[str, int] = {}
    pending: set[str] = set()

    async def incrby(key: str, amount: int = 1) -> int:
        buffers[key] = buffers.get(key, 0) + amount
        return buffers[key]

    async def sadd(key: str, *members: str) -> int:
        pending.update(members)
        return len(members)

    async def spop(key: str, count: int) -> list[str]:
        popped = sorted(pending)[:count]
        pending.difference_update(popped)
        return popped

    async def getdel(key: str) -> str | None:
        value = buffers.pop(key, None)
        return str(value) if value is not None else None

    redis_client = AsyncMock(spec=redis.Redis)
    redis_client.incr.side_effect = incrby
    redis_client.incrby.side_effect = incrby
    redis_client.sadd.side_effect = sadd
    redis_client.spop.side_effect = spop
    redis_client.getdel.side_effect = getdel

    applied: dict[str, int] = {}
    outages = [StoreUnavailable("increment_hits", "timed out")]

    async def increment_hits(code: str, delta: int = 1) -> None:
        if outages:
            raise outages.pop()
        applied[code] = applied.get(code, 0) + delta

    mock_store.increment_hits.side_effect = increment_hits
    buffer = RedisHitBuffer(redis_client, mock_store, batch_size=10)
    for code in ("aaaaaaa", "bbbbbbb", "bbbbbbb", "ccccccc"):
        buffer.record(code)
    await buffer.drain()

    assert await buffer.flush() == 0
    assert pending == {"aaaaaaa", "bbbbbbb", "ccccccc"}

    assert await buffer.flush() == 4
    assert applied == {"aaaaaaa": 1, "bbbbbbb": 2, "ccccccc": 1}
    assert buffers == {}
    assert pending == set()
    mock_store.increment_hits.assert_not_awaited()


@pytest.mark.asyncio
async def test_buffer_record_failure_is_swallowed(
    mock_redis: AsyncMock, mock_store: MagicMock, metrics: MagicMock
) -> None:
    mock_redis.incr.side_effect = RedisConnectionError("connection refused")
    buffer = RedisHitBuffer(mock_redis, mock_store, metrics=metrics)

    buffer.record("abc1234")
    await buffer.drain()

    metrics.hit_count_failure.assert_called_once()


@pytest.mark.asyncio
async def test_flush_applies_buffered_deltas(mock_redis: AsyncMock, mock_store: MagicMock) -> None:
    mock_redis.spop.side_effect = [["abc1234", "xyz9876"], []]
    mock_redis.getdel.side_effect = ["3", "2"]
    buffer = RedisHitBuffer(mock_redis, mock_store, batch_size=2)

    applied = await buffer.flush()

    assert applied == 5
    mock_store.increment_hits.assert_any_await("abc1234", 3)
    mock_store.increment_hits.assert_any_await("xyz9876", 2)


@pytest.mark.asyncio
async def test_flush_skips_codes_without_delta(mock_redis: AsyncMock, mock_store: MagicMock) -> None:
    mock_redis.spop.side_effect = [["abc1234"]]
    mock_redis.getdel.side_effect = [None]
    buffer = RedisHitBuffer(mock_redis, mock_store)

    assert await buffer.flush() == 0
    mock_store.increment_hits.assert_not_awaited()


@pytest.mark.asyncio
async def test_flush_requeues_when_store_is_down(mock_redis: AsyncMock, mock_store: MagicMock) -> None:
    mock_redis.spop.side_effect = [["abc1234"]]
    mock_redis.getdel.side_effect = ["4"]
    mock_store.increment_hits.side_effect = StoreUnavailable("increment_hits", "timed out")
    buffer = RedisHitBuffer(mock_redis, mock_store)

    assert await buffer.flush() == 0

    mock_redis.incrby.assert_awaited_once_with("click_buffer:abc1234", 4)
    mock_redis.sadd.assert_awaited_once_with("click_buffer:pending", "abc1234")


@pytest.mark.asyncio
async def test_flush_loop_runs_until_close(mock_redis: AsyncMock, mock_store: MagicMock) -> None:
    buffer = RedisHitBuffer(mock_redis, mock_store, flush_interval=0.01)

    await buffer.start()
    await asyncio.sleep(0.05)
    await buffer.close()

    # periodic flushes plus the final one on close
    assert mock_redis.spop.await_count >= 2


@pytest.mark.asyncio
async def test_buffer_ping(mock_redis: AsyncMock, mock_store: MagicMock) -> None:
    assert await RedisHitBuffer(mock_redis, mock_store).ping() is True
    mock_redis.ping.assert_awaited_once()


# ============================================================================
# FACTORY
# ============================================================================


def test_build_direct_counter_by_default(mock_store: MagicMock) -> None:
    counter = build_hit_counter(Settings(), mock_store)
    assert isinstance(counter, DirectHitCounter)


def test_build_redis_buffer(mock_store: MagicMock, mock_redis: AsyncMock) -> None:
    settings = Settings(HIT_COUNTER_MODE=HitCounterMode.REDIS, CLICK_BUFFER_KEY_PREFIX="hits")
    counter = build_hit_counter(settings, mock_store, mock_redis)
    assert isinstance(counter, RedisHitBuffer)


def test_build_redis_buffer_requires_client(mock_store: MagicMock) -> None:
    with pytest.raises(ValueError):
        build_hit_counter(Settings(HIT_COUNTER_MODE="redis"), mock_store)


def test_counter_base_cannot_be_instantiated(mock_store: MagicMock) -> None:
    with pytest.raises(TypeError):
        _BackgroundHitCounter(mock_store)
