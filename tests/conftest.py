"""Shared pytest fixtures: SQLite-backed store, controllable clocks, service and API client."""

import datetime
from collections.abc import AsyncGenerator
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from shortlink.cache import LinkCache
from shortlink.config import Settings
from shortlink.coordinator import AllocationCoordinator
from shortlink.database import create_engine, init_db, make_session_factory
from shortlink.dependencies import get_link_service
from shortlink.generator import CodeGenerator
from shortlink.hits import DirectHitCounter
from shortlink.main import app
from shortlink.metrics import LinkMetrics
from shortlink.resolver import Resolver
from shortlink.service import ShortLinkService
from shortlink.store import MappingStore


class WallClock:
    """Settable UTC clock for created_at / expires_at checks."""

    def __init__(self, start: datetime.datetime) -> None:
        self.now = start

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += datetime.timedelta(**kwargs)


class MonotonicClock:
    """Settable monotonic clock for cache entry lifetimes."""

    def __init__(self) -> None:
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'links.db'}",
        STORE_TIMEOUT_SECONDS=10.0,
        CODE_LENGTH=7,
        ALLOCATION_MAX_ATTEMPTS=8,
        CACHE_CAPACITY=1000,
        CACHE_TTL_SECONDS=60.0,
        CACHE_SHARDS=4,
    )


@pytest.fixture
def wall_clock() -> WallClock:
    return WallClock(datetime.datetime(2024, 1, 1, 12, 0, 0, tzinfo=datetime.timezone.utc))


@pytest.fixture
def mono_clock() -> MonotonicClock:
    return MonotonicClock()


@pytest.fixture
def metrics() -> MagicMock:
    return MagicMock(spec=LinkMetrics)


@pytest_asyncio.fixture
async def engine(settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_engine(settings.DATABASE_URL, settings)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession], settings: Settings) -> MappingStore:
    return MappingStore.from_settings(settings, session_factory)


@pytest.fixture
def generator(settings: Settings) -> CodeGenerator:
    return CodeGenerator.from_settings(settings)


@pytest.fixture
def cache(settings: Settings, mono_clock: MonotonicClock) -> LinkCache:
    return LinkCache(
        capacity=settings.CACHE_CAPACITY,
        ttl_seconds=settings.CACHE_TTL_SECONDS,
        shards=settings.CACHE_SHARDS,
        clock=mono_clock,
    )


@pytest.fixture
def hit_counter(store: MappingStore, metrics: MagicMock) -> DirectHitCounter:
    return DirectHitCounter(store, metrics=metrics)


@pytest.fixture
def coordinator(
    store: MappingStore, generator: CodeGenerator, wall_clock: WallClock, metrics: MagicMock, settings: Settings
) -> AllocationCoordinator:
    return AllocationCoordinator(
        store,
        generator,
        max_attempts=settings.ALLOCATION_MAX_ATTEMPTS,
        clock=wall_clock,
        metrics=metrics,
    )


@pytest.fixture
def resolver(
    store: MappingStore,
    cache: LinkCache,
    hit_counter: DirectHitCounter,
    generator: CodeGenerator,
    wall_clock: WallClock,
    metrics: MagicMock,
) -> Resolver:
    return Resolver(store, cache, hit_counter, generator=generator, clock=wall_clock, metrics=metrics)


@pytest_asyncio.fixture
async def service(
    coordinator: AllocationCoordinator,
    resolver: Resolver,
    store: MappingStore,
    cache: LinkCache,
    hit_counter: DirectHitCounter,
    wall_clock: WallClock,
) -> AsyncGenerator[ShortLinkService, None]:
    service = ShortLinkService(coordinator, resolver, store, cache, hit_counter, clock=wall_clock)
    await service.start()
    yield service
    await service.aclose()


@pytest_asyncio.fixture
async def client(service: ShortLinkService) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_link_service() -> ShortLinkService:
        return service

    app.dependency_overrides[get_link_service] = override_get_link_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
