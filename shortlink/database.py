"""Database configuration and session management for the mapping store.

This module provides SQLAlchemy async engine setup, session factories,
and database lifecycle operations. PostgreSQL (asyncpg) is the production
backend; SQLite (aiosqlite) works for local runs and tests.

Flow Diagram — Database Operations
=================================
::
    ┌─────────────┐
    │  Store call │
    │ (get/insert)│
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ session     │
    │ factory     │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Open async  │
    │ session     │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Execute +   │
    │ commit      │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Auto-close   │
    │ (async with) │
    └─────────────┘

How to Use
===========
**Step 1 — Initialize on startup**::
    await init_db()  # Creates tables

**Step 2 — Hand the factory to the store**::
    store = MappingStore(get_session_factory(), timeout=2.0)

**Step 3 — Cleanup on shutdown**::
    await close_db()

Key Behaviours
===============
- The engine is created lazily on first use, not at import time.
- Connection pooling arguments only apply to server databases.
- Tables are created automatically on application startup.
- Engine is properly disposed on application shutdown.

Classes:
    Base:  SQLAlchemy declarative base for all models.

Functions:
    create_engine():  Builds an async engine for a database URL.
    get_engine():  Process-wide engine from settings.
    get_session_factory():  Process-wide async_sessionmaker.
    init_db():  Creates all tables on startup.
    close_db():  Disposes the engine on shutdown.
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from shortlink.config import Settings, get_settings

__all__ = [
    "Base",
    "create_engine",
    "make_session_factory",
    "get_engine",
    "get_session_factory",
    "init_db",
    "close_db",
]

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


class Base(DeclarativeBase):
    pass


def create_engine(database_url: str, settings: Settings | None = None) -> AsyncEngine:
    settings = settings or get_settings()
    if make_url(database_url).get_backend_name() == "sqlite":
        return create_async_engine(database_url, echo=False)

    return create_async_engine(
        database_url,
        echo=(settings.APP_ENV == "development"),
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
    )


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(settings.DATABASE_URL, settings)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = make_session_factory(get_engine())
    return _session_factory


async def init_db(engine: AsyncEngine | None = None) -> None:
    # Register the models on Base.metadata before create_all.
    import shortlink.models  # noqa: F401

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
