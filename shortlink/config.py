"""Configuration management for the short-link engine.

This module provides centralized configuration management using Pydantic BaseSettings
with environment variable support and caching for performance.

Flow Diagram — get_settings()
=============================
::
    ┌─────────────┐
    │  Call get_  │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check cache  │
    │ (lru_cache)  │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Settings│  │ cached  │
│ instance│  │ value   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1 — Import**::
    from shortlink.config import get_settings

**Step 2 — Get settings**::
    settings = get_settings()
    db_url = settings.DATABASE_URL

**Step 3 — Override in tests**::
    settings = Settings(DATABASE_URL="sqlite+aiosqlite:///./test.db", CODE_LENGTH=4)

Key Behaviours
===============
- Settings are cached after first access for performance.
- Environment variables override defaults automatically.
- Invalid values (e.g. a zero code length) raise ValidationError on load.

Classes:
    Settings:  Pydantic model for all configuration values.

"""

__all__ = ["Settings", "get_settings"]

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shortlink.enums import HitCounterMode

BASE62_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
MAX_CODE_LENGTH = 32


class Settings(BaseSettings):
    APP_NAME: str = "shortlink"
    APP_ENV: str = "development"
    BASE_URL: str = "http://localhost:8080"
    LOG_LEVEL: str = "INFO"

    # Mapping store
    DATABASE_URL: str = "postgresql+asyncpg://shortlink:shortlink@db:5432/shortlink"
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    STORE_TIMEOUT_SECONDS: float = Field(2.0, gt=0)

    # Redis (only used when HIT_COUNTER_MODE=redis)
    REDIS_URL: str = "redis://redis:6379/0"

    # Short code policy: 62^7 ≈ 3.5e12 codes
    CODE_ALPHABET: str = BASE62_ALPHABET
    CODE_LENGTH: int = Field(7, ge=1, le=MAX_CODE_LENGTH)
    ALLOCATION_MAX_ATTEMPTS: int = Field(8, ge=1)

    # In-process resolution cache
    CACHE_CAPACITY: int = Field(100_000, ge=1)
    CACHE_TTL_SECONDS: float = Field(300.0, gt=0)
    CACHE_SHARDS: int = Field(16, ge=1)
    REDIRECT_CACHE_CONTROL: str = "public, max-age=300, s-maxage=300, stale-while-revalidate=300, stale-if-error=300"

    # Hit counting
    HIT_COUNTER_MODE: HitCounterMode = HitCounterMode.DIRECT
    HIT_FLUSH_INTERVAL_SECONDS: float = Field(5.0, gt=0)
    HIT_FLUSH_BATCH_SIZE: int = Field(500, ge=1)
    CLICK_BUFFER_KEY_PREFIX: str = "click_buffer"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
