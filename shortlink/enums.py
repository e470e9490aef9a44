"""Shared enums for the short-link engine.

This module defines all status and state enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["HealthStatus", "RequestStatus", "CacheStatus", "LinkState", "HitCounterMode"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"

    @classmethod
    def from_bool(cls, ok: bool) -> "HealthStatus":
        return cls.HEALTHY if ok else cls.UNHEALTHY


class RequestStatus(StrEnum):
    """Request status values for metrics and logging."""

    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    EXHAUSTED = "exhausted"
    ERROR = "error"
    NOT_FOUND = "not_found"


class CacheStatus(StrEnum):
    """Cache status values for metrics."""

    HIT = "true"
    MISS = "false"


class LinkState(StrEnum):
    """Lifecycle of a ShortLink. Transitions only ACTIVE -> EXPIRED."""

    ACTIVE = "active"
    EXPIRED = "expired"


class HitCounterMode(StrEnum):
    """How resolutions are counted against the store."""

    DIRECT = "direct"
    REDIS = "redis"
