"""Pydantic schemas for link creation, resolution results and cached entries.

This module defines Pydantic models for input validation and output
serialization, shared by the link service and the HTTP routes.

Schema Hierarchy
=================
::
    LinkCreate (Input)
    ├─ url: str (validated absolute http/https URL)
    └─ ttl_seconds: int | None (optional, >= 1)

    CreatedLink (Output of create_link)
    ├─ code: str
    ├─ target_url: str
    ├─ created_at: datetime
    ├─ expires_at: datetime | None
    └─ short_url: str | None (set by the HTTP layer from BASE_URL)

    LinkResolution (Output of resolve_link)
    └─ target_url: str

    LinkStats (Output)
    ├─ CreatedLink fields
    ├─ hit_count: int
    └─ state: LinkState

    CachedLink (Cache entry, never carries hit_count)
    ├─ code: str
    ├─ target_url: str
    └─ expires_at: datetime | None

How to Use
===========
**Step 1 — Input validation**::
    payload = LinkCreate(url="https://example.com", ttl_seconds=3600)

**Step 2 — Shared URL check**::
    target_url = validate_target_url(raw)  # raises InvalidURL

**Step 3 — Response serialization**::
    return CreatedLink.model_validate(link)

Key Behaviours
===============
- URL validation uses the validators library for RFC compliance.
- Only http and https targets are accepted.
- All datetime fields are timezone-aware UTC.
- Models are configured for ORM attribute mapping.

Classes:
    LinkCreate:  Input schema for link creation.
    CreatedLink:  Output schema for created links.
    LinkResolution:  Output schema for resolutions.
    LinkStats:  Output schema for link statistics.
    CachedLink:  Resolution cache entry.
    HealthResponse:  Output schema for health checks.
"""

import datetime

import validators
from pydantic import BaseModel, Field, field_validator

from shortlink.enums import HealthStatus, LinkState
from shortlink.errors import InvalidURL

__all__ = [
    "validate_target_url",
    "LinkCreate",
    "CreatedLink",
    "LinkResolution",
    "LinkStats",
    "CachedLink",
    "HealthResponse",
]

ALLOWED_SCHEMES = ("http://", "https://")


def validate_target_url(value: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidURL(str(value), "Empty URL provided")
    value = value.strip()
    if not value.lower().startswith(ALLOWED_SCHEMES):
        raise InvalidURL(value, "URL must be absolute http or https")
    if not validators.url(value):
        raise InvalidURL(value)
    return value


class LinkCreate(BaseModel):
    url: str
    ttl_seconds: int | None = Field(None, ge=1, description="Lifetime of the link; omitted means no expiry.")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return validate_target_url(v)

    @property
    def ttl(self) -> datetime.timedelta | None:
        if self.ttl_seconds is None:
            return None
        return datetime.timedelta(seconds=self.ttl_seconds)


class CreatedLink(BaseModel):
    code: str
    target_url: str
    created_at: datetime.datetime
    expires_at: datetime.datetime | None = None
    short_url: str | None = None

    model_config = {"from_attributes": True}


class LinkResolution(BaseModel):
    target_url: str


class LinkStats(BaseModel):
    code: str
    target_url: str
    hit_count: int
    created_at: datetime.datetime
    expires_at: datetime.datetime | None = None
    state: LinkState

    model_config = {"from_attributes": True}


class CachedLink(BaseModel):
    """Resolution cache payload; hit_count is deliberately absent."""

    code: str
    target_url: str
    expires_at: datetime.datetime | None = None

    model_config = {"from_attributes": True, "frozen": True}

    def is_expired(self, now: datetime.datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
    hit_counter: HealthStatus
