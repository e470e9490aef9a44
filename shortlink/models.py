"""SQLAlchemy ORM models for the short-link engine.

This module defines the single persisted entity, ShortLink, and the UTC
timestamp column type it uses.

Data Model Layout
=================
::
    short_links table
    ├─ code (VARCHAR(32) PRIMARY KEY)
    ├─ target_url (TEXT NOT NULL)
    ├─ created_at (TIMESTAMPTZ NOT NULL)
    ├─ expires_at (TIMESTAMPTZ NULL, INDEXED)
    └─ hit_count (BIGINT DEFAULT 0)

How to Use
===========
**Step 1 — Import**::
    from shortlink.models import ShortLink

**Step 2 — Build a record**::
    link = ShortLink(code="aZ3kP9q", target_url="https://example.com", created_at=utcnow())

**Step 3 — Check its state**::
    if link.is_expired(utcnow()):
        ...

Key Behaviours
===============
- code is the primary key; the unique constraint is what makes
  insert-if-absent atomic across processes.
- Rows are never deleted: expiry is logical, so expired codes stay reserved.
- hit_count only changes through a single UPDATE ... SET hit_count = hit_count + n.
- Timestamps always come back as aware UTC datetimes, even from SQLite.

Classes:
    UTCDateTime:  Column type normalising datetimes to UTC.
    ShortLink:  A code -> URL mapping with a raw hit counter.
"""

import datetime

from sqlalchemy import BigInteger, DateTime, String, Text
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from shortlink.clock import ensure_utc
from shortlink.config import MAX_CODE_LENGTH
from shortlink.database import Base
from shortlink.enums import LinkState

__all__ = ["ShortLink", "UTCDateTime"]


class UTCDateTime(TypeDecorator):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime.datetime | None, dialect: Dialect) -> datetime.datetime | None:
        if value is None:
            return None
        value = ensure_utc(value)
        # SQLite stores naive ISO strings; keep them all in UTC so they compare correctly.
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime.datetime | None, dialect: Dialect) -> datetime.datetime | None:
        if value is None:
            return None
        return ensure_utc(value)


class ShortLink(Base):
    __tablename__ = "short_links"

    code: Mapped[str] = mapped_column(String(MAX_CODE_LENGTH), primary_key=True)
    target_url: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime, nullable=False)
    expires_at: Mapped[datetime.datetime | None] = mapped_column(UTCDateTime, nullable=True, index=True)
    hit_count: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    def is_expired(self, now: datetime.datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def state(self, now: datetime.datetime) -> LinkState:
        return LinkState.EXPIRED if self.is_expired(now) else LinkState.ACTIVE

    def __repr__(self) -> str:
        return f"<ShortLink(code='{self.code}', hit_count={self.hit_count}, expires_at={self.expires_at})>"
