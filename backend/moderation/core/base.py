"""SQLAlchemy declarative base and shared mixins.

- UUID primary keys (application-generated) so ids never leak volume.
- Timezone-aware UTC timestamps for audit timelines.
- JSON columns become JSONB on PostgreSQL and plain JSON elsewhere.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


UTC = timezone.utc

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def enum_values(enum_cls: Any) -> list[str]:
    """Persist enum *values* (lowercase wire strings), not member names."""
    return [m.value for m in enum_cls]


def require_utc(key: str, value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{key} must be timezone-aware (UTC).")
    if value.utcoffset() != timedelta(0):
        raise ValueError(f"{key} must be UTC (offset 0).")
    return value.astimezone(UTC)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class UUIDPrimaryKeyMixin:
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )


class CreatedAtMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
    )


class UpdatedAtMixin:
    """Only for mutable tables. Results, submissions and audit rows are append-only."""

    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        onupdate=utc_now,
    )
