"""ContentReport model: a user-initiated flag on a piece of content."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql.sqltypes import Enum as SAEnum

from moderation.core.base import Base, CreatedAtMixin, JSONType, UpdatedAtMixin, UUIDPrimaryKeyMixin, enum_values
from moderation.models.content_submission import ContentType


class ReportCategory(str, Enum):
    SPAM = "spam"
    INAPPROPRIATE = "inappropriate"
    HARASSMENT = "harassment"
    FAKE = "fake"
    MISINFORMATION = "misinformation"
    OTHER = "other"


class ReportPriority(str, Enum):
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ReportStatus(str, Enum):
    PENDING = "pending"
    REVIEWING = "reviewing"
    RESOLVED = "resolved"


class ReportResolution(str, Enum):
    UPHELD = "upheld"
    DISMISSED = "dismissed"


def priority_for(category: ReportCategory) -> ReportPriority:
    if category == ReportCategory.MISINFORMATION:
        return ReportPriority.URGENT
    if category in (ReportCategory.HARASSMENT, ReportCategory.FAKE):
        return ReportPriority.HIGH
    return ReportPriority.MEDIUM


_OPEN_WHERE = "status IN ('pending', 'reviewing')"


class ContentReport(UUIDPrimaryKeyMixin, CreatedAtMixin, UpdatedAtMixin, Base):
    __tablename__ = "content_reports"

    content_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    content_type: Mapped[ContentType] = mapped_column(
        SAEnum(ContentType, name="content_type", native_enum=False, length=16, values_callable=enum_values),
        nullable=False,
    )
    reporter_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    category: Mapped[ReportCategory] = mapped_column(
        SAEnum(ReportCategory, name="report_category", native_enum=False, length=16, values_callable=enum_values),
        nullable=False,
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    evidence_urls: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    priority: Mapped[ReportPriority] = mapped_column(
        SAEnum(ReportPriority, name="report_priority", native_enum=False, length=16, values_callable=enum_values),
        nullable=False,
    )
    status: Mapped[ReportStatus] = mapped_column(
        SAEnum(ReportStatus, name="report_status", native_enum=False, length=16, values_callable=enum_values),
        nullable=False,
        default=ReportStatus.PENDING,
    )
    queue_item_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("moderation_queue_items.id", name="fk_content_reports_queue_item_id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    resolution: Mapped[Optional[ReportResolution]] = mapped_column(
        SAEnum(ReportResolution, name="report_resolution", native_enum=False, length=16, values_callable=enum_values),
        nullable=True,
    )
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "uq_content_reports_open_per_reporter",
            "reporter_id",
            "content_id",
            unique=True,
            postgresql_where=text(_OPEN_WHERE),
            sqlite_where=text(_OPEN_WHERE),
        ),
    )
