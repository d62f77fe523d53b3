"""QueueItem model.

State machine: pending -> reviewing -> {approved, rejected}; approved and
rejected are terminal. At most one non-terminal item per content_id, enforced
by a partial unique index (and serialized per content_id in the service).
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql.sqltypes import Enum as SAEnum

from moderation.core.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin, enum_values
from moderation.models.content_submission import ContentType
from moderation.models.moderation_result import Severity


class QueueStatus(str, Enum):
    PENDING = "pending"
    REVIEWING = "reviewing"
    APPROVED = "approved"
    REJECTED = "rejected"


class ResolutionAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    EDIT = "edit"
    WARN = "warn"
    BAN = "ban"


ACTIVE_STATUSES = (QueueStatus.PENDING, QueueStatus.REVIEWING)
TERMINAL_STATUSES = (QueueStatus.APPROVED, QueueStatus.REJECTED)

_ACTIVE_WHERE = "status IN ('pending', 'reviewing')"


class QueueItem(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "moderation_queue_items"

    content_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    content_type: Mapped[ContentType] = mapped_column(
        SAEnum(ContentType, name="content_type", native_enum=False, length=16, values_callable=enum_values),
        nullable=False,
    )
    author_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    result_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("moderation_results.id", name="fk_queue_items_result_id", ondelete="RESTRICT"),
        nullable=True,
    )

    reason: Mapped[str] = mapped_column(Text, nullable=False)
    severity: Mapped[Severity] = mapped_column(
        SAEnum(Severity, name="moderation_severity", native_enum=False, length=16, values_callable=enum_values),
        nullable=False,
    )
    status: Mapped[QueueStatus] = mapped_column(
        SAEnum(QueueStatus, name="queue_status", native_enum=False, length=16, values_callable=enum_values),
        nullable=False,
        default=QueueStatus.PENDING,
    )
    auto_flagged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    flag_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    reported_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    assigned_moderator: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    moderator_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    action_taken: Mapped[Optional[ResolutionAction]] = mapped_column(
        SAEnum(ResolutionAction, name="resolution_action", native_enum=False, length=16, values_callable=enum_values),
        nullable=True,
    )
    # Set once community feedback has moved a rule threshold for this item.
    threshold_adjusted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("flag_score >= 0 AND flag_score <= 1", name="ck_queue_items_flag_score_range"),
        Index(
            "uq_queue_items_active_content",
            "content_id",
            unique=True,
            postgresql_where=text(_ACTIVE_WHERE),
            sqlite_where=text(_ACTIVE_WHERE),
        ),
        Index("ix_queue_items_status_created", "status", "created_at"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
