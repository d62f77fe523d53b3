"""FeedbackVote model: one community vote per (queue item, voter)."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql.sqltypes import Enum as SAEnum

from moderation.core.base import Base, UpdatedAtMixin, UUIDPrimaryKeyMixin, enum_values, utc_now


class SeverityRating(str, Enum):
    TOO_STRICT = "too_strict"
    ACCURATE = "accurate"
    TOO_LENIENT = "too_lenient"


class FeedbackVote(UUIDPrimaryKeyMixin, UpdatedAtMixin, Base):
    __tablename__ = "feedback_votes"

    queue_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("moderation_queue_items.id", name="fk_feedback_votes_queue_item_id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    voter_id: Mapped[str] = mapped_column(String(128), nullable=False)
    voter_tier: Mapped[str] = mapped_column(String(16), nullable=False)
    voter_weight: Mapped[float] = mapped_column(Float, nullable=False)
    was_accurate: Mapped[bool] = mapped_column(Boolean, nullable=False)
    severity_rating: Mapped[SeverityRating] = mapped_column(
        SAEnum(SeverityRating, name="severity_rating", native_enum=False, length=16, values_callable=enum_values),
        nullable=False,
    )
    # Community-trust nudge is applied once per (item, voter), even across overwrites.
    reputation_applied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("queue_item_id", "voter_id", name="uq_feedback_votes_item_voter"),
        Index("ix_feedback_votes_submitted_at", "submitted_at"),
    )
