"""Reputation models.

ReputationScore holds the current factor values per user. ReputationEvent is the
append-only log of every delta that produced them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Float, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from moderation.core.base import Base, CreatedAtMixin, JSONType, UUIDPrimaryKeyMixin, utc_now
from moderation.models.append_only import register_append_only


class ReputationScore(CreatedAtMixin, Base):
    __tablename__ = "reputation_scores"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)

    content_quality: Mapped[float] = mapped_column(Float, nullable=False)
    community_helpfulness: Mapped[float] = mapped_column(Float, nullable=False)
    consistent_activity: Mapped[float] = mapped_column(Float, nullable=False)
    moderation_history: Mapped[float] = mapped_column(Float, nullable=False)
    expertise: Mapped[float] = mapped_column(Float, nullable=False)
    community_trust: Mapped[float] = mapped_column(Float, nullable=False)
    account_maturity: Mapped[float] = mapped_column(Float, nullable=False)
    behavior_pattern: Mapped[float] = mapped_column(Float, nullable=False)

    overall_score: Mapped[float] = mapped_column(Float, nullable=False)
    trust_tier: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    last_calculated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint("overall_score >= 0 AND overall_score <= 1000", name="ck_reputation_scores_overall_range"),
    )


class ReputationEvent(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "reputation_events"

    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    reason: Mapped[str] = mapped_column(String(64), nullable=False)  # e.g. "resolution:reject", "vote:accurate"
    source_ref: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    deltas: Mapped[dict] = mapped_column(JSONType, nullable=False)
    score_before: Mapped[float] = mapped_column(Float, nullable=False)
    score_after: Mapped[float] = mapped_column(Float, nullable=False)
    tier_before: Mapped[str] = mapped_column(String(16), nullable=False)
    tier_after: Mapped[str] = mapped_column(String(16), nullable=False)

    __table_args__ = (Index("ix_reputation_events_user_created", "user_id", "created_at"),)


register_append_only(ReputationEvent)
