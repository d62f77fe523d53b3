"""ModerationResult model.

One row per evaluation. Re-evaluating the same content appends a new row; the
history of automated decisions is never rewritten.
"""

from __future__ import annotations

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
    Integer,
    String,
    event,
    inspect,
)
from sqlalchemy.orm import Mapped, mapped_column, validates
from sqlalchemy.sql.sqltypes import Enum as SAEnum

from moderation.core.base import Base, JSONType, UUIDPrimaryKeyMixin, enum_values, require_utc, utc_now
from moderation.models.append_only import ImmutableRecordError


class Verdict(str, Enum):
    ALLOW = "allow"
    FLAG = "flag"
    REVIEW = "review"
    BLOCK = "block"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SEVERITY_RANK = {Severity.LOW: 1, Severity.MEDIUM: 2, Severity.HIGH: 3, Severity.CRITICAL: 4}


class ModerationResult(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "moderation_results"

    content_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey(
            "content_submissions.content_id",
            name="fk_moderation_results_content_id",
            ondelete="RESTRICT",
        ),
        nullable=False,
        index=True,
    )
    author_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    author_tier: Mapped[str] = mapped_column(String(16), nullable=False)
    author_score: Mapped[float] = mapped_column(Float, nullable=False)

    spam_score: Mapped[float] = mapped_column(Float, nullable=False)
    toxicity_score: Mapped[float] = mapped_column(Float, nullable=False)
    quality_score: Mapped[float] = mapped_column(Float, nullable=False)
    cultural_adjustment: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    raw_spam_score: Mapped[float] = mapped_column(Float, nullable=False)
    raw_toxicity_score: Mapped[float] = mapped_column(Float, nullable=False)
    flags: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    should_flag: Mapped[bool] = mapped_column(Boolean, nullable=False)
    severity: Mapped[Severity] = mapped_column(
        SAEnum(Severity, name="moderation_severity", native_enum=False, length=16, values_callable=enum_values),
        nullable=False,
    )
    action: Mapped[Verdict] = mapped_column(
        SAEnum(Verdict, name="moderation_verdict", native_enum=False, length=16, values_callable=enum_values),
        nullable=False,
    )
    confidence: Mapped[float] = mapped_column(Float, nullable=False)

    rule_ids_triggered: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    winning_rule_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    reasons: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    side_effects: Mapped[list[dict]] = mapped_column(JSONType, nullable=False, default=list)

    degraded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    processing_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint(
            "spam_score >= 0 AND spam_score <= 1 AND toxicity_score >= 0 AND toxicity_score <= 1 "
            "AND quality_score >= 0 AND quality_score <= 1",
            name="ck_moderation_results_score_range",
        ),
        CheckConstraint("confidence >= 0 AND confidence <= 1", name="ck_moderation_results_confidence_range"),
        Index("ix_moderation_results_computed_at", "computed_at"),
    )

    @validates("computed_at")
    def _validate_utc(self, key: str, value: datetime) -> datetime:
        return require_utc(key, value)  # type: ignore[return-value]


@event.listens_for(ModerationResult, "before_update", propagate=True)
def _moderation_result_prevent_updates(mapper, connection, target) -> None:
    """Reject any update after insert."""
    state = inspect(target)
    if not state.persistent:
        return
    for attr in state.mapper.column_attrs:
        if state.attrs[attr.key].history.has_changes():
            raise ImmutableRecordError(
                f"ModerationResult is immutable: field '{attr.key}' cannot be updated. "
                "Re-evaluate the content to append a new result."
            )


@event.listens_for(ModerationResult, "before_delete", propagate=True)
def _moderation_result_prevent_delete(mapper, connection, target) -> None:
    raise ImmutableRecordError("ModerationResult deletion is forbidden.")
