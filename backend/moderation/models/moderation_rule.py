"""ModerationRule model: declarative rule definitions (data, not code)."""

from __future__ import annotations

from sqlalchemy import Boolean, CheckConstraint, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from moderation.core.base import Base, CreatedAtMixin, JSONType, UpdatedAtMixin


class ModerationRule(CreatedAtMixin, UpdatedAtMixin, Base):
    __tablename__ = "moderation_rules"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)  # slug, also the tie-break key
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    conditions: Mapped[list[dict]] = mapped_column(JSONType, nullable=False)
    actions: Mapped[list[dict]] = mapped_column(JSONType, nullable=False)
    activation_threshold: Mapped[float] = mapped_column(Float, nullable=False, default=0.6)
    min_threshold: Mapped[float] = mapped_column(Float, nullable=False, default=0.3)
    max_threshold: Mapped[float] = mapped_column(Float, nullable=False, default=0.95)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    times_triggered: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(
            "min_threshold >= 0 AND max_threshold <= 1 AND min_threshold <= max_threshold",
            name="ck_moderation_rules_threshold_bounds",
        ),
        CheckConstraint(
            "activation_threshold >= min_threshold AND activation_threshold <= max_threshold",
            name="ck_moderation_rules_activation_in_bounds",
        ),
    )
