"""ModerationAction model: immutable log of every human or automated action."""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql.sqltypes import Enum as SAEnum

from moderation.core.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin, enum_values
from moderation.models.append_only import register_append_only


AUTOMATED_MODERATOR_ID = "auto_moderation_system"


class ActionType(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    EDIT = "edit"
    WARN = "warn"
    BAN = "ban"
    BLOCK = "block"


class ModerationAction(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "moderation_actions"

    queue_item_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("moderation_queue_items.id", name="fk_moderation_actions_queue_item_id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    content_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    moderator_id: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. "mod-17" or AUTOMATED_MODERATOR_ID
    action_type: Mapped[ActionType] = mapped_column(
        SAEnum(ActionType, name="moderation_action_type", native_enum=False, length=16, values_callable=enum_values),
        nullable=False,
    )
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_automated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Recorded when a moderator applies a community override of an earlier resolution.
    is_community_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (Index("ix_moderation_actions_created_at", "created_at"),)


register_append_only(ModerationAction)
