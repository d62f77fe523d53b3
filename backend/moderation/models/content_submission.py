"""ContentSubmission model.

The exact text that was evaluated. Immutable once created: re-evaluation reads
the stored text and appends a new ModerationResult.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column, validates
from sqlalchemy.sql.sqltypes import Enum as SAEnum

from moderation.core.base import Base, CreatedAtMixin, enum_values, require_utc
from moderation.models.append_only import register_append_only


class ContentType(str, Enum):
    QUESTION = "question"
    ANSWER = "answer"
    FORUM_POST = "forum_post"
    FORUM_REPLY = "forum_reply"
    STORY = "story"
    COMMENT = "comment"


class ContentSubmission(CreatedAtMixin, Base):
    __tablename__ = "content_submissions"

    content_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    content_type: Mapped[ContentType] = mapped_column(
        SAEnum(ContentType, name="content_type", native_enum=False, length=16, values_callable=enum_values),
        nullable=False,
    )
    author_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @validates("submitted_at")
    def _validate_utc(self, key: str, value: datetime) -> datetime:
        return require_utc(key, value)  # type: ignore[return-value]


register_append_only(ContentSubmission)
