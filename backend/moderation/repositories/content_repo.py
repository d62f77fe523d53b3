"""Submission, result and action repositories (append-only tables)."""

from __future__ import annotations

import uuid
from typing import Optional, Sequence

from sqlalchemy import desc, select

from moderation.models.content_submission import ContentSubmission
from moderation.models.moderation_action import ModerationAction
from moderation.models.moderation_result import ModerationResult
from moderation.repositories.base import BaseRepository


class SubmissionRepository(BaseRepository):
    def get(self, content_id: str) -> Optional[ContentSubmission]:
        stmt = select(ContentSubmission).where(ContentSubmission.content_id == content_id)
        return self._execute(stmt).scalars().first()

    def add(self, submission: ContentSubmission) -> ContentSubmission:
        return self._add(submission)


class ResultRepository(BaseRepository):
    def get(self, result_id: uuid.UUID) -> Optional[ModerationResult]:
        stmt = select(ModerationResult).where(ModerationResult.id == result_id)
        return self._execute(stmt).scalars().first()

    def history_for_content(self, content_id: str) -> Sequence[ModerationResult]:
        stmt = (
            select(ModerationResult)
            .where(ModerationResult.content_id == content_id)
            .order_by(desc(ModerationResult.computed_at))
        )
        return self._execute(stmt).scalars().all()

    def add(self, result: ModerationResult) -> ModerationResult:
        return self._add(result)


class ActionRepository(BaseRepository):
    def add(self, action: ModerationAction) -> ModerationAction:
        return self._add(action)

    def for_queue_item(self, queue_item_id: uuid.UUID) -> Sequence[ModerationAction]:
        stmt = (
            select(ModerationAction)
            .where(ModerationAction.queue_item_id == queue_item_id)
            .order_by(ModerationAction.created_at)
        )
        return self._execute(stmt).scalars().all()
