from __future__ import annotations

import uuid
from typing import Optional, Sequence

from sqlalchemy import select

from moderation.models.feedback_vote import FeedbackVote
from moderation.repositories.base import BaseRepository


class FeedbackRepository(BaseRepository):
    def get(self, *, queue_item_id: uuid.UUID, voter_id: str) -> Optional[FeedbackVote]:
        stmt = select(FeedbackVote).where(
            FeedbackVote.queue_item_id == queue_item_id,
            FeedbackVote.voter_id == voter_id,
        )
        return self._execute(stmt).scalars().first()

    def for_item(self, queue_item_id: uuid.UUID) -> Sequence[FeedbackVote]:
        stmt = (
            select(FeedbackVote)
            .where(FeedbackVote.queue_item_id == queue_item_id)
            .order_by(FeedbackVote.voter_id)
        )
        return self._execute(stmt).scalars().all()

    def add(self, vote: FeedbackVote) -> FeedbackVote:
        return self._add(vote)
