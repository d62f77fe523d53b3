"""Analytics read model.

Loads the raw rows for a lookback span and converts them into the plain
records the analytics engine consumes. Read-only: no writes happen here.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import or_, select

from engine.core.analytics import (
    ActionRecord,
    AnalyticsDataset,
    DecisionRecord,
    QueueRecord,
    ReportRecord,
    VoteRow,
)
from engine.core.timeutil import ensure_utc
from moderation.models.content_report import ContentReport
from moderation.models.content_submission import ContentSubmission
from moderation.models.feedback_vote import FeedbackVote
from moderation.models.moderation_action import ModerationAction
from moderation.models.moderation_result import ModerationResult
from moderation.models.queue_item import QueueItem
from moderation.repositories.base import BaseRepository


def _value(v) -> str:
    return v.value if hasattr(v, "value") else str(v)


class AnalyticsRepository(BaseRepository):
    def load_dataset(self, start: datetime, end: datetime) -> AnalyticsDataset:
        return AnalyticsDataset(
            decisions=self._decisions(start, end),
            actions=self._actions(start, end),
            queue=self._queue(start, end),
            votes=self._votes(start, end),
            reports=self._reports(start, end),
        )

    def _decisions(self, start: datetime, end: datetime) -> tuple[DecisionRecord, ...]:
        stmt = (
            select(ModerationResult, ContentSubmission.content_type)
            .join(ContentSubmission, ContentSubmission.content_id == ModerationResult.content_id)
            .where(ModerationResult.computed_at >= start, ModerationResult.computed_at < end)
            .order_by(ModerationResult.computed_at, ModerationResult.id)
        )
        out = []
        for r, content_type in self._execute(stmt).all():
            out.append(
                DecisionRecord(
                    content_id=r.content_id,
                    content_type=_value(content_type),
                    author_id=r.author_id,
                    author_tier=r.author_tier,
                    action=_value(r.action),
                    severity=_value(r.severity),
                    flags=tuple(sorted(r.flags or [])),
                    computed_at=ensure_utc(r.computed_at),
                    processing_ms=int(r.processing_ms or 0),
                    degraded=bool(r.degraded),
                )
            )
        return tuple(out)

    def _actions(self, start: datetime, end: datetime) -> tuple[ActionRecord, ...]:
        stmt = (
            select(ModerationAction)
            .where(ModerationAction.created_at >= start, ModerationAction.created_at < end)
            .order_by(ModerationAction.created_at, ModerationAction.id)
        )
        return tuple(
            ActionRecord(
                action_type=_value(a.action_type),
                is_automated=bool(a.is_automated),
                moderator_id=a.moderator_id,
                created_at=ensure_utc(a.created_at),
            )
            for a in self._execute(stmt).scalars().all()
        )

    def _queue(self, start: datetime, end: datetime) -> tuple[QueueRecord, ...]:
        # Items created before the span still count when they were processed inside it.
        stmt = (
            select(QueueItem)
            .where(
                or_(
                    QueueItem.created_at.between(start, end),
                    QueueItem.processed_at.between(start, end),
                )
            )
            .order_by(QueueItem.created_at, QueueItem.id)
        )
        return tuple(
            QueueRecord(
                id=str(q.id),
                status=_value(q.status),
                severity=_value(q.severity),
                auto_flagged=bool(q.auto_flagged),
                author_id=q.author_id,
                action_taken=_value(q.action_taken) if q.action_taken is not None else None,
                created_at=ensure_utc(q.created_at),
                processed_at=ensure_utc(q.processed_at) if q.processed_at is not None else None,
            )
            for q in self._execute(stmt).scalars().all()
        )

    def _votes(self, start: datetime, end: datetime) -> tuple[VoteRow, ...]:
        stmt = (
            select(FeedbackVote)
            .where(FeedbackVote.submitted_at >= start, FeedbackVote.submitted_at < end)
            .order_by(FeedbackVote.submitted_at, FeedbackVote.id)
        )
        return tuple(
            VoteRow(
                queue_item_id=str(v.queue_item_id),
                voter_id=v.voter_id,
                weight=float(v.voter_weight),
                was_accurate=bool(v.was_accurate),
                severity_rating=_value(v.severity_rating),
                submitted_at=ensure_utc(v.submitted_at),
            )
            for v in self._execute(stmt).scalars().all()
        )

    def _reports(self, start: datetime, end: datetime) -> tuple[ReportRecord, ...]:
        stmt = (
            select(ContentReport)
            .where(ContentReport.created_at >= start, ContentReport.created_at < end)
            .order_by(ContentReport.created_at, ContentReport.id)
        )
        return tuple(
            ReportRecord(
                reporter_id=r.reporter_id,
                category=_value(r.category),
                status=_value(r.status),
                resolution=_value(r.resolution) if r.resolution is not None else None,
                created_at=ensure_utc(r.created_at),
            )
            for r in self._execute(stmt).scalars().all()
        )
