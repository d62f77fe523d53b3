from __future__ import annotations

import uuid
from typing import Optional, Sequence

from sqlalchemy import desc, select

from moderation.models.content_report import ContentReport, ReportStatus
from moderation.repositories.base import BaseRepository


OPEN_REPORT_STATUSES = (ReportStatus.PENDING, ReportStatus.REVIEWING)


class ReportRepository(BaseRepository):
    def get(self, report_id: uuid.UUID) -> Optional[ContentReport]:
        stmt = select(ContentReport).where(ContentReport.id == report_id)
        return self._execute(stmt).scalars().first()

    def open_for(self, *, reporter_id: str, content_id: str) -> Optional[ContentReport]:
        stmt = select(ContentReport).where(
            ContentReport.reporter_id == reporter_id,
            ContentReport.content_id == content_id,
            ContentReport.status.in_(OPEN_REPORT_STATUSES),
        )
        return self._execute(stmt).scalars().first()

    def has_open_for_content(self, content_id: str) -> bool:
        stmt = (
            select(ContentReport.id)
            .where(ContentReport.content_id == content_id, ContentReport.status.in_(OPEN_REPORT_STATUSES))
            .limit(1)
        )
        return self._execute(stmt).first() is not None

    def linked_to(self, queue_item_id: uuid.UUID) -> Sequence[ContentReport]:
        stmt = (
            select(ContentReport)
            .where(ContentReport.queue_item_id == queue_item_id)
            .order_by(ContentReport.created_at, ContentReport.id)
        )
        return self._execute(stmt).scalars().all()

    def list(
        self,
        *,
        reporter_id: Optional[str] = None,
        status: Optional[ReportStatus] = None,
        limit: int = 50,
    ) -> Sequence[ContentReport]:
        stmt = select(ContentReport)
        if reporter_id is not None:
            stmt = stmt.where(ContentReport.reporter_id == reporter_id)
        if status is not None:
            stmt = stmt.where(ContentReport.status == status)
        stmt = stmt.order_by(desc(ContentReport.created_at), ContentReport.id).limit(limit)
        return self._execute(stmt).scalars().all()

    def add(self, report: ContentReport) -> ContentReport:
        return self._add(report)
