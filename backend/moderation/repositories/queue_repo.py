"""Queue repository: query/command methods for QueueItem."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy import case, desc, func, select

from moderation.models.content_submission import ContentType
from moderation.models.moderation_result import Severity
from moderation.models.queue_item import ACTIVE_STATUSES, QueueItem, QueueStatus
from moderation.repositories.base import BaseRepository


SEVERITY_ORDER = case(
    (QueueItem.severity == Severity.CRITICAL, 4),
    (QueueItem.severity == Severity.HIGH, 3),
    (QueueItem.severity == Severity.MEDIUM, 2),
    (QueueItem.severity == Severity.LOW, 1),
    else_=0,
)


@dataclass(frozen=True, slots=True)
class QueueStats:
    total_pending: int
    critical_items: int
    auto_flagged: int


class QueueRepository(BaseRepository):
    def get(self, item_id: uuid.UUID) -> Optional[QueueItem]:
        stmt = select(QueueItem).where(QueueItem.id == item_id)
        return self._execute(stmt).scalars().first()

    def get_for_update(self, item_id: uuid.UUID) -> Optional[QueueItem]:
        # FOR UPDATE is a no-op on SQLite and row-locks on PostgreSQL.
        stmt = (
            select(QueueItem)
            .where(QueueItem.id == item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._execute(stmt).scalars().first()

    def active_for_content(self, content_id: str) -> Optional[QueueItem]:
        stmt = select(QueueItem).where(
            QueueItem.content_id == content_id,
            QueueItem.status.in_(ACTIVE_STATUSES),
        )
        return self._execute(stmt).scalars().first()

    def add(self, item: QueueItem) -> QueueItem:
        return self._add(item)

    def list(
        self,
        *,
        status: Optional[QueueStatus] = None,
        severity: Optional[Severity] = None,
        content_type: Optional[ContentType] = None,
        limit: int = 50,
    ) -> Sequence[QueueItem]:
        stmt = select(QueueItem)
        if status is not None:
            stmt = stmt.where(QueueItem.status == status)
        if severity is not None:
            stmt = stmt.where(QueueItem.severity == severity)
        if content_type is not None:
            stmt = stmt.where(QueueItem.content_type == content_type)
        stmt = stmt.order_by(desc(SEVERITY_ORDER), desc(QueueItem.created_at), QueueItem.id).limit(limit)
        return self._execute(stmt).scalars().all()

    def stats(self) -> QueueStats:
        active = QueueItem.status.in_(ACTIVE_STATUSES)
        stmt = select(
            func.count().filter(QueueItem.status == QueueStatus.PENDING),
            func.count().filter(active, QueueItem.severity == Severity.CRITICAL),
            func.count().filter(active, QueueItem.auto_flagged.is_(True)),
        ).select_from(QueueItem)
        pending, critical, auto = self._execute(stmt).one()
        return QueueStats(total_pending=int(pending or 0), critical_items=int(critical or 0), auto_flagged=int(auto or 0))
