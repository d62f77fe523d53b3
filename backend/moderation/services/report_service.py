from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from engine.core.errors import DuplicateReport, ValidationError
from engine.core.timeutil import utc_now
from moderation.models.content_report import (
    ContentReport,
    ReportCategory,
    ReportPriority,
    ReportStatus,
    priority_for,
)
from moderation.models.content_submission import ContentType
from moderation.models.moderation_result import SEVERITY_RANK, Severity
from moderation.models.queue_item import QueueItem, QueueStatus
from moderation.repositories.content_repo import SubmissionRepository
from moderation.repositories.report_repo import ReportRepository
from moderation.services.queue_service import QueueService
from moderation.services.runtime import ModerationRuntime


logger = logging.getLogger(__name__)

PRIORITY_SEVERITY = {
    ReportPriority.URGENT: Severity.CRITICAL,
    ReportPriority.HIGH: Severity.HIGH,
    ReportPriority.MEDIUM: Severity.MEDIUM,
}
MAX_EVIDENCE_URLS = 10


@dataclass(frozen=True, slots=True)
class ReportOutcome:
    report: ContentReport
    queue_item: QueueItem
    queue_reused: bool


class ReportService:
    def __init__(self, session: Session, runtime: ModerationRuntime) -> None:
        self._session = session
        self._runtime = runtime
        self._reports = ReportRepository(session)
        self._submissions = SubmissionRepository(session)
        self._queue = QueueService(session, runtime)

    def create(
        self,
        *,
        reporter_id: str,
        content_id: str,
        content_type: ContentType,
        category: ReportCategory,
        reason: str,
        description: Optional[str] = None,
        evidence_urls: Sequence[str] = (),
    ) -> ReportOutcome:
        """File a report and attach it to the content's active queue item (created if absent)."""
        if not reason or not reason.strip():
            raise ValidationError("reason is required.")
        if len(evidence_urls) > MAX_EVIDENCE_URLS:
            raise ValidationError(f"At most {MAX_EVIDENCE_URLS} evidence URLs are accepted.")

        priority = priority_for(category)
        with self._runtime.locks.hold(content_id):
            if self._reports.open_for(reporter_id=reporter_id, content_id=content_id) is not None:
                raise DuplicateReport(
                    "You already have an open report on this content.",
                    details={"content_id": content_id},
                )

            item = self._queue.active_for_content(content_id)
            reused = item is not None
            if item is not None:
                escalated = PRIORITY_SEVERITY[priority]
                if SEVERITY_RANK[escalated] > SEVERITY_RANK[Severity(item.severity)]:
                    logger.info(f"Queue item {item.id} escalated {Severity(item.severity).value} -> {escalated.value} by report")
                    item.severity = escalated
            else:
                submission = self._submissions.get(content_id)
                item = self._queue.enqueue_locked(
                    content_id=content_id,
                    content_type=content_type,
                    reason=f"report:{category.value}: {reason.strip()}",
                    severity=PRIORITY_SEVERITY[priority],
                    auto_flagged=False,
                    flag_score=0.0,
                    reporter_id=reporter_id,
                    author_id=submission.author_id if submission is not None else None,
                )

            report = ContentReport(
                content_id=content_id,
                content_type=content_type,
                reporter_id=reporter_id,
                category=category,
                reason=reason.strip(),
                description=description,
                evidence_urls=list(evidence_urls),
                priority=priority,
                status=ReportStatus.REVIEWING if item.status == QueueStatus.REVIEWING else ReportStatus.PENDING,
                queue_item_id=item.id,
                created_at=utc_now(),
            )
            try:
                self._reports.add(report)
            except IntegrityError as e:
                self._session.rollback()
                raise DuplicateReport("You already have an open report on this content.") from e
            self._queue.commit()

        logger.info(
            f"Report filed on {content_id} by {reporter_id}: category={category.value} "
            f"priority={priority.value} queue_item={item.id} reused={reused}"
        )
        return ReportOutcome(report=report, queue_item=item, queue_reused=reused)

    def list(
        self,
        *,
        reporter_id: Optional[str],
        status: Optional[ReportStatus] = None,
        limit: int = 50,
    ) -> Sequence[ContentReport]:
        """reporter_id=None lists every report (moderator view)."""
        if limit < 1 or limit > 200:
            raise ValidationError("limit must be between 1 and 200.")
        return self._reports.list(reporter_id=reporter_id, status=status, limit=limit)
