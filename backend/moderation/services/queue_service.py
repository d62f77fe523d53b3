"""Moderation queue orchestration.

State machine: pending -> reviewing -> {approved, rejected}. Resolving straight
from pending is allowed; terminal items never reopen.

Serialization: every mutation of a content's queue state runs under the
runtime's per-content lock and inside one session transaction. The partial
unique index on active items backs this up across processes.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from engine.core.errors import AlreadyResolved, ConflictError, DuplicateActive, NotFoundError, ValidationError
from engine.core.reputation import ReputationUpdate, deltas_for_report, deltas_for_resolution
from engine.core.timeutil import utc_now
from moderation.models.content_report import ReportResolution, ReportStatus
from moderation.models.content_submission import ContentType
from moderation.models.moderation_action import ActionType, ModerationAction
from moderation.models.moderation_result import Severity
from moderation.models.queue_item import QueueItem, QueueStatus, ResolutionAction
from moderation.repositories.base import storage_guard
from moderation.repositories.content_repo import ActionRepository, SubmissionRepository
from moderation.repositories.queue_repo import QueueRepository, QueueStats
from moderation.repositories.report_repo import ReportRepository
from moderation.services.reputation_service import ReputationService
from moderation.services.runtime import ModerationRuntime


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Resolution:
    item: QueueItem
    action: ModerationAction
    author_update: Optional[ReputationUpdate]
    reporter_updates: tuple[ReputationUpdate, ...] = field(default_factory=tuple)


def _parse_id(raw: str | uuid.UUID) -> uuid.UUID:
    if isinstance(raw, uuid.UUID):
        return raw
    try:
        return uuid.UUID(str(raw))
    except ValueError as e:
        raise ValidationError(f"Invalid queue item id: {raw!r}.") from e


class QueueService:
    def __init__(self, session: Session, runtime: ModerationRuntime) -> None:
        self._session = session
        self._runtime = runtime
        self._queue = QueueRepository(session)
        self._reports = ReportRepository(session)
        self._actions = ActionRepository(session)
        self._submissions = SubmissionRepository(session)
        self._reputation = ReputationService(session, runtime)

    # --- enqueue -----------------------------------------------------------

    def enqueue(
        self,
        *,
        content_id: str,
        content_type: ContentType,
        reason: str,
        severity: Severity,
        auto_flagged: bool,
        flag_score: float,
        reporter_id: Optional[str] = None,
        author_id: Optional[str] = None,
        result_id: Optional[uuid.UUID] = None,
    ) -> QueueItem:
        """Create a pending item; DuplicateActive if one is already open."""
        with self._runtime.locks.hold(content_id):
            item = self.enqueue_locked(
                content_id=content_id,
                content_type=content_type,
                reason=reason,
                severity=severity,
                auto_flagged=auto_flagged,
                flag_score=flag_score,
                reporter_id=reporter_id,
                author_id=author_id,
                result_id=result_id,
            )
            self.commit()
        return item

    def enqueue_locked(
        self,
        *,
        content_id: str,
        content_type: ContentType,
        reason: str,
        severity: Severity,
        auto_flagged: bool,
        flag_score: float,
        reporter_id: Optional[str] = None,
        author_id: Optional[str] = None,
        result_id: Optional[uuid.UUID] = None,
    ) -> QueueItem:
        """Insert without committing. The caller holds the content lock."""
        existing = self._queue.active_for_content(content_id)
        if existing is not None:
            raise DuplicateActive(
                f"Content {content_id} already has an active queue item.",
                details={"queue_item_id": str(existing.id), "status": existing.status.value},
            )
        item = QueueItem(
            content_id=content_id,
            content_type=content_type,
            author_id=author_id,
            result_id=result_id,
            reason=reason,
            severity=severity,
            status=QueueStatus.PENDING,
            auto_flagged=auto_flagged,
            flag_score=max(0.0, min(1.0, float(flag_score))),
            reported_by=reporter_id,
            created_at=utc_now(),
        )
        try:
            self._queue.add(item)
        except IntegrityError as e:
            self._session.rollback()
            raise DuplicateActive(f"Content {content_id} already has an active queue item.") from e
        logger.info(f"Enqueued {content_id} severity={severity.value} auto_flagged={auto_flagged}")
        return item

    def active_for_content(self, content_id: str) -> Optional[QueueItem]:
        return self._queue.active_for_content(content_id)

    # --- list --------------------------------------------------------------

    def list(
        self,
        *,
        status: Optional[QueueStatus] = None,
        severity: Optional[Severity] = None,
        content_type: Optional[ContentType] = None,
        limit: int = 50,
    ) -> tuple[Sequence[QueueItem], QueueStats]:
        if limit < 1 or limit > 200:
            raise ValidationError("limit must be between 1 and 200.")
        items = self._queue.list(status=status, severity=severity, content_type=content_type, limit=limit)
        return items, self._queue.stats()

    # --- claim -------------------------------------------------------------

    def claim(self, item_id: str | uuid.UUID, moderator_id: str) -> QueueItem:
        item_uuid = _parse_id(item_id)
        item = self._require(item_uuid)
        with self._runtime.locks.hold(item.content_id):
            item = self._require(item_uuid, for_update=True)
            if item.is_terminal:
                raise AlreadyResolved(f"Queue item {item_uuid} is already {item.status.value}.")
            if item.status == QueueStatus.REVIEWING:
                if item.assigned_moderator == moderator_id:
                    return item
                raise ConflictError(
                    f"Queue item {item_uuid} is being reviewed by another moderator.",
                    details={"assigned_moderator": item.assigned_moderator},
                )
            now = utc_now()
            item.status = QueueStatus.REVIEWING
            item.assigned_moderator = moderator_id
            item.claimed_at = now
            for report in self._reports.linked_to(item.id):
                if report.status == ReportStatus.PENDING:
                    report.status = ReportStatus.REVIEWING
            self.commit()
        logger.info(f"Queue item {item_uuid} claimed by {moderator_id}")
        return item

    # --- resolve -----------------------------------------------------------

    def resolve(
        self,
        item_id: str | uuid.UUID,
        moderator_id: str,
        action: ResolutionAction,
        notes: Optional[str] = None,
    ) -> Resolution:
        """Resolve an item, audit it, and apply reputation feedback atomically."""
        item_uuid = _parse_id(item_id)
        item = self._require(item_uuid)
        with self._runtime.locks.hold(item.content_id):
            item = self._require(item_uuid, for_update=True)
            if item.is_terminal:
                raise AlreadyResolved(f"Queue item {item_uuid} is already {item.status.value}.")
            if (
                item.status == QueueStatus.REVIEWING
                and item.assigned_moderator is not None
                and item.assigned_moderator != moderator_id
            ):
                raise ConflictError(
                    f"Queue item {item_uuid} is claimed by another moderator.",
                    details={"assigned_moderator": item.assigned_moderator},
                )

            now = utc_now()
            item.status = QueueStatus.APPROVED if action == ResolutionAction.APPROVE else QueueStatus.REJECTED
            item.assigned_moderator = moderator_id
            item.moderator_notes = notes
            item.action_taken = action
            item.processed_at = now

            audit = ModerationAction(
                queue_item_id=item.id,
                content_id=item.content_id,
                moderator_id=moderator_id,
                action_type=ActionType(action.value),
                reason=notes,
                is_automated=False,
                created_at=now,
            )
            try:
                self._actions.add(audit)

                author_update = None
                author_id = item.author_id or self._author_of(item.content_id)
                if author_id:
                    author_update = self._reputation.apply(
                        author_id,
                        deltas_for_resolution(action.value, item.severity.value),
                        reason=f"resolution:{action.value}",
                        source_ref=str(item.id),
                        at=now,
                    )

                upheld = action != ResolutionAction.APPROVE
                reporter_updates: list[ReputationUpdate] = []
                for report in self._reports.linked_to(item.id):
                    if report.status == ReportStatus.RESOLVED:
                        continue
                    report.status = ReportStatus.RESOLVED
                    report.resolution = ReportResolution.UPHELD if upheld else ReportResolution.DISMISSED
                    report.resolved_at = now
                    reporter_updates.append(
                        self._reputation.apply(
                            report.reporter_id,
                            deltas_for_report(upheld),
                            reason="report:upheld" if upheld else "report:dismissed",
                            source_ref=str(report.id),
                            at=now,
                        )
                    )
                self.commit()
            except Exception:
                self._reputation.discard_events()
                raise

        self._reputation.flush_events()
        logger.info(f"Queue item {item_uuid} resolved as {action.value} by {moderator_id}")
        self._runtime.events.publish(
            "queue_item_resolved",
            {"queue_item_id": str(item.id), "content_id": item.content_id, "action": action.value},
        )
        return Resolution(
            item=item,
            action=audit,
            author_update=author_update,
            reporter_updates=tuple(reporter_updates),
        )

    # --- helpers -----------------------------------------------------------

    def get(self, item_id: str | uuid.UUID) -> QueueItem:
        return self._require(_parse_id(item_id))

    def _require(self, item_id: uuid.UUID, *, for_update: bool = False) -> QueueItem:
        item = self._queue.get_for_update(item_id) if for_update else self._queue.get(item_id)
        if item is None:
            raise NotFoundError(f"Queue item {item_id} not found.")
        return item

    def _author_of(self, content_id: str) -> Optional[str]:
        submission = self._submissions.get(content_id)
        return submission.author_id if submission is not None else None

    def commit(self) -> None:
        try:
            with storage_guard("QueueService.commit"):
                self._session.commit()
        except Exception:
            self._session.rollback()
            raise
