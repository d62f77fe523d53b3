"""Moderation queue endpoints (moderator/admin)."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from engine.core.reputation import ReputationUpdate
from moderation.api.deps import enforce_rate_limit, get_db_session, get_runtime
from moderation.models.content_submission import ContentType
from moderation.models.moderation_result import Severity
from moderation.models.queue_item import QueueStatus
from moderation.schemas.common import Envelope
from moderation.schemas.moderation import (
    QueueItemOut,
    QueueListOut,
    QueueStatsOut,
    ReputationChangeOut,
    ResolveOut,
    ResolveRequest,
)
from moderation.security.auth import Principal, require_staff
from moderation.services.queue_service import QueueService
from moderation.services.runtime import ModerationRuntime


router = APIRouter(dependencies=[Depends(require_staff), Depends(enforce_rate_limit)])


def _change_out(update: ReputationUpdate) -> ReputationChangeOut:
    return ReputationChangeOut(
        user_id=update.after.user_id,
        score_before=update.before.overall_score,
        score_after=update.after.overall_score,
        tier_before=update.before.trust_tier,
        tier_after=update.after.trust_tier,
        deltas=dict(update.deltas),
    )


@router.get("/queue", response_model=Envelope[QueueListOut])
def list_queue(
    status: Optional[QueueStatus] = None,
    severity: Optional[Severity] = None,
    content_type: Optional[ContentType] = Query(None, alias="contentType"),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db_session),
    runtime: ModerationRuntime = Depends(get_runtime),
) -> Envelope[QueueListOut]:
    """Items ordered by severity desc, then newest first, plus global backlog stats."""
    items, stats = QueueService(db, runtime).list(
        status=status, severity=severity, content_type=content_type, limit=limit
    )
    return Envelope[QueueListOut](
        success=True,
        data=QueueListOut(
            items=[QueueItemOut.model_validate(i) for i in items],
            stats=QueueStatsOut(
                total_pending=stats.total_pending,
                critical_items=stats.critical_items,
                auto_flagged=stats.auto_flagged,
            ),
        ),
    )


@router.patch("/queue", response_model=Envelope[ResolveOut])
def resolve_queue_item(
    body: ResolveRequest,
    principal: Principal = Depends(require_staff),
    db: Session = Depends(get_db_session),
    runtime: ModerationRuntime = Depends(get_runtime),
) -> Envelope[ResolveOut]:
    resolution = QueueService(db, runtime).resolve(
        body.queue_item_id, principal.sub, body.action, body.moderator_notes
    )
    return Envelope[ResolveOut](
        success=True,
        data=ResolveOut(
            item=QueueItemOut.model_validate(resolution.item),
            moderation_action_id=resolution.action.id,
            author_reputation=_change_out(resolution.author_update) if resolution.author_update else None,
            reporter_reputation=[_change_out(u) for u in resolution.reporter_updates],
        ),
        message=f"Queue item {resolution.item.status.value}.",
    )


@router.post("/queue/{queue_item_id}/claim", response_model=Envelope[QueueItemOut])
def claim_queue_item(
    queue_item_id: str,
    principal: Principal = Depends(require_staff),
    db: Session = Depends(get_db_session),
    runtime: ModerationRuntime = Depends(get_runtime),
) -> Envelope[QueueItemOut]:
    item = QueueService(db, runtime).claim(queue_item_id, principal.sub)
    return Envelope[QueueItemOut](success=True, data=QueueItemOut.model_validate(item))
