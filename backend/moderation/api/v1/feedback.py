"""Community feedback endpoints."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from moderation.api.deps import enforce_rate_limit, get_db_session, get_runtime
from moderation.schemas.common import Envelope
from moderation.schemas.feedback import (
    ConsensusOut,
    FeedbackSummaryOut,
    OverrideOut,
    OverrideRequest,
    ThresholdAdjustmentOut,
    VoteOut,
    VoteRequest,
)
from moderation.security.auth import Principal, require_any_role, require_staff
from moderation.services.feedback_service import FeedbackService
from moderation.services.runtime import ModerationRuntime


router = APIRouter(dependencies=[Depends(enforce_rate_limit)])


@router.post("/feedback", response_model=Envelope[VoteOut])
def submit_vote(
    body: VoteRequest,
    principal: Principal = Depends(require_any_role),
    db: Session = Depends(get_db_session),
    runtime: ModerationRuntime = Depends(get_runtime),
) -> Envelope[VoteOut]:
    outcome = FeedbackService(db, runtime).submit(
        body.queue_item_id,
        principal.sub,
        was_accurate=body.was_accurate,
        severity_rating=body.severity_rating,
    )
    v = outcome.vote
    adj = outcome.adjustment
    return Envelope[VoteOut](
        success=True,
        data=VoteOut(
            queue_item_id=v.queue_item_id,
            voter_id=v.voter_id,
            voter_tier=v.voter_tier,
            voter_weight=v.voter_weight,
            was_accurate=v.was_accurate,
            severity_rating=v.severity_rating,
            submitted_at=v.submitted_at,
            summary=FeedbackSummaryOut(**asdict(outcome.summary)),
            threshold_adjustment=(
                ThresholdAdjustmentOut(rule_id=adj.rule_id, before=adj.before, after=adj.after) if adj else None
            ),
        ),
        message="Feedback recorded.",
    )


@router.get("/feedback/{queue_item_id}", response_model=Envelope[ConsensusOut])
def feedback_consensus(
    queue_item_id: str,
    principal: Principal = Depends(require_staff),
    db: Session = Depends(get_db_session),
    runtime: ModerationRuntime = Depends(get_runtime),
) -> Envelope[ConsensusOut]:
    item, summary = FeedbackService(db, runtime).consensus(queue_item_id)
    return Envelope[ConsensusOut](
        success=True,
        data=ConsensusOut(
            queue_item_id=item.id,
            status=item.status,
            threshold_adjusted=item.threshold_adjusted,
            summary=FeedbackSummaryOut(**asdict(summary)),
        ),
    )


@router.post("/feedback/{queue_item_id}/override", response_model=Envelope[OverrideOut])
def apply_community_override(
    queue_item_id: str,
    body: OverrideRequest,
    principal: Principal = Depends(require_staff),
    db: Session = Depends(get_db_session),
    runtime: ModerationRuntime = Depends(get_runtime),
) -> Envelope[OverrideOut]:
    outcome = FeedbackService(db, runtime).apply_override(queue_item_id, principal.sub, notes=body.moderator_notes)
    a = outcome.action
    return Envelope[OverrideOut](
        success=True,
        data=OverrideOut(
            queue_item_id=a.queue_item_id,
            action_id=a.id,
            action_type=a.action_type.value,
            summary=FeedbackSummaryOut(**asdict(outcome.summary)),
        ),
        message="Community override applied.",
    )
