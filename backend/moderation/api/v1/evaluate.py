"""Content evaluation endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from engine.core.errors import ForbiddenError
from moderation.api.deps import enforce_rate_limit, get_db_session, get_runtime
from moderation.schemas.common import Envelope
from moderation.schemas.moderation import (
    EvaluateRequest,
    ModerationResultOut,
    QueueItemOut,
    ScoresOut,
    SideEffectOut,
)
from moderation.security.auth import Principal, require_any_role
from moderation.services.decision_service import DecisionService, EvaluationOutcome, EvaluationRequest
from moderation.services.runtime import ModerationRuntime


router = APIRouter(dependencies=[Depends(enforce_rate_limit)])


def _result_out(outcome: EvaluationOutcome, *, analyze_only: bool) -> ModerationResultOut:
    d = outcome.decision
    return ModerationResultOut(
        content_id=d.content_id,
        result_id=outcome.result_id,
        action=d.action,
        severity=d.severity,
        should_flag=d.should_flag,
        confidence=d.confidence,
        scores=ScoresOut(
            spam=d.scores.spam,
            toxicity=d.scores.toxicity,
            quality=d.scores.quality,
            cultural_adjustment=d.scores.cultural_adjustment,
            raw_spam=d.raw_spam,
            raw_toxicity=d.raw_toxicity,
        ),
        flags=d.scores.active_flags(),
        language=d.scores.language,
        rule_ids_triggered=list(d.triggered_rule_ids),
        winning_rule_id=d.winning_rule_id,
        reasons=list(d.reasons),
        side_effects=[SideEffectOut(type=e.type, target=e.target, parameters=dict(e.parameters)) for e in d.side_effects],
        author_tier=d.author_tier,
        author_score=d.author_score,
        degraded=d.degraded,
        processing_ms=d.processing_ms,
        computed_at=outcome.computed_at,
        analyze_only=analyze_only,
        queue_item=QueueItemOut.model_validate(outcome.queue_item) if outcome.queue_item is not None else None,
        queue_reused=outcome.queue_reused,
        queue_bypassed=outcome.queue_bypassed,
    )


@router.post("/evaluate", response_model=Envelope[ModerationResultOut])
def evaluate_content(
    body: EvaluateRequest,
    principal: Principal = Depends(require_any_role),
    db: Session = Depends(get_db_session),
    runtime: ModerationRuntime = Depends(get_runtime),
) -> Envelope[ModerationResultOut]:
    """Score content and decide an action. analyzeOnly persists nothing."""
    author_id = principal.sub
    if body.author_id is not None and body.author_id != principal.sub:
        if not principal.is_staff:
            raise ForbiddenError("Only moderators may evaluate content on behalf of another author.")
        author_id = body.author_id

    outcome = DecisionService(db, runtime).evaluate(
        EvaluationRequest(
            content_id=body.content_id,
            content_type=body.content_type.value,
            text=body.content,
            author_id=author_id,
            analyze_only=body.analyze_only,
            submitted_at=body.submitted_at,
            account_created_at=body.account_created_at,
            professional_context=body.professional_context,
            context=body.context,
        )
    )
    d = outcome.decision
    return Envelope[ModerationResultOut](
        success=True,
        data=_result_out(outcome, analyze_only=body.analyze_only),
        message="Scorer unavailable; routed to human review." if d.degraded else None,
        degraded=d.degraded,
    )
