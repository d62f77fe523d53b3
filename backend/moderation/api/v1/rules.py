"""Rule administration endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from moderation.api.deps import enforce_rate_limit, get_db_session, get_runtime
from moderation.schemas.common import Envelope
from moderation.schemas.rule import (
    ReloadOut,
    RuleBulkOut,
    RuleBulkRequest,
    RuleCreate,
    RuleOut,
    RuleTestOut,
    RuleTestRequest,
    RuleTraceOut,
    RuleUpdate,
)
from moderation.security.auth import Principal, require_admin, require_staff
from moderation.services.rule_service import RuleService
from moderation.services.runtime import ModerationRuntime


router = APIRouter(dependencies=[Depends(require_staff), Depends(enforce_rate_limit)])


@router.get("/rules", response_model=Envelope[list[RuleOut]])
def list_rules(
    db: Session = Depends(get_db_session),
    runtime: ModerationRuntime = Depends(get_runtime),
) -> Envelope[list[RuleOut]]:
    rows = RuleService(db, runtime).list()
    return Envelope[list[RuleOut]](success=True, data=[RuleOut.model_validate(r) for r in rows])


@router.post("/rules", response_model=Envelope[RuleOut], dependencies=[Depends(require_admin)])
def create_rule(
    body: RuleCreate,
    db: Session = Depends(get_db_session),
    runtime: ModerationRuntime = Depends(get_runtime),
) -> Envelope[RuleOut]:
    row = RuleService(db, runtime).create(body.model_dump(exclude_none=True))
    return Envelope[RuleOut](success=True, data=RuleOut.model_validate(row), message="Rule created.")


@router.patch("/rules/{rule_id}", response_model=Envelope[RuleOut], dependencies=[Depends(require_admin)])
def update_rule(
    rule_id: str,
    body: RuleUpdate,
    db: Session = Depends(get_db_session),
    runtime: ModerationRuntime = Depends(get_runtime),
) -> Envelope[RuleOut]:
    row = RuleService(db, runtime).update(rule_id, body.model_dump(exclude_unset=True))
    return Envelope[RuleOut](success=True, data=RuleOut.model_validate(row), message="Rule updated.")


@router.post("/rules/reload", response_model=Envelope[ReloadOut], dependencies=[Depends(require_admin)])
def reload_rules(
    db: Session = Depends(get_db_session),
    runtime: ModerationRuntime = Depends(get_runtime),
) -> Envelope[ReloadOut]:
    count = RuleService(db, runtime).reload()
    return Envelope[ReloadOut](success=True, data=ReloadOut(active_rules=count), message="Rules reloaded.")


@router.post("/rules/bulk", response_model=Envelope[RuleBulkOut], dependencies=[Depends(require_admin)])
def bulk_toggle_rules(
    body: RuleBulkRequest,
    db: Session = Depends(get_db_session),
    runtime: ModerationRuntime = Depends(get_runtime),
) -> Envelope[RuleBulkOut]:
    rows = RuleService(db, runtime).set_active(body.rule_ids, body.operation == "activate")
    return Envelope[RuleBulkOut](
        success=True,
        data=RuleBulkOut(updated=[r.id for r in rows], active_rules=len(runtime.rule_engine.rules)),
        message=f"{len(rows)} rules updated.",
    )


@router.post("/rules/test", response_model=Envelope[RuleTestOut])
def dry_run_rules(
    body: RuleTestRequest,
    principal: Principal = Depends(require_staff),
    db: Session = Depends(get_db_session),
    runtime: ModerationRuntime = Depends(get_runtime),
) -> Envelope[RuleTestOut]:
    """Run sample content through the live rules (or unsaved drafts). Persists nothing."""
    outcome = RuleService(db, runtime).test(
        text=body.content,
        content_type=body.content_type.value,
        author_id=body.author_id or principal.sub,
        professional_context=body.professional_context,
        submitted_at=body.submitted_at,
        account_created_at=body.account_created_at,
        context=body.context,
        draft_rules=[r.model_dump(exclude_none=True) for r in body.rules] if body.rules else None,
    )
    ev = outcome.evaluation
    s = outcome.scores
    return Envelope[RuleTestOut](
        success=True,
        data=RuleTestOut(
            action=outcome.action,
            winning_rule_id=ev.winning_rule_id,
            match_score=ev.match_score,
            triggered_rule_ids=list(ev.triggered_rule_ids),
            skipped_rule_ids=list(ev.skipped_rule_ids),
            side_effects=[e.type for e in ev.side_effects],
            scores={
                "spam": s.spam,
                "toxicity": s.toxicity,
                "quality": s.quality,
                "cultural_adjustment": s.cultural_adjustment,
            },
            author_tier=outcome.author_tier,
            draft=outcome.draft,
            rules=[RuleTraceOut.model_validate(t) for t in outcome.traces],
        ),
    )
