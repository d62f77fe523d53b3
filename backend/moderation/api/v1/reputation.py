"""Reputation lookup (self, or any user for staff)."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from engine.core.errors import ForbiddenError
from engine.core.reputation import TIER_PRIVILEGES
from moderation.api.deps import enforce_rate_limit, get_db_session, get_runtime
from moderation.schemas.common import Envelope
from moderation.schemas.reputation import ReputationEventOut, ReputationOut
from moderation.security.auth import Principal, require_any_role
from moderation.services.reputation_service import ReputationService
from moderation.services.runtime import ModerationRuntime


router = APIRouter(dependencies=[Depends(enforce_rate_limit)])


@router.get("/reputation/{user_id}", response_model=Envelope[ReputationOut])
def get_reputation(
    user_id: str,
    principal: Principal = Depends(require_any_role),
    db: Session = Depends(get_db_session),
    runtime: ModerationRuntime = Depends(get_runtime),
) -> Envelope[ReputationOut]:
    if user_id != principal.sub and not principal.is_staff:
        raise ForbiddenError("You may only view your own reputation.")
    service = ReputationService(db, runtime)
    view = service.get_view(user_id)
    return Envelope[ReputationOut](
        success=True,
        data=ReputationOut(
            user_id=view.user_id,
            overall_score=view.overall_score,
            trust_tier=view.trust_tier,
            factors=dict(view.factors),
            privileges=list(TIER_PRIVILEGES.get(view.trust_tier, ())),
            last_calculated=view.last_calculated,
            is_default=view.is_default,
            recent_events=[ReputationEventOut.model_validate(e) for e in service.history(user_id)],
        ),
    )
