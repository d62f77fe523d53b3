"""Moderation analytics (staff only, read-only).

A single endpoint dispatches on `action`; reports are recomputed per call.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from engine.core.errors import ValidationError
from moderation.api.deps import enforce_rate_limit, get_db_session, get_runtime
from moderation.schemas.common import Envelope
from moderation.security.auth import require_staff
from moderation.services.analytics_service import ACTIONS, AnalyticsService
from moderation.services.runtime import ModerationRuntime


router = APIRouter(dependencies=[Depends(require_staff), Depends(enforce_rate_limit)])


@router.get("/analytics", response_model=Envelope[dict[str, Any]])
def get_analytics(
    action: str = Query("overview"),
    period: str = Query("day"),
    format: str = Query("json"),
    metric: Optional[str] = Query(None),
    db: Session = Depends(get_db_session),
    runtime: ModerationRuntime = Depends(get_runtime),
):
    service = AnalyticsService(db, runtime)

    if action == "overview":
        data = service.overview(period)
    elif action == "trends":
        data = service.trends(period)
    elif action == "patterns":
        data = service.patterns(period)
    elif action == "optimizations":
        data = service.optimizations(period)
    elif action == "metric_history":
        if not metric:
            raise ValidationError("metric is required for metric_history.")
        data = service.metric_history(period, metric)
    elif action == "real_time":
        data = service.real_time()
    elif action == "export":
        exported = service.export(period, format)
        if isinstance(exported, str):
            return PlainTextResponse(
                exported,
                media_type="text/csv",
                headers={"content-disposition": f'attachment; filename="moderation-analytics-{period}.csv"'},
            )
        data = exported
    else:
        raise ValidationError(f"Unknown action {action!r}.", details={"allowed": list(ACTIONS)})

    return Envelope[dict[str, Any]](success=True, data=data)
