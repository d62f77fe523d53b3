"""Content report endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from moderation.api.deps import enforce_rate_limit, get_db_session, get_runtime
from moderation.models.content_report import ReportStatus
from moderation.schemas.common import Envelope
from moderation.schemas.report import CreateReportOut, CreateReportRequest, ReportOut
from moderation.security.auth import Principal, require_any_role
from moderation.services.report_service import ReportService
from moderation.services.runtime import ModerationRuntime


router = APIRouter(dependencies=[Depends(require_any_role), Depends(enforce_rate_limit)])


@router.post("/reports", response_model=Envelope[CreateReportOut])
def create_report(
    body: CreateReportRequest,
    principal: Principal = Depends(require_any_role),
    db: Session = Depends(get_db_session),
    runtime: ModerationRuntime = Depends(get_runtime),
) -> Envelope[CreateReportOut]:
    outcome = ReportService(db, runtime).create(
        reporter_id=principal.sub,
        content_id=body.content_id,
        content_type=body.content_type,
        category=body.category,
        reason=body.reason,
        description=body.description,
        evidence_urls=body.evidence_urls,
    )
    return Envelope[CreateReportOut](
        success=True,
        data=CreateReportOut(
            report=ReportOut.model_validate(outcome.report),
            queue_item_id=outcome.queue_item.id,
            queue_reused=outcome.queue_reused,
        ),
        message="Report submitted.",
    )


@router.get("/reports", response_model=Envelope[list[ReportOut]])
def list_reports(
    status: Optional[ReportStatus] = None,
    limit: int = Query(50, ge=1, le=200),
    principal: Principal = Depends(require_any_role),
    db: Session = Depends(get_db_session),
    runtime: ModerationRuntime = Depends(get_runtime),
) -> Envelope[list[ReportOut]]:
    """Own reports for users; every report for moderators and admins."""
    reporter_id = None if principal.is_staff else principal.sub
    reports = ReportService(db, runtime).list(reporter_id=reporter_id, status=status, limit=limit)
    return Envelope[list[ReportOut]](success=True, data=[ReportOut.model_validate(r) for r in reports])
