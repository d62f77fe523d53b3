"""API v1 root router."""

from __future__ import annotations

from fastapi import APIRouter

from moderation.api.v1.analytics import router as analytics_router
from moderation.api.v1.evaluate import router as evaluate_router
from moderation.api.v1.feedback import router as feedback_router
from moderation.api.v1.queue import router as queue_router
from moderation.api.v1.reports import router as reports_router
from moderation.api.v1.reputation import router as reputation_router
from moderation.api.v1.rules import router as rules_router


router = APIRouter()
router.include_router(evaluate_router, prefix="/moderation", tags=["evaluate"])
router.include_router(queue_router, prefix="/moderation", tags=["queue"])
router.include_router(reports_router, prefix="/moderation", tags=["reports"])
router.include_router(feedback_router, prefix="/moderation", tags=["feedback"])
router.include_router(analytics_router, prefix="/moderation", tags=["analytics"])
router.include_router(rules_router, prefix="/moderation", tags=["rules"])
router.include_router(reputation_router, prefix="/moderation", tags=["reputation"])
