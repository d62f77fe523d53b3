"""Schemas for content report endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from moderation.models.content_report import ReportCategory, ReportPriority, ReportResolution, ReportStatus
from moderation.models.content_submission import ContentType
from moderation.schemas.common import ApiModel


class CreateReportRequest(ApiModel):
    content_type: ContentType
    content_id: str = Field(min_length=1, max_length=128)
    category: ReportCategory
    reason: str = Field(min_length=1, max_length=2000)
    description: Optional[str] = Field(default=None, max_length=5000)
    evidence_urls: list[str] = Field(default_factory=list, max_length=10)


class ReportOut(ApiModel):
    id: uuid.UUID
    content_id: str
    content_type: ContentType
    reporter_id: str
    category: ReportCategory
    reason: str
    description: Optional[str] = None
    evidence_urls: list[str]
    priority: ReportPriority
    status: ReportStatus
    queue_item_id: Optional[uuid.UUID] = None
    resolution: Optional[ReportResolution] = None
    created_at: datetime
    resolved_at: Optional[datetime] = None


class CreateReportOut(ApiModel):
    report: ReportOut
    queue_item_id: uuid.UUID
    queue_reused: bool
