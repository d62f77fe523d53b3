"""Schemas for community feedback endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from moderation.models.feedback_vote import SeverityRating
from moderation.models.queue_item import QueueStatus
from moderation.schemas.common import ApiModel


class VoteRequest(ApiModel):
    queue_item_id: uuid.UUID
    was_accurate: bool
    severity_rating: SeverityRating


class FeedbackSummaryOut(ApiModel):
    vote_count: int
    total_weight: float
    agreement_rate: float
    strict_share: float
    accurate_share: float
    lenient_share: float
    consensus: Optional[str] = None
    override_recommended: bool


class ThresholdAdjustmentOut(ApiModel):
    rule_id: str
    before: float
    after: float


class VoteOut(ApiModel):
    queue_item_id: uuid.UUID
    voter_id: str
    voter_tier: str
    voter_weight: float
    was_accurate: bool
    severity_rating: SeverityRating
    submitted_at: datetime
    summary: FeedbackSummaryOut
    threshold_adjustment: Optional[ThresholdAdjustmentOut] = None


class ConsensusOut(ApiModel):
    queue_item_id: uuid.UUID
    status: QueueStatus
    threshold_adjusted: bool
    summary: FeedbackSummaryOut


class OverrideRequest(ApiModel):
    moderator_notes: Optional[str] = Field(default=None, max_length=2000)


class OverrideOut(ApiModel):
    queue_item_id: uuid.UUID
    action_id: uuid.UUID
    action_type: str
    summary: FeedbackSummaryOut
