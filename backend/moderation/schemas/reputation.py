"""Schemas for reputation lookup."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from moderation.schemas.common import ApiModel


class ReputationEventOut(ApiModel):
    reason: str
    source_ref: Optional[str] = None
    deltas: dict[str, float]
    score_before: float
    score_after: float
    tier_before: str
    tier_after: str
    created_at: datetime


class ReputationOut(ApiModel):
    user_id: str
    overall_score: float
    trust_tier: str
    factors: dict[str, float]
    privileges: list[str]
    last_calculated: Optional[datetime] = None
    is_default: bool
    recent_events: list[ReputationEventOut]
