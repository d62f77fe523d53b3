"""Schemas for evaluation and queue endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional, Union

from pydantic import Field

from moderation.models.content_submission import ContentType
from moderation.models.moderation_result import Severity, Verdict
from moderation.models.queue_item import QueueStatus, ResolutionAction
from moderation.schemas.common import ApiModel


ContextValue = Union[bool, int, float, str]


class EvaluateRequest(ApiModel):
    content: str = Field(min_length=1, max_length=50_000)
    content_type: ContentType
    content_id: str = Field(min_length=1, max_length=128)
    analyze_only: bool = False
    # Staff may evaluate on behalf of an author; everyone else is the author.
    author_id: Optional[str] = Field(default=None, min_length=1, max_length=128)
    professional_context: bool = False
    account_created_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    context: dict[str, ContextValue] = Field(default_factory=dict)


class ScoresOut(ApiModel):
    spam: float
    toxicity: float
    quality: float
    cultural_adjustment: float
    raw_spam: float
    raw_toxicity: float


class QueueItemOut(ApiModel):
    id: uuid.UUID
    content_id: str
    content_type: ContentType
    author_id: Optional[str] = None
    reason: str
    severity: Severity
    status: QueueStatus
    auto_flagged: bool
    flag_score: float
    reported_by: Optional[str] = None
    assigned_moderator: Optional[str] = None
    moderator_notes: Optional[str] = None
    action_taken: Optional[ResolutionAction] = None
    created_at: datetime
    claimed_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None


class SideEffectOut(ApiModel):
    type: str
    target: Optional[str] = None
    parameters: dict[str, Any] = Field(default_factory=dict)


class ModerationResultOut(ApiModel):
    content_id: str
    result_id: Optional[uuid.UUID] = None
    action: Verdict
    severity: Severity
    should_flag: bool
    confidence: float = Field(ge=0, le=1)
    scores: ScoresOut
    flags: list[str]
    language: str
    rule_ids_triggered: list[str]
    winning_rule_id: Optional[str] = None
    reasons: list[str]
    side_effects: list[SideEffectOut]
    author_tier: str
    author_score: float
    degraded: bool
    processing_ms: int
    computed_at: Optional[datetime] = None
    analyze_only: bool
    queue_item: Optional[QueueItemOut] = None
    queue_reused: bool = False
    queue_bypassed: bool = False


class QueueStatsOut(ApiModel):
    total_pending: int
    critical_items: int
    auto_flagged: int


class QueueListOut(ApiModel):
    items: list[QueueItemOut]
    stats: QueueStatsOut


class ResolveRequest(ApiModel):
    queue_item_id: uuid.UUID
    action: ResolutionAction
    moderator_notes: Optional[str] = Field(default=None, max_length=2000)


class ReputationChangeOut(ApiModel):
    user_id: str
    score_before: float
    score_after: float
    tier_before: str
    tier_after: str
    deltas: dict[str, float]


class ResolveOut(ApiModel):
    item: QueueItemOut
    moderation_action_id: uuid.UUID
    author_reputation: Optional[ReputationChangeOut] = None
    reporter_reputation: list[ReputationChangeOut] = Field(default_factory=list)
