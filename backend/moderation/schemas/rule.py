"""Schemas for rule administration endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import Field

from moderation.models.content_submission import ContentType
from moderation.schemas.common import ApiModel
from moderation.schemas.moderation import ContextValue


class ConditionIn(ApiModel):
    signal_path: str = Field(min_length=1, max_length=128)
    operator: str = Field(min_length=1, max_length=16)
    threshold: Any = None
    weight: float = Field(default=1.0, gt=0)


class ActionIn(ApiModel):
    type: str = Field(min_length=1, max_length=16)
    severity: Optional[str] = None
    target: Optional[str] = None
    parameters: dict[str, Any] = Field(default_factory=dict)


class RuleCreate(ApiModel):
    id: str = Field(min_length=1, max_length=64, pattern=r"^[a-z0-9][a-z0-9_-]*$")
    name: str = Field(min_length=1, max_length=200)
    description: str = ""
    priority: int = 0
    conditions: list[ConditionIn] = Field(min_length=1)
    actions: list[ActionIn] = Field(min_length=1)
    activation_threshold: Optional[float] = Field(default=None, ge=0, le=1)
    min_threshold: Optional[float] = Field(default=None, ge=0, le=1)
    max_threshold: Optional[float] = Field(default=None, ge=0, le=1)
    is_active: bool = True


class RuleUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    priority: Optional[int] = None
    conditions: Optional[list[ConditionIn]] = Field(default=None, min_length=1)
    actions: Optional[list[ActionIn]] = Field(default=None, min_length=1)
    activation_threshold: Optional[float] = Field(default=None, ge=0, le=1)
    min_threshold: Optional[float] = Field(default=None, ge=0, le=1)
    max_threshold: Optional[float] = Field(default=None, ge=0, le=1)
    is_active: Optional[bool] = None


class RuleOut(ApiModel):
    id: str
    name: str
    description: str
    priority: int
    conditions: list[dict[str, Any]]
    actions: list[dict[str, Any]]
    activation_threshold: float
    min_threshold: float
    max_threshold: float
    is_active: bool
    times_triggered: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ReloadOut(ApiModel):
    active_rules: int


class RuleBulkRequest(ApiModel):
    rule_ids: list[str] = Field(min_length=1, max_length=200)
    operation: Literal["activate", "deactivate"]


class RuleBulkOut(ApiModel):
    updated: list[str]
    active_rules: int


class RuleTestRequest(ApiModel):
    content: str = Field(min_length=1, max_length=50_000)
    content_type: ContentType
    author_id: Optional[str] = Field(default=None, min_length=1, max_length=128)
    professional_context: bool = False
    account_created_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    context: dict[str, ContextValue] = Field(default_factory=dict)
    # Unsaved drafts to try instead of the live rule set.
    rules: Optional[list[RuleCreate]] = Field(default=None, min_length=1, max_length=50)


class RuleTraceOut(ApiModel):
    rule_id: str
    name: str
    priority: int
    activation_threshold: float
    match_score: Optional[float] = None
    triggered: bool
    conditions_met: list[str]
    skipped_reason: Optional[str] = None


class RuleTestOut(ApiModel):
    action: str
    winning_rule_id: Optional[str] = None
    match_score: float
    triggered_rule_ids: list[str]
    skipped_rule_ids: list[str]
    side_effects: list[str]
    scores: dict[str, float]
    author_tier: str
    draft: bool
    rules: list[RuleTraceOut]
