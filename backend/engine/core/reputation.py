"""Reputation math (pure).

Score model:
- Eight behavioural factors, each 0..100.
- overall = 10 * sum(factor_i * weight_i), so 0..1000.
- Trust tier is a step function of overall score (fixed breakpoints).

Updates are append-only deltas applied to the stored factors: one event touches
at most a handful of factors and the overall score is recomputed from eight
numbers, so each update is O(1).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Mapping, Optional


FACTOR_WEIGHTS: Mapping[str, float] = MappingProxyType(
    {
        "content_quality": 0.20,
        "community_helpfulness": 0.18,
        "consistent_activity": 0.15,
        "moderation_history": 0.15,
        "expertise": 0.12,
        "community_trust": 0.10,
        "account_maturity": 0.05,
        "behavior_pattern": 0.05,
    }
)
FACTORS = tuple(FACTOR_WEIGHTS)

FACTOR_MIN = 0.0
FACTOR_MAX = 100.0
SCORE_SCALE = 10.0
SCORE_MAX = 1000.0

# All factors at 10 -> overall 100 -> tier "new".
DEFAULT_FACTOR_VALUE = 10.0

TIERS = ("restricted", "new", "trusted", "expert", "moderator", "admin")
TIER_BREAKPOINTS = (
    (1000.0, "admin"),
    (500.0, "moderator"),
    (300.0, "expert"),
    (150.0, "trusted"),
    (50.0, "new"),
    (0.0, "restricted"),
)
TIER_PRIVILEGES: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "restricted": ("read",),
        "new": ("read", "post_content", "vote"),
        "trusted": ("read", "post_content", "vote", "report", "queue_bypass"),
        "expert": ("read", "post_content", "vote", "report", "queue_bypass", "mentor"),
        "moderator": ("read", "post_content", "vote", "report", "queue_bypass", "mentor", "moderate"),
        "admin": ("read", "post_content", "vote", "report", "queue_bypass", "mentor", "moderate", "admin"),
    }
)

SEVERITY_MULTIPLIER: Mapping[str, float] = MappingProxyType(
    {"low": 1.0, "medium": 1.5, "high": 2.0, "critical": 3.0}
)

REPORT_UPHELD_DELTA: Mapping[str, float] = MappingProxyType({"community_trust": 1.0})
REPORT_DISMISSED_DELTA: Mapping[str, float] = MappingProxyType({"community_trust": -0.5})
ACCURATE_VOTE_DELTA: Mapping[str, float] = MappingProxyType({"community_trust": 0.5})


def _clamp_factor(v: float) -> float:
    return max(FACTOR_MIN, min(FACTOR_MAX, float(v)))


def compute_overall(factors: Mapping[str, float]) -> float:
    total = 0.0
    for name, weight in FACTOR_WEIGHTS.items():
        total += _clamp_factor(factors.get(name, DEFAULT_FACTOR_VALUE)) * weight
    return round(max(0.0, min(SCORE_MAX, total * SCORE_SCALE)), 2)


def tier_for(score: float) -> str:
    s = float(score)
    for floor, tier in TIER_BREAKPOINTS:
        if s >= floor:
            return tier
    return "restricted"


def tier_rank(tier: str) -> int:
    try:
        return TIERS.index(tier)
    except ValueError:
        return TIERS.index("new")


def has_privilege(tier: str, privilege: str) -> bool:
    return privilege in TIER_PRIVILEGES.get(tier, ())


def can_bypass_queue(tier: str) -> bool:
    return has_privilege(tier, "queue_bypass")


@dataclass(frozen=True, slots=True)
class ReputationView:
    user_id: str
    factors: Mapping[str, float]
    overall_score: float
    trust_tier: str
    last_calculated: Optional[datetime] = None
    is_default: bool = False

    def as_bundle(self) -> dict[str, object]:
        out: dict[str, object] = {
            "score": self.overall_score,
            "tier": self.trust_tier,
            "tier_rank": tier_rank(self.trust_tier),
        }
        out.update({k: float(v) for k, v in self.factors.items()})
        return out


def default_view(user_id: str) -> ReputationView:
    factors = {name: DEFAULT_FACTOR_VALUE for name in FACTORS}
    score = compute_overall(factors)
    return ReputationView(
        user_id=user_id,
        factors=MappingProxyType(factors),
        overall_score=score,
        trust_tier=tier_for(score),
        is_default=True,
    )


def build_view(user_id: str, factors: Mapping[str, float], *, last_calculated: Optional[datetime] = None) -> ReputationView:
    clean = {name: _clamp_factor(factors.get(name, DEFAULT_FACTOR_VALUE)) for name in FACTORS}
    score = compute_overall(clean)
    return ReputationView(
        user_id=user_id,
        factors=MappingProxyType(clean),
        overall_score=score,
        trust_tier=tier_for(score),
        last_calculated=last_calculated,
    )


@dataclass(frozen=True, slots=True)
class ReputationUpdate:
    before: ReputationView
    after: ReputationView
    deltas: Mapping[str, float] = field(default_factory=dict)

    @property
    def tier_changed(self) -> bool:
        return self.before.trust_tier != self.after.trust_tier


def apply_deltas(
    view: ReputationView,
    deltas: Mapping[str, float],
    *,
    at: Optional[datetime] = None,
) -> ReputationUpdate:
    unknown = set(deltas) - set(FACTORS)
    if unknown:
        raise ValueError(f"unknown reputation factors: {sorted(unknown)}")
    factors = dict(view.factors)
    for name, d in deltas.items():
        factors[name] = _clamp_factor(factors.get(name, DEFAULT_FACTOR_VALUE) + float(d))
    after = build_view(view.user_id, factors, last_calculated=at)
    return ReputationUpdate(before=view, after=after, deltas=MappingProxyType(dict(deltas)))


def deltas_for_resolution(action: str, severity: str) -> dict[str, float]:
    """Author deltas for a moderator resolution."""
    m = SEVERITY_MULTIPLIER.get(severity, 1.0)
    if action == "approve":
        return {"moderation_history": 2.0, "behavior_pattern": 1.0}
    if action == "reject":
        return {"moderation_history": -5.0 * m, "behavior_pattern": -3.0 * m}
    if action == "warn":
        return {"moderation_history": -2.5 * m, "behavior_pattern": -1.5 * m}
    if action == "edit":
        return {"moderation_history": -1.0 * m}
    if action == "ban":
        return {"moderation_history": -10.0 * m, "behavior_pattern": -6.0 * m}
    raise ValueError(f"unknown resolution action {action!r}")


def deltas_for_report(upheld: bool) -> dict[str, float]:
    return dict(REPORT_UPHELD_DELTA if upheld else REPORT_DISMISSED_DELTA)
