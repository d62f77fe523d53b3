from __future__ import annotations

"""Decision engine (pure).

Order of operations is fixed for determinism:
1. score (clamped to [0,1]); scorer failure raises ScorerUnavailable
2. reputation is supplied by the caller (already defaulted)
3. cultural-context dampening of spam/toxicity
4. rule engine, else default threshold policy over max(spam, toxicity)
5. shouldFlag + severity from the winning magnitude

Persistence and queueing belong to the service layer.
"""

import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Mapping, Optional

from engine.core.errors import ScorerUnavailable
from engine.core.reputation import ReputationView
from engine.core.rules import SEVERITIES, RuleAction, RuleEngine
from engine.core.scorers import count_words
from engine.core.signals import SignalScorer, SignalScores, clamp01
from engine.core.timeutil import ensure_utc


BLOCK_AT = 0.85
REVIEW_AT = 0.6
FLAG_AT = 0.4

CULTURAL_FLAGS = ("bilingual", "regional_idiom")
CONTENT_TYPES = ("question", "answer", "forum_post", "forum_reply", "story", "comment")


@dataclass(frozen=True, slots=True)
class EvaluationContext:
    content_type: str
    submitted_at: datetime
    account_created_at: Optional[datetime] = None
    professional_context: bool = False
    has_report: bool = False
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Decision:
    content_id: str
    action: str
    severity: str
    should_flag: bool
    confidence: float
    scores: SignalScores
    raw_spam: float
    raw_toxicity: float
    triggered_rule_ids: tuple[str, ...]
    winning_rule_id: Optional[str]
    reasons: tuple[str, ...]
    side_effects: tuple[RuleAction, ...]
    author_tier: str
    author_score: float
    degraded: bool = False
    processing_ms: int = 0


def apply_cultural_adjustment(scores: SignalScores) -> SignalScores:
    """Dampen spam/toxicity when language-context flags are present.

    adjusted = raw * (1 - culturalAdjustment); with the factor in [0,1] the
    adjusted score can never exceed the raw score.
    """
    if not any(scores.flags.get(f) for f in CULTURAL_FLAGS):
        return scores
    keep = 1.0 - clamp01(scores.cultural_adjustment)
    return replace(
        scores,
        spam=min(scores.spam, clamp01(scores.spam * keep)),
        toxicity=min(scores.toxicity, clamp01(scores.toxicity * keep)),
    )


def default_policy(magnitude: float) -> str:
    if magnitude >= BLOCK_AT:
        return "block"
    if magnitude >= REVIEW_AT:
        return "review"
    if magnitude >= FLAG_AT:
        return "flag"
    return "allow"


def severity_for(magnitude: float) -> str:
    if magnitude < FLAG_AT:
        return "low"
    if magnitude < REVIEW_AT:
        return "medium"
    if magnitude < BLOCK_AT:
        return "high"
    return "critical"


def escalate_severity(severity: str) -> str:
    i = SEVERITIES.index(severity) if severity in SEVERITIES else 0
    return SEVERITIES[min(len(SEVERITIES) - 1, i + 1)]


def build_bundle(
    *,
    text: str,
    scores: SignalScores,
    raw: SignalScores,
    reputation: ReputationView,
    context: EvaluationContext,
) -> dict[str, Any]:
    submitted = ensure_utc(context.submitted_at)
    hour = submitted.hour
    weekday = submitted.weekday()

    ctx: dict[str, Any] = {}
    for k, v in (context.extra or {}).items():
        if isinstance(v, (str, int, float, bool)):
            ctx[str(k)] = v
    ctx.update(
        {
            "content_type": context.content_type,
            "hour_of_day": hour,
            "day_of_week": weekday,
            "is_weekend": weekday >= 5,
            "is_business_hours": weekday < 5 and 9 <= hour < 17,
            "professional_context": bool(context.professional_context),
            "has_report": bool(context.has_report),
        }
    )
    if context.account_created_at is not None:
        age = submitted - ensure_utc(context.account_created_at)
        ctx["account_age_days"] = max(0, age.days)

    return {
        "signals": {
            "spam": scores.spam,
            "toxicity": scores.toxicity,
            "quality": scores.quality,
            "cultural_adjustment": scores.cultural_adjustment,
            "raw_spam": raw.spam,
            "raw_toxicity": raw.toxicity,
        },
        "flags": dict(scores.flags),
        "reputation": reputation.as_bundle(),
        "context": ctx,
        "metadata": {
            "word_count": count_words(text),
            "char_count": len(text),
            "has_links": bool(scores.flags.get("has_links")),
            "language": scores.language,
        },
    }


def evaluate(
    *,
    content_id: str,
    text: str,
    reputation: ReputationView,
    context: EvaluationContext,
    scorer: SignalScorer,
    rules: RuleEngine,
) -> Decision:
    started = time.monotonic()
    try:
        raw = scorer.score(text, content_type=context.content_type).clamped()
    except ScorerUnavailable:
        raise
    except Exception as e:  # noqa: BLE001
        raise ScorerUnavailable(f"Signal scorer raised {type(e).__name__}.") from e

    scores = apply_cultural_adjustment(raw)
    bundle = build_bundle(text=text, scores=scores, raw=raw, reputation=reputation, context=context)
    outcome = rules.evaluate(bundle)

    magnitude = max(scores.spam, scores.toxicity)
    reasons: list[str] = [f"signal:{f}" for f in scores.active_flags()]

    if outcome.verdict is not None:
        action = outcome.verdict.type
        severity = outcome.verdict.severity or severity_for(magnitude)
        confidence = outcome.match_score
        reasons.insert(0, f"rule:{outcome.winning_rule_id}")
    else:
        action = default_policy(magnitude)
        severity = severity_for(magnitude)
        confidence = magnitude if action != "allow" else 1.0 - magnitude
        reasons.insert(0, f"default_policy:max_score={magnitude:.2f}")

    for effect in outcome.side_effects:
        if effect.type == "escalate":
            severity = escalate_severity(severity)
    if action == "allow":
        severity = "low"

    return Decision(
        content_id=content_id,
        action=action,
        severity=severity,
        should_flag=action != "allow",
        confidence=round(clamp01(confidence), 4),
        scores=scores,
        raw_spam=raw.spam,
        raw_toxicity=raw.toxicity,
        triggered_rule_ids=outcome.triggered_rule_ids,
        winning_rule_id=outcome.winning_rule_id,
        reasons=tuple(reasons),
        side_effects=outcome.side_effects,
        author_tier=reputation.trust_tier,
        author_score=reputation.overall_score,
        processing_ms=int((time.monotonic() - started) * 1000),
    )


def fail_safe_decision(*, content_id: str, reputation: ReputationView, reason: str) -> Decision:
    """Review verdict used when scoring is unavailable. Never allow."""
    return Decision(
        content_id=content_id,
        action="review",
        severity="medium",
        should_flag=True,
        confidence=0.0,
        scores=SignalScores(spam=0.0, toxicity=0.0, quality=0.0),
        raw_spam=0.0,
        raw_toxicity=0.0,
        triggered_rule_ids=(),
        winning_rule_id=None,
        reasons=(reason,),
        side_effects=(),
        author_tier=reputation.trust_tier,
        author_score=reputation.overall_score,
        degraded=True,
    )
