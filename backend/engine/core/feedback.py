"""Community feedback weighting (pure).

- Votes are weighted by the voter's trust tier.
- No single voter may hold more than MAX_VOTER_SHARE of an item's total weight.
- Threshold adjustments are small, bounded, and applied at most once per item.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Sequence

from engine.core.rules import Rule


TIER_VOTE_WEIGHTS: Mapping[str, float] = MappingProxyType(
    {
        "restricted": 0.3,
        "new": 0.8,
        "trusted": 1.5,
        "expert": 2.5,
        "moderator": 3.0,
        "admin": 3.0,
    }
)
SEVERITY_RATINGS = ("too_strict", "accurate", "too_lenient")

MAX_VOTER_SHARE = 0.2
MIN_VOTES_FOR_ADJUSTMENT = 2
ADJUSTMENT_SHARE = 0.6
MIN_VOTES_FOR_CONSENSUS = 5
OVERRIDE_AGREEMENT_CEILING = 0.4


def vote_weight(tier: str) -> float:
    return TIER_VOTE_WEIGHTS.get(tier, TIER_VOTE_WEIGHTS["new"])


def can_vote(tier: str) -> bool:
    return tier != "restricted"


def capped_weights(weights: Sequence[float], cap: float = MAX_VOTER_SHARE) -> list[float]:
    """Water-fill weights so that max(w) <= cap * sum(w).

    Weights above a level L are cut to L, where L solves L = cap * sum(min(w, L)).
    With fewer than 1/cap voters the cap cannot hold; weights are then equalised,
    which is the closest achievable distribution.
    """
    ws = [max(0.0, float(w)) for w in weights]
    n = len(ws)
    if n == 0:
        return []
    total = sum(ws)
    if total <= 0:
        return [0.0] * n
    if max(ws) <= cap * total + 1e-12:
        return ws
    if n * cap < 1.0:
        return [1.0] * n

    desc = sorted(ws, reverse=True)
    for k in range(1, n + 1):
        if 1.0 - cap * k <= 0:
            break
        below = sum(desc[k:])
        level = cap * below / (1.0 - cap * k)
        upper_ok = desc[k - 1] >= level
        lower_ok = k == n or desc[k] <= level
        if upper_ok and lower_ok:
            return [min(w, level) for w in ws]
    return [1.0] * n


@dataclass(frozen=True, slots=True)
class VoteRecord:
    voter_id: str
    weight: float
    was_accurate: bool
    severity_rating: str


@dataclass(frozen=True, slots=True)
class FeedbackSummary:
    vote_count: int
    total_weight: float
    agreement_rate: float
    strict_share: float
    accurate_share: float
    lenient_share: float
    consensus: Optional[str]
    override_recommended: bool


def summarize(votes: Sequence[VoteRecord], cap: float = MAX_VOTER_SHARE) -> FeedbackSummary:
    if not votes:
        return FeedbackSummary(0, 0.0, 0.0, 0.0, 0.0, 0.0, None, False)

    ordered = sorted(votes, key=lambda v: v.voter_id)
    eff = capped_weights([v.weight for v in ordered], cap)
    total = sum(eff)
    if total <= 0:
        return FeedbackSummary(len(ordered), 0.0, 0.0, 0.0, 0.0, 0.0, None, False)

    agree = sum(w for w, v in zip(eff, ordered) if v.was_accurate) / total
    shares = {
        r: sum(w for w, v in zip(eff, ordered) if v.severity_rating == r) / total for r in SEVERITY_RATINGS
    }
    consensus: Optional[str] = None
    best = max(SEVERITY_RATINGS, key=lambda r: (shares[r], r == "accurate"))
    if shares[best] >= ADJUSTMENT_SHARE:
        consensus = best

    return FeedbackSummary(
        vote_count=len(ordered),
        total_weight=round(total, 4),
        agreement_rate=round(agree, 4),
        strict_share=round(shares["too_strict"], 4),
        accurate_share=round(shares["accurate"], 4),
        lenient_share=round(shares["too_lenient"], 4),
        consensus=consensus,
        override_recommended=len(ordered) >= MIN_VOTES_FOR_CONSENSUS and agree < OVERRIDE_AGREEMENT_CEILING,
    )


def threshold_direction(summary: FeedbackSummary) -> int:
    """+1 raise (too strict), -1 lower (too lenient), 0 leave alone."""
    if summary.vote_count < MIN_VOTES_FOR_ADJUSTMENT:
        return 0
    if summary.strict_share >= ADJUSTMENT_SHARE:
        return 1
    if summary.lenient_share >= ADJUSTMENT_SHARE:
        return -1
    return 0


def adjust_threshold(rule: Rule, direction: int, step: float) -> Rule:
    if direction == 0:
        return rule
    return rule.with_threshold(rule.activation_threshold + direction * abs(step))


def vote_agrees_with_outcome(was_accurate: bool, item_status: str) -> bool:
    """A vote agrees when it matches what the moderator did with the flag.

    rejected: the flag was upheld, so "accurate" agrees.
    approved: the flag was overturned, so "not accurate" agrees.
    """
    if item_status == "rejected":
        return was_accurate
    if item_status == "approved":
        return not was_accurate
    return False
