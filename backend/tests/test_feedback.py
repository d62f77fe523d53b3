from __future__ import annotations

import pytest

from engine.core.feedback import (
    MAX_VOTER_SHARE,
    VoteRecord,
    adjust_threshold,
    can_vote,
    capped_weights,
    summarize,
    threshold_direction,
    vote_agrees_with_outcome,
    vote_weight,
)
from engine.core.rules import Condition, Rule, RuleAction


def _votes(*specs) -> list[VoteRecord]:
    return [
        VoteRecord(voter_id=f"v{i:02d}", weight=w, was_accurate=acc, severity_rating=rating)
        for i, (w, acc, rating) in enumerate(specs)
    ]


def test_no_voter_exceeds_cap_when_enough_voters():
    weights = [3.0] + [0.8] * 9
    capped = capped_weights(weights)
    assert max(capped) <= MAX_VOTER_SHARE * sum(capped) + 1e-9


def test_weights_under_cap_are_untouched():
    weights = [1.0] * 10
    assert capped_weights(weights) == weights


def test_too_few_voters_are_equalised():
    assert capped_weights([3.0, 0.3]) == [1.0, 1.0]


def test_empty_summary():
    s = summarize([])
    assert s.vote_count == 0
    assert s.consensus is None
    assert s.override_recommended is False


def test_summary_shares_and_consensus():
    s = summarize(_votes((1.5, False, "too_strict"), (1.5, False, "too_strict"), (1.5, True, "accurate")))
    assert s.vote_count == 3
    assert s.strict_share == pytest.approx(2 / 3, abs=1e-4)
    assert s.consensus == "too_strict"
    assert s.agreement_rate == pytest.approx(1 / 3, abs=1e-4)


def test_override_recommended_needs_five_votes_and_low_agreement():
    four = summarize(_votes(*[(1.0, False, "too_strict")] * 4))
    five = summarize(_votes(*[(1.0, False, "too_strict")] * 5))
    assert four.override_recommended is False
    assert five.override_recommended is True


def test_threshold_direction():
    strict = summarize(_votes((1.5, False, "too_strict"), (1.5, False, "too_strict")))
    lenient = summarize(_votes((1.5, False, "too_lenient"), (1.5, False, "too_lenient")))
    split = summarize(_votes((1.5, False, "too_strict"), (1.5, False, "too_lenient")))
    single = summarize(_votes((3.0, False, "too_strict")))
    assert threshold_direction(strict) == 1
    assert threshold_direction(lenient) == -1
    assert threshold_direction(split) == 0
    assert threshold_direction(single) == 0


def test_adjust_threshold_moves_by_step_within_bounds():
    rule = Rule(
        id="r",
        name="r",
        priority=1,
        conditions=(Condition("signals.spam", "gte", 0.5),),
        actions=(RuleAction(type="flag"),),
        activation_threshold=0.93,
        max_threshold=0.95,
    )
    assert adjust_threshold(rule, 1, 0.05).activation_threshold == 0.95
    assert adjust_threshold(rule, -1, 0.05).activation_threshold == pytest.approx(0.88)
    assert adjust_threshold(rule, 0, 0.05) is rule


def test_vote_weights_and_eligibility():
    assert vote_weight("expert") > vote_weight("trusted") > vote_weight("new")
    assert can_vote("new")
    assert not can_vote("restricted")


def test_vote_agreement_with_outcome():
    assert vote_agrees_with_outcome(True, "rejected")
    assert not vote_agrees_with_outcome(True, "approved")
    assert vote_agrees_with_outcome(False, "approved")
    assert not vote_agrees_with_outcome(True, "pending")
