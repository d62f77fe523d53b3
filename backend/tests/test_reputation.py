from __future__ import annotations

import pytest

from engine.core.reputation import (
    DEFAULT_FACTOR_VALUE,
    FACTOR_WEIGHTS,
    FACTORS,
    apply_deltas,
    build_view,
    can_bypass_queue,
    compute_overall,
    deltas_for_report,
    deltas_for_resolution,
    default_view,
    tier_for,
)


def test_factor_weights_sum_to_one():
    assert sum(FACTOR_WEIGHTS.values()) == pytest.approx(1.0)


def test_default_view_is_new_tier_at_100():
    v = default_view("u")
    assert v.overall_score == 100.0
    assert v.trust_tier == "new"
    assert v.is_default is True
    assert all(v.factors[f] == DEFAULT_FACTOR_VALUE for f in FACTORS)


@pytest.mark.parametrize(
    "score,tier",
    [
        (0, "restricted"),
        (49.99, "restricted"),
        (50, "new"),
        (149.9, "new"),
        (150, "trusted"),
        (300, "expert"),
        (500, "moderator"),
        (1000, "admin"),
    ],
)
def test_tier_breakpoints(score, tier):
    assert tier_for(score) == tier


def test_overall_is_bounded():
    assert compute_overall({f: 500.0 for f in FACTORS}) == 1000.0
    assert compute_overall({f: -50.0 for f in FACTORS}) == 0.0


def test_factor_values_are_clamped_when_applying_deltas():
    update = apply_deltas(default_view("u"), {"moderation_history": -1000.0})
    assert update.after.factors["moderation_history"] == 0.0


def test_unknown_factor_is_rejected():
    with pytest.raises(ValueError):
        apply_deltas(default_view("u"), {"karma": 1.0})


def test_reject_scales_with_severity():
    low = deltas_for_resolution("reject", "low")
    critical = deltas_for_resolution("reject", "critical")
    assert critical["moderation_history"] == low["moderation_history"] * 3


def test_approve_rewards_author():
    d = deltas_for_resolution("approve", "high")
    assert d["moderation_history"] > 0
    assert d["behavior_pattern"] > 0


def test_unknown_resolution_action_raises():
    with pytest.raises(ValueError):
        deltas_for_resolution("shrug", "low")


def test_report_deltas():
    assert deltas_for_report(True)["community_trust"] > 0
    assert deltas_for_report(False)["community_trust"] < 0


def test_tier_change_is_reported():
    near = build_view("u", {f: 14.9 for f in FACTORS})
    assert near.trust_tier == "new"
    update = apply_deltas(near, {f: 1.0 for f in FACTORS})
    assert update.after.trust_tier == "trusted"
    assert update.tier_changed is True


def test_queue_bypass_privilege_starts_at_trusted():
    assert not can_bypass_queue("new")
    assert can_bypass_queue("trusted")
    assert can_bypass_queue("expert")
