from __future__ import annotations

from pathlib import Path

import pytest

from engine.core.errors import RuleLoadError
from engine.core.rules import (
    DEFAULT_RULES_PATH,
    Condition,
    MalformedRule,
    Rule,
    RuleAction,
    RuleEngine,
    trace_rules,
    load_rules_yaml,
    match_score,
    rule_from_mapping,
)


def _rule(rule_id: str, priority: int, conditions, actions=None, threshold: float = 0.6, **kw) -> Rule:
    return Rule(
        id=rule_id,
        name=rule_id,
        priority=priority,
        conditions=tuple(conditions),
        actions=tuple(actions or (RuleAction(type="review"),)),
        activation_threshold=threshold,
        **kw,
    )


def _bundle(**signals) -> dict:
    return {
        "signals": {"spam": 0.0, "toxicity": 0.0, "quality": 0.5, **signals},
        "flags": {"promotional": True},
        "reputation": {"tier": "new", "tier_rank": 1, "score": 100.0},
        "context": {"content_type": "comment", "professional_context": False},
        "metadata": {"word_count": 12},
    }


def test_match_score_is_weighted_share_of_met_conditions():
    rule = _rule(
        "r",
        1,
        [
            Condition("signals.spam", "gte", 0.5, weight=2.0),
            Condition("flags.promotional", "eq", True, weight=1.0),
            Condition("reputation.tier", "eq", "expert", weight=1.0),
        ],
    )
    assert match_score(rule, _bundle(spam=0.7)) == pytest.approx(0.75)
    assert match_score(rule, _bundle(spam=0.1)) == pytest.approx(0.25)


def test_unresolvable_path_is_not_met_even_for_negative_operators():
    rule = _rule("r", 1, [Condition("signals.missing", "ne", 1), Condition("context.nope", "not_in", ["x"])])
    assert match_score(rule, _bundle()) == 0.0


def test_string_comparisons_are_case_insensitive():
    rule = _rule("r", 1, [Condition("reputation.tier", "in", ["NEW", "Restricted"])])
    assert match_score(rule, _bundle()) == 1.0


def test_unknown_operator_raises_malformed_rule():
    rule = _rule("r", 1, [Condition("signals.spam", "approx", 0.5)])
    with pytest.raises(MalformedRule):
        match_score(rule, _bundle())


def test_first_match_by_priority_wins_and_all_matches_are_reported():
    low = _rule("low", 10, [Condition("signals.spam", "gte", 0.5)], [RuleAction(type="flag")])
    high = _rule("high", 50, [Condition("signals.spam", "gte", 0.3)], [RuleAction(type="block", severity="high")])
    engine = RuleEngine([low, high])

    out = engine.evaluate(_bundle(spam=0.9))

    assert out.winning_rule_id == "high"
    assert out.verdict.type == "block"
    assert out.triggered_rule_ids == ("high", "low")


def test_equal_priority_breaks_ties_by_id():
    b = _rule("b-rule", 5, [Condition("signals.spam", "gte", 0.1)])
    a = _rule("a-rule", 5, [Condition("signals.spam", "gte", 0.1)])
    out = RuleEngine([b, a]).evaluate(_bundle(spam=0.5))
    assert out.winning_rule_id == "a-rule"


def test_malformed_rule_is_skipped_not_fatal():
    broken = _rule("broken", 99, [Condition("signals.spam", "approx", 0.1)])
    no_verdict = _rule("no-verdict", 98, [Condition("signals.spam", "gte", 0.1)], [RuleAction(type="notify")])
    good = _rule("good", 1, [Condition("signals.spam", "gte", 0.1)])

    out = RuleEngine([broken, no_verdict, good]).evaluate(_bundle(spam=0.5))

    assert out.winning_rule_id == "good"
    assert set(out.skipped_rule_ids) == {"broken", "no-verdict"}


def test_inactive_rules_are_not_loaded():
    active = _rule("on", 1, [Condition("signals.spam", "gte", 0.1)])
    inactive = _rule("off", 2, [Condition("signals.spam", "gte", 0.1)], is_active=False)
    engine = RuleEngine([active, inactive])
    assert [r.id for r in engine.rules] == ["on"]


def test_side_effects_come_from_winner_only():
    winner = _rule(
        "w",
        10,
        [Condition("signals.spam", "gte", 0.1)],
        [RuleAction(type="block"), RuleAction(type="notify", target="moderators")],
    )
    loser = _rule("l", 1, [Condition("signals.spam", "gte", 0.1)], [RuleAction(type="flag"), RuleAction(type="warn")])
    out = RuleEngine([winner, loser]).evaluate(_bundle(spam=0.5))
    assert [e.type for e in out.side_effects] == ["notify"]


def test_reload_swaps_the_rule_set():
    engine = RuleEngine([_rule("one", 1, [Condition("signals.spam", "gte", 0.1)])])
    engine.reload([_rule("two", 1, [Condition("signals.spam", "gte", 0.1)])])
    assert engine.get("one") is None
    assert engine.get("two") is not None


def test_no_match_returns_empty_evaluation():
    out = RuleEngine([_rule("r", 1, [Condition("signals.spam", "gte", 0.9)])]).evaluate(_bundle(spam=0.1))
    assert out.winning_rule_id is None
    assert out.verdict is None
    assert out.triggered_rule_ids == ()


def test_rule_from_mapping_clamps_threshold_into_bounds():
    rule = rule_from_mapping(
        {
            "id": "x",
            "conditions": [{"signal_path": "signals.spam", "operator": "gte", "threshold": 0.5}],
            "actions": [{"type": "flag"}],
            "activation_threshold": 0.99,
            "min_threshold": 0.4,
            "max_threshold": 0.9,
        }
    )
    assert rule.activation_threshold == 0.9


def test_rule_from_mapping_rejects_inverted_bounds():
    with pytest.raises(RuleLoadError):
        rule_from_mapping({"id": "x", "min_threshold": 0.9, "max_threshold": 0.2})


def test_with_threshold_stays_inside_bounds():
    rule = _rule("r", 1, [Condition("signals.spam", "gte", 0.1)], threshold=0.9, max_threshold=0.95)
    assert rule.with_threshold(1.2).activation_threshold == 0.95
    assert rule.with_threshold(0.0).activation_threshold == rule.min_threshold


def test_default_rule_file_loads():
    rules = load_rules_yaml(DEFAULT_RULES_PATH)
    ids = {r.id for r in rules}
    assert {"threat-language", "new-account-promotion", "trusted-professional-leniency"} <= ids
    assert all(r.verdict() is not None for r in rules)


def test_missing_rule_file_raises(tmp_path: Path):
    with pytest.raises(RuleLoadError):
        load_rules_yaml(tmp_path / "absent.yaml")


def test_trace_explains_every_rule_in_evaluation_order():
    rules = [
        _rule("low", 1, [Condition("signals.spam", "gte", 0.5), Condition("flags.promotional", "eq", True)]),
        _rule("high", 10, [Condition("signals.toxicity", "gte", 0.5)]),
        _rule("broken", 5, [Condition("signals.spam", "approx", 0.5)]),
    ]
    traces = trace_rules(rules, _bundle(spam=0.7))

    assert [t.rule_id for t in traces] == ["high", "broken", "low"]
    high, broken, low = traces
    assert high.triggered is False and high.match_score == 0.0
    assert broken.match_score is None and broken.skipped_reason
    assert low.triggered is True
    assert low.match_score == pytest.approx(1.0)
    assert low.conditions_met == ("signals.spam", "flags.promotional")


def test_engine_explain_agrees_with_evaluate():
    engine = RuleEngine(
        [
            _rule("a", 2, [Condition("signals.spam", "gte", 0.5)]),
            _rule("b", 1, [Condition("flags.promotional", "eq", True)]),
        ]
    )
    bundle = _bundle(spam=0.9)
    evaluation = engine.evaluate(bundle)
    traces = engine.explain(bundle)
    assert tuple(t.rule_id for t in traces if t.triggered) == evaluation.triggered_rule_ids
