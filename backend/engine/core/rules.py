from __future__ import annotations

"""Declarative rule engine.

Rules are data: an ordered list of weighted conditions over a signal bundle,
plus an ordered list of actions. One generic evaluator interprets them.

Evaluation contract:
- Active rules sorted by priority desc, then id asc.
- match score = sum(weight * met) / sum(weight).
- A rule triggers when match score >= its activation threshold.
- The first triggering rule's verdict wins; every triggering id is recorded.
- A malformed rule is skipped with a warning; evaluation of the others goes on.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

import yaml

from engine.core.errors import RuleLoadError

logger = logging.getLogger(__name__)


OPERATORS = frozenset({"eq", "ne", "gt", "gte", "lt", "lte", "in", "not_in", "contains", "not_contains"})
VERDICTS = ("allow", "flag", "review", "block")
SIDE_EFFECTS = ("warn", "notify", "escalate", "assign", "restrict")
SEVERITIES = ("low", "medium", "high", "critical")

DEFAULT_ACTIVATION_THRESHOLD = 0.6
DEFAULT_MIN_THRESHOLD = 0.3
DEFAULT_MAX_THRESHOLD = 0.95

_MISSING = object()


class MalformedRule(ValueError):
    """Rule cannot be evaluated (unknown operator, no verdict, zero weight)."""


@dataclass(frozen=True, slots=True)
class Condition:
    signal_path: str
    operator: str
    threshold: Any
    weight: float = 1.0


@dataclass(frozen=True, slots=True)
class RuleAction:
    type: str
    severity: Optional[str] = None
    target: Optional[str] = None
    parameters: dict[str, Any] = field(default_factory=dict)

    @property
    def is_verdict(self) -> bool:
        return self.type in VERDICTS


@dataclass(frozen=True, slots=True)
class Rule:
    id: str
    name: str
    priority: int
    conditions: tuple[Condition, ...]
    actions: tuple[RuleAction, ...]
    activation_threshold: float = DEFAULT_ACTIVATION_THRESHOLD
    min_threshold: float = DEFAULT_MIN_THRESHOLD
    max_threshold: float = DEFAULT_MAX_THRESHOLD
    is_active: bool = True
    description: str = ""

    def verdict(self) -> Optional[RuleAction]:
        for a in self.actions:
            if a.is_verdict:
                return a
        return None

    def side_effects(self) -> tuple[RuleAction, ...]:
        return tuple(a for a in self.actions if not a.is_verdict)

    def with_threshold(self, value: float) -> "Rule":
        bounded = max(self.min_threshold, min(self.max_threshold, float(value)))
        return replace(self, activation_threshold=round(bounded, 4))


@dataclass(frozen=True, slots=True)
class RuleEvaluation:
    """Outcome of one pass over the rule set."""

    winning_rule_id: Optional[str]
    verdict: Optional[RuleAction]
    match_score: float
    triggered_rule_ids: tuple[str, ...]
    side_effects: tuple[RuleAction, ...]
    skipped_rule_ids: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class RuleTrace:
    """Per-rule detail of one pass, for dry runs."""

    rule_id: str
    name: str
    priority: int
    activation_threshold: float
    match_score: Optional[float]
    triggered: bool
    conditions_met: tuple[str, ...] = ()
    skipped_reason: Optional[str] = None


def sort_rules(rules: Iterable[Rule]) -> tuple[Rule, ...]:
    return tuple(sorted(rules, key=lambda r: (-int(r.priority), r.id)))


def resolve_path(bundle: Mapping[str, Any], path: str) -> Any:
    cur: Any = bundle
    for part in path.split("."):
        if isinstance(cur, Mapping) and part in cur:
            cur = cur[part]
        else:
            return _MISSING
    return cur


def _norm(v: Any) -> Any:
    return v.lower() if isinstance(v, str) else v


def _compare(value: Any, operator: str, threshold: Any) -> bool:
    if operator == "eq":
        return _norm(value) == _norm(threshold)
    if operator == "ne":
        return _norm(value) != _norm(threshold)
    if operator in ("gt", "gte", "lt", "lte"):
        if isinstance(value, bool) or value is None:
            return False
        try:
            v, t = float(value), float(threshold)
        except (TypeError, ValueError):
            return False
        if operator == "gt":
            return v > t
        if operator == "gte":
            return v >= t
        if operator == "lt":
            return v < t
        return v <= t
    if operator in ("in", "not_in"):
        pool = threshold if isinstance(threshold, (list, tuple, set, frozenset)) else [threshold]
        hit = _norm(value) in {_norm(x) for x in pool}
        return hit if operator == "in" else not hit
    if operator in ("contains", "not_contains"):
        if isinstance(value, str):
            hit = str(threshold).lower() in value.lower()
        elif isinstance(value, (list, tuple, set, frozenset)):
            hit = _norm(threshold) in {_norm(x) for x in value}
        else:
            hit = False
        return hit if operator == "contains" else not hit
    raise MalformedRule(f"unknown operator {operator!r}")


def condition_met(cond: Condition, bundle: Mapping[str, Any]) -> bool:
    if cond.operator not in OPERATORS:
        raise MalformedRule(f"unknown operator {cond.operator!r} on {cond.signal_path!r}")
    value = resolve_path(bundle, cond.signal_path)
    if value is _MISSING:
        # Unresolvable path: treated as not met. Negative operators stay false
        # too so a typo never makes a rule fire.
        return False
    return _compare(value, cond.operator, cond.threshold)


def match_score(rule: Rule, bundle: Mapping[str, Any]) -> float:
    """Weighted share of met conditions. Raises MalformedRule."""
    if not rule.conditions:
        raise MalformedRule("rule has no conditions")
    total = sum(max(0.0, float(c.weight)) for c in rule.conditions)
    if total <= 0:
        raise MalformedRule("rule has zero total weight")
    met = 0.0
    for c in rule.conditions:
        if condition_met(c, bundle):
            met += max(0.0, float(c.weight))
    return met / total


def trace_rules(rules: Iterable[Rule], bundle: Mapping[str, Any]) -> tuple[RuleTrace, ...]:
    """Explain every rule against `bundle` in evaluation order. Never raises on a bad rule."""
    traces: list[RuleTrace] = []
    for rule in sort_rules(rules):
        base = dict(
            rule_id=rule.id,
            name=rule.name,
            priority=rule.priority,
            activation_threshold=rule.activation_threshold,
        )
        try:
            if rule.verdict() is None:
                raise MalformedRule("rule has no verdict action")
            score = match_score(rule, bundle)
            met = tuple(c.signal_path for c in rule.conditions if condition_met(c, bundle))
        except MalformedRule as e:
            traces.append(RuleTrace(match_score=None, triggered=False, skipped_reason=str(e), **base))
            continue
        traces.append(
            RuleTrace(
                match_score=round(score, 4),
                triggered=score >= rule.activation_threshold,
                conditions_met=met,
                **base,
            )
        )
    return tuple(traces)


class RuleEngine:
    """Holds the active rule set; reload swaps it atomically.

    Readers take a reference to the current tuple, so an evaluation in flight
    always sees one consistent rule set.
    """

    def __init__(self, rules: Iterable[Rule] = ()) -> None:
        self._lock = threading.Lock()
        self._rules: tuple[Rule, ...] = sort_rules(r for r in rules if r.is_active)

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    def reload(self, rules: Iterable[Rule]) -> None:
        fresh = sort_rules(r for r in rules if r.is_active)
        with self._lock:
            self._rules = fresh
        logger.info(f"Rule set reloaded: {len(fresh)} active rules")

    def get(self, rule_id: str) -> Optional[Rule]:
        for r in self._rules:
            if r.id == rule_id:
                return r
        return None

    def explain(self, bundle: Mapping[str, Any]) -> tuple[RuleTrace, ...]:
        return trace_rules(self._rules, bundle)

    def evaluate(self, bundle: Mapping[str, Any]) -> RuleEvaluation:
        rules = self._rules
        triggered: list[str] = []
        skipped: list[str] = []
        winner: Optional[Rule] = None
        winner_score = 0.0

        for rule in rules:
            try:
                if rule.verdict() is None:
                    raise MalformedRule("rule has no verdict action")
                score = match_score(rule, bundle)
            except MalformedRule as e:
                logger.warning(f"Skipping malformed rule {rule.id}: {e}")
                skipped.append(rule.id)
                continue

            if score >= rule.activation_threshold:
                triggered.append(rule.id)
                if winner is None:
                    winner = rule
                    winner_score = score

        if winner is None:
            return RuleEvaluation(
                winning_rule_id=None,
                verdict=None,
                match_score=0.0,
                triggered_rule_ids=tuple(triggered),
                side_effects=(),
                skipped_rule_ids=tuple(skipped),
            )
        return RuleEvaluation(
            winning_rule_id=winner.id,
            verdict=winner.verdict(),
            match_score=round(winner_score, 4),
            triggered_rule_ids=tuple(triggered),
            side_effects=winner.side_effects(),
            skipped_rule_ids=tuple(skipped),
        )


def _safe_float(v: Any, default: float) -> float:
    try:
        return float(v)
    except (TypeError, ValueError):
        return default


def _safe_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def _severity(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).lower()
    return s if s in SEVERITIES else None


def condition_from_mapping(data: Mapping[str, Any]) -> Condition:
    return Condition(
        signal_path=str(data.get("signal_path") or data.get("field") or ""),
        operator=str(data.get("operator") or ""),
        threshold=data.get("threshold", data.get("value")),
        weight=_safe_float(data.get("weight"), 1.0),
    )


def action_from_mapping(data: Mapping[str, Any]) -> RuleAction:
    params = data.get("parameters") or {}
    return RuleAction(
        type=str(data.get("type") or "").lower(),
        severity=_severity(data.get("severity")),
        target=(str(data["target"]) if data.get("target") is not None else None),
        parameters=dict(params) if isinstance(params, Mapping) else {},
    )


def rule_from_mapping(
    data: Mapping[str, Any],
    *,
    default_min: float = DEFAULT_MIN_THRESHOLD,
    default_max: float = DEFAULT_MAX_THRESHOLD,
) -> Rule:
    """Build a Rule from a plain mapping (YAML document or DB row dict).

    Unknown operators are kept as-is: the engine skips such rules at evaluation
    time instead of refusing to load the whole set.
    """
    rule_id = str(data.get("id") or "").strip()
    if not rule_id:
        raise RuleLoadError("rule is missing an id")
    lo = _safe_float(data.get("min_threshold"), default_min)
    hi = _safe_float(data.get("max_threshold"), default_max)
    if lo > hi:
        raise RuleLoadError(f"rule {rule_id}: min_threshold > max_threshold")
    threshold = _safe_float(data.get("activation_threshold"), DEFAULT_ACTIVATION_THRESHOLD)
    return Rule(
        id=rule_id,
        name=str(data.get("name") or rule_id),
        priority=_safe_int(data.get("priority"), 0),
        conditions=tuple(condition_from_mapping(c) for c in (data.get("conditions") or []) if isinstance(c, Mapping)),
        actions=tuple(action_from_mapping(a) for a in (data.get("actions") or []) if isinstance(a, Mapping)),
        activation_threshold=max(lo, min(hi, threshold)),
        min_threshold=lo,
        max_threshold=hi,
        is_active=bool(data.get("is_active", True)),
        description=str(data.get("description") or ""),
    )


def condition_to_mapping(c: Condition) -> dict[str, Any]:
    return {"signal_path": c.signal_path, "operator": c.operator, "threshold": c.threshold, "weight": c.weight}


def action_to_mapping(a: RuleAction) -> dict[str, Any]:
    out: dict[str, Any] = {"type": a.type}
    if a.severity is not None:
        out["severity"] = a.severity
    if a.target is not None:
        out["target"] = a.target
    if a.parameters:
        out["parameters"] = dict(a.parameters)
    return out


def load_rules_yaml(path: Path, **bounds: float) -> list[Rule]:
    try:
        raw = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise RuleLoadError(f"cannot read rules file {path}: {e}") from e
    if not isinstance(raw, dict):
        raise RuleLoadError("rules yaml must be a mapping")
    docs = raw.get("rules") or []
    if not isinstance(docs, list):
        raise RuleLoadError("rules yaml: 'rules' must be a list")
    return [rule_from_mapping(d, **bounds) for d in docs if isinstance(d, Mapping)]


DEFAULT_RULES_PATH = Path(__file__).resolve().parents[1] / "rules" / "default_rules.yaml"
