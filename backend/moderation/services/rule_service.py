from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from engine.core.decision import (
    CONTENT_TYPES,
    EvaluationContext,
    apply_cultural_adjustment,
    build_bundle,
    default_policy,
)
from engine.core.errors import ConflictError, NotFoundError, RuleLoadError, ScorerUnavailable, ValidationError
from engine.core.rules import (
    OPERATORS,
    SIDE_EFFECTS,
    VERDICTS,
    Rule,
    RuleEngine,
    RuleEvaluation,
    RuleTrace,
    rule_from_mapping,
)
from engine.core.signals import SignalScores
from engine.core.timeutil import ensure_utc, utc_now
from moderation.models.moderation_rule import ModerationRule
from moderation.repositories.base import storage_guard
from moderation.repositories.rule_repo import RuleRepository, row_from_rule, rule_from_row
from moderation.services.reputation_service import ReputationService
from moderation.services.runtime import ModerationRuntime


logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "description",
    "priority",
    "conditions",
    "actions",
    "activation_threshold",
    "min_threshold",
    "max_threshold",
    "is_active",
)
MAX_TEST_CONTENT_LENGTH = 50_000


def validate_rule(rule: Rule) -> None:
    """Authoring-time checks. The engine still skips bad rules at evaluation time."""
    if not rule.conditions:
        raise ValidationError(f"Rule {rule.id} needs at least one condition.")
    for c in rule.conditions:
        if c.operator not in OPERATORS:
            raise ValidationError(
                f"Rule {rule.id}: unknown operator {c.operator!r}.",
                details={"allowed": sorted(OPERATORS)},
            )
        if not c.signal_path:
            raise ValidationError(f"Rule {rule.id}: condition is missing signal_path.")
        if c.weight <= 0:
            raise ValidationError(f"Rule {rule.id}: condition weights must be positive.")
    verdicts = [a for a in rule.actions if a.type in VERDICTS]
    if len(verdicts) != 1:
        raise ValidationError(f"Rule {rule.id} must have exactly one verdict action.", details={"allowed": list(VERDICTS)})
    for a in rule.actions:
        if a.type not in VERDICTS and a.type not in SIDE_EFFECTS:
            raise ValidationError(
                f"Rule {rule.id}: unknown action {a.type!r}.",
                details={"allowed": list(VERDICTS) + list(SIDE_EFFECTS)},
            )


@dataclass(frozen=True, slots=True)
class RuleTestOutcome:
    action: str
    evaluation: RuleEvaluation
    traces: tuple[RuleTrace, ...]
    scores: SignalScores
    author_tier: str
    draft: bool


class RuleService:
    def __init__(self, session: Session, runtime: ModerationRuntime) -> None:
        self._session = session
        self._runtime = runtime
        self._repo = RuleRepository(session)

    def list(self) -> Sequence[ModerationRule]:
        return self._repo.list_all()

    def create(self, payload: Mapping[str, Any]) -> ModerationRule:
        rule = self._parse(payload)
        if self._repo.get(rule.id) is not None:
            raise ConflictError(f"Rule {rule.id} already exists.")
        row = self._repo.add(row_from_rule(rule))
        self._commit_and_reload()
        logger.info(f"Rule {rule.id} created (priority={rule.priority})")
        return row

    def update(self, rule_id: str, changes: Mapping[str, Any]) -> ModerationRule:
        row = self._repo.get(rule_id)
        if row is None:
            raise NotFoundError(f"Rule {rule_id} not found.")
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Fields not editable: {sorted(unknown)}.")

        current = rule_from_row(row)
        merged: dict[str, Any] = {
            "id": current.id,
            "name": row.name,
            "description": row.description,
            "priority": row.priority,
            "conditions": row.conditions,
            "actions": row.actions,
            "activation_threshold": row.activation_threshold,
            "min_threshold": row.min_threshold,
            "max_threshold": row.max_threshold,
            "is_active": row.is_active,
        }
        merged.update(changes)
        rule = self._parse(merged)

        fresh = row_from_rule(rule)
        for name in EDITABLE_FIELDS:
            setattr(row, name, getattr(fresh, name))
        self._commit_and_reload()
        logger.info(f"Rule {rule_id} updated: {sorted(changes)}")
        return row

    def reload(self) -> int:
        return self._runtime.reload_rules(self._session)

    def set_active(self, rule_ids: Sequence[str], active: bool) -> Sequence[ModerationRule]:
        """Bulk activate or deactivate. All ids must exist; nothing changes otherwise."""
        wanted = list(dict.fromkeys(rule_ids))
        if not wanted:
            raise ValidationError("ruleIds must not be empty.")
        rows = {rid: self._repo.get(rid) for rid in wanted}
        missing = sorted(rid for rid, row in rows.items() if row is None)
        if missing:
            raise NotFoundError("Unknown rule ids.", details={"missing": missing})

        for row in rows.values():
            row.is_active = active
        self._commit_and_reload()
        logger.info(f"Rules {'activated' if active else 'deactivated'}: {wanted}")
        return list(rows.values())

    def test(
        self,
        *,
        text: str,
        content_type: str,
        author_id: str,
        professional_context: bool = False,
        submitted_at: Optional[datetime] = None,
        account_created_at: Optional[datetime] = None,
        context: Optional[Mapping[str, Any]] = None,
        draft_rules: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> RuleTestOutcome:
        """Dry run: score the sample and explain every rule. Persists nothing.

        With `draft_rules` the drafts are evaluated instead of the live set.
        """
        if not text or not text.strip():
            raise ValidationError("content must not be empty.")
        if len(text) > MAX_TEST_CONTENT_LENGTH:
            raise ValidationError(f"content must be at most {MAX_TEST_CONTENT_LENGTH} characters.")
        if content_type not in CONTENT_TYPES:
            raise ValidationError(f"Invalid contentType {content_type!r}.", details={"allowed": list(CONTENT_TYPES)})

        engine = self._runtime.rule_engine
        if draft_rules:
            engine = RuleEngine(self._parse(r) for r in draft_rules)

        reputation = ReputationService(self._session, self._runtime).get_view(author_id)
        ctx = EvaluationContext(
            content_type=content_type,
            submitted_at=ensure_utc(submitted_at) if submitted_at else utc_now(),
            account_created_at=account_created_at,
            professional_context=professional_context,
            extra=dict(context or {}),
        )
        try:
            raw = self._runtime.scorer.score(text, content_type=content_type).clamped()
        except ScorerUnavailable:
            raise
        except Exception as e:  # noqa: BLE001
            raise ScorerUnavailable(f"Signal scorer raised {type(e).__name__}.") from e

        scores = apply_cultural_adjustment(raw)
        bundle = build_bundle(text=text, scores=scores, raw=raw, reputation=reputation, context=ctx)
        evaluation = engine.evaluate(bundle)
        if evaluation.verdict is not None:
            action = evaluation.verdict.type
        else:
            action = default_policy(max(scores.spam, scores.toxicity))

        logger.info(
            f"Rule dry run: action={action} winner={evaluation.winning_rule_id} "
            f"triggered={len(evaluation.triggered_rule_ids)} draft={bool(draft_rules)}"
        )
        return RuleTestOutcome(
            action=action,
            evaluation=evaluation,
            traces=engine.explain(bundle),
            scores=scores,
            author_tier=reputation.trust_tier,
            draft=bool(draft_rules),
        )

    def _parse(self, payload: Mapping[str, Any]) -> Rule:
        settings = self._runtime.settings
        try:
            rule = rule_from_mapping(
                payload,
                default_min=settings.rule_threshold_min,
                default_max=settings.rule_threshold_max,
            )
        except RuleLoadError as e:
            raise ValidationError(e.message) from e
        validate_rule(rule)
        return rule

    def _commit_and_reload(self) -> None:
        try:
            with storage_guard("RuleService.commit"):
                self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        self._runtime.reload_rules(self._session)
