from __future__ import annotations

from typing import Optional, Sequence

from sqlalchemy import func, select, update

from engine.core.rules import Rule, action_to_mapping, condition_to_mapping, rule_from_mapping
from moderation.models.moderation_rule import ModerationRule
from moderation.repositories.base import BaseRepository, storage_guard


def rule_from_row(row: ModerationRule) -> Rule:
    return rule_from_mapping(
        {
            "id": row.id,
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
    )


def row_from_rule(rule: Rule) -> ModerationRule:
    return ModerationRule(
        id=rule.id,
        name=rule.name,
        description=rule.description,
        priority=rule.priority,
        conditions=[condition_to_mapping(c) for c in rule.conditions],
        actions=[action_to_mapping(a) for a in rule.actions],
        activation_threshold=rule.activation_threshold,
        min_threshold=rule.min_threshold,
        max_threshold=rule.max_threshold,
        is_active=rule.is_active,
    )


class RuleRepository(BaseRepository):
    def get(self, rule_id: str) -> Optional[ModerationRule]:
        stmt = select(ModerationRule).where(ModerationRule.id == rule_id)
        return self._execute(stmt).scalars().first()

    def list_all(self) -> Sequence[ModerationRule]:
        stmt = select(ModerationRule).order_by(ModerationRule.priority.desc(), ModerationRule.id)
        return self._execute(stmt).scalars().all()

    def list_active_rules(self) -> list[Rule]:
        stmt = select(ModerationRule).where(ModerationRule.is_active.is_(True))
        return [rule_from_row(r) for r in self._execute(stmt).scalars().all()]

    def count(self) -> int:
        return int(self._execute(select(func.count()).select_from(ModerationRule)).scalar_one() or 0)

    def add(self, row: ModerationRule) -> ModerationRule:
        return self._add(row)

    def increment_triggered(self, rule_id: str) -> None:
        stmt = (
            update(ModerationRule)
            .where(ModerationRule.id == rule_id)
            .values(times_triggered=ModerationRule.times_triggered + 1)
        )
        with storage_guard("RuleRepository.increment_triggered"):
            self.session.execute(stmt)
