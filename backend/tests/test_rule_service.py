from __future__ import annotations

import pytest
from sqlalchemy import func, select

from conftest import BUSINESS_HOURS
from engine.core.errors import NotFoundError, ScorerUnavailable, ValidationError
from moderation.models.content_submission import ContentSubmission
from moderation.models.moderation_result import ModerationResult
from moderation.models.moderation_rule import ModerationRule
from moderation.models.queue_item import QueueItem
from moderation.models.reputation import ReputationScore
from moderation.services.rule_service import RuleService


DRAFT = {
    "id": "draft-spam",
    "name": "Draft spam",
    "priority": 5,
    "conditions": [{"signal_path": "signals.spam", "operator": "gte", "threshold": 0.5}],
    "actions": [{"type": "flag"}],
}


def _count(session, model) -> int:
    return session.execute(select(func.count()).select_from(model)).scalar_one()


def _dry_run(service: RuleService, **kw):
    kw.setdefault("text", "buy now, limited offer")
    kw.setdefault("content_type", "forum_post")
    kw.setdefault("author_id", "author-1")
    kw.setdefault("submitted_at", BUSINESS_HOURS)
    return service.test(**kw)


def test_dry_run_explains_live_rules_and_persists_nothing(db_session, runtime, scorer, session_factory):
    scorer.set(spam=0.8, flags={"promotional": True})
    out = _dry_run(RuleService(db_session, runtime))

    assert out.action == "block"
    assert out.draft is False
    assert out.evaluation.winning_rule_id == "new-account-promotion"
    assert [t.rule_id for t in out.traces] == [r.id for r in runtime.rule_engine.rules]
    winner = next(t for t in out.traces if t.rule_id == "new-account-promotion")
    assert winner.triggered is True
    assert winner.conditions_met

    for model in (ContentSubmission, ModerationResult, QueueItem, ReputationScore):
        assert _count(db_session, model) == 0
    with session_factory() as s:
        assert s.get(ModerationRule, "new-account-promotion").times_triggered == 0


def test_dry_run_with_drafts_ignores_the_live_set(db_session, runtime, scorer):
    scorer.set(spam=0.55)
    out = _dry_run(RuleService(db_session, runtime), draft_rules=[DRAFT])

    assert out.draft is True
    assert [t.rule_id for t in out.traces] == ["draft-spam"]
    assert out.action == "flag"
    assert out.evaluation.triggered_rule_ids == ("draft-spam",)
    assert db_session.get(ModerationRule, "draft-spam") is None


def test_dry_run_without_a_winner_falls_back_to_default_policy(db_session, runtime, scorer):
    scorer.set(toxicity=0.7)
    out = _dry_run(RuleService(db_session, runtime), text="a calm sentence", content_type="comment")
    assert out.evaluation.winning_rule_id is None
    assert out.action == "review"


def test_dry_run_validates_input(db_session, runtime):
    service = RuleService(db_session, runtime)
    with pytest.raises(ValidationError):
        _dry_run(service, content_type="tweet")
    with pytest.raises(ValidationError):
        _dry_run(service, text="  ")
    bad = dict(DRAFT, conditions=[{"signal_path": "signals.spam", "operator": "approx", "threshold": 0.5}])
    with pytest.raises(ValidationError):
        _dry_run(service, draft_rules=[bad])


def test_dry_run_surfaces_scorer_outage(db_session, runtime, scorer):
    scorer.set(fail=True)
    with pytest.raises(ScorerUnavailable):
        _dry_run(RuleService(db_session, runtime))


def test_bulk_toggle_reloads_the_engine(db_session, runtime):
    service = RuleService(db_session, runtime)
    before = len(runtime.rule_engine.rules)

    rows = service.set_active(["threat-language", "threat-language"], False)
    assert [r.id for r in rows] == ["threat-language"]
    assert runtime.rule_engine.get("threat-language") is None
    assert len(runtime.rule_engine.rules) == before - 1

    service.set_active(["threat-language"], True)
    assert runtime.rule_engine.get("threat-language") is not None


def test_bulk_toggle_with_unknown_id_changes_nothing(db_session, runtime):
    service = RuleService(db_session, runtime)
    with pytest.raises(NotFoundError) as exc:
        service.set_active(["threat-language", "no-such-rule"], False)
    assert exc.value.details == {"missing": ["no-such-rule"]}
    assert db_session.get(ModerationRule, "threat-language").is_active is True
    assert runtime.rule_engine.get("threat-language") is not None
