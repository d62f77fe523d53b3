from __future__ import annotations

import pytest
from sqlalchemy import func, select

from conftest import BUSINESS_HOURS, seed_reputation
from engine.core.errors import ConflictError, ForbiddenError, NotFoundError
from moderation.models.feedback_vote import FeedbackVote, SeverityRating
from moderation.models.moderation_action import ActionType, ModerationAction
from moderation.models.moderation_rule import ModerationRule
from moderation.models.queue_item import QueueItem, QueueStatus, ResolutionAction
from moderation.services.decision_service import DecisionService, EvaluationRequest
from moderation.services.feedback_service import FeedbackService
from moderation.services.queue_service import QueueService
from moderation.services.reputation_service import ReputationService


def _blocked_item(db_session, runtime, scorer, content_id: str = "c-1"):
    scorer.set(spam=0.8, flags={"promotional": True})
    out = DecisionService(db_session, runtime).evaluate(
        EvaluationRequest(
            content_id=content_id,
            content_type="forum_post",
            text="buy now, limited offer",
            author_id="author-1",
            submitted_at=BUSINESS_HOURS,
        )
    )
    assert out.decision.winning_rule_id == "new-account-promotion"
    return out.queue_item


def _resolved_item(db_session, runtime, scorer, action=ResolutionAction.APPROVE):
    item = _blocked_item(db_session, runtime, scorer)
    QueueService(db_session, runtime).resolve(item.id, "mod-a", action)
    return item


def test_votes_only_on_resolved_items(db_session, runtime, scorer):
    item = _blocked_item(db_session, runtime, scorer)
    with pytest.raises(ConflictError):
        FeedbackService(db_session, runtime).submit(
            item.id, "voter-1", was_accurate=True, severity_rating=SeverityRating.ACCURATE
        )


def test_unknown_item_is_not_found(db_session, runtime):
    with pytest.raises(NotFoundError):
        FeedbackService(db_session, runtime).submit(
            "00000000-0000-0000-0000-000000000000",
            "voter-1",
            was_accurate=True,
            severity_rating=SeverityRating.ACCURATE,
        )


def test_restricted_voter_is_forbidden(db_session, runtime, scorer):
    item = _resolved_item(db_session, runtime, scorer)
    seed_reputation(db_session, "voter-r", 3.0)
    with pytest.raises(ForbiddenError):
        FeedbackService(db_session, runtime).submit(
            item.id, "voter-r", was_accurate=True, severity_rating=SeverityRating.ACCURATE
        )


def test_resubmission_overwrites_and_rewards_once(db_session, runtime, scorer):
    item = _resolved_item(db_session, runtime, scorer)
    service = FeedbackService(db_session, runtime)

    # Approved item: "not accurate" agrees with the moderator's overturn.
    first = service.submit(item.id, "voter-1", was_accurate=False, severity_rating=SeverityRating.ACCURATE)
    assert first.vote.reputation_applied is True
    after_first = ReputationService(db_session, runtime).get_view("voter-1").factors["community_trust"]
    assert after_first == pytest.approx(10.5)

    second = service.submit(item.id, "voter-1", was_accurate=False, severity_rating=SeverityRating.TOO_STRICT)
    assert second.vote.id == first.vote.id
    assert second.vote.severity_rating == SeverityRating.TOO_STRICT
    assert second.summary.vote_count == 1
    assert ReputationService(db_session, runtime).get_view("voter-1").factors["community_trust"] == pytest.approx(10.5)
    assert db_session.execute(select(func.count()).select_from(FeedbackVote)).scalar_one() == 1


def test_disagreeing_vote_earns_nothing(db_session, runtime, scorer):
    item = _resolved_item(db_session, runtime, scorer, ResolutionAction.REJECT)
    out = FeedbackService(db_session, runtime).submit(
        item.id, "voter-1", was_accurate=False, severity_rating=SeverityRating.TOO_STRICT
    )
    assert out.vote.reputation_applied is False
    assert ReputationService(db_session, runtime).get_view("voter-1").is_default is True


def test_vote_weight_follows_voter_tier(db_session, runtime, scorer):
    item = _resolved_item(db_session, runtime, scorer)
    seed_reputation(db_session, "voter-x", 40.0)
    out = FeedbackService(db_session, runtime).submit(
        item.id, "voter-x", was_accurate=True, severity_rating=SeverityRating.ACCURATE
    )
    assert out.vote.voter_tier == "expert"
    assert out.vote.voter_weight == pytest.approx(2.5)


def test_too_strict_consensus_raises_rule_threshold_once(db_session, runtime, scorer, redis_client, session_factory):
    item = _resolved_item(db_session, runtime, scorer)
    seed_reputation(db_session, "voter-1", 20.0)
    seed_reputation(db_session, "voter-2", 20.0)
    service = FeedbackService(db_session, runtime)

    one = service.submit(item.id, "voter-1", was_accurate=False, severity_rating=SeverityRating.TOO_STRICT)
    assert one.adjustment is None

    two = service.submit(item.id, "voter-2", was_accurate=False, severity_rating=SeverityRating.TOO_STRICT)
    assert two.adjustment is not None
    assert two.adjustment.rule_id == "new-account-promotion"
    assert two.adjustment.before == pytest.approx(0.6)
    assert two.adjustment.after == pytest.approx(0.65)

    three = service.submit(item.id, "voter-3", was_accurate=False, severity_rating=SeverityRating.TOO_STRICT)
    assert three.adjustment is None

    with session_factory() as s:
        assert s.get(ModerationRule, "new-account-promotion").activation_threshold == pytest.approx(0.65)
    live = {r.id: r for r in runtime.rule_engine.rules}
    assert live["new-account-promotion"].activation_threshold == pytest.approx(0.65)

    events = redis_client.events("rule_threshold_adjusted")
    assert len(events) == 1
    assert events[0]["rule_id"] == "new-account-promotion"


def test_consensus_reports_summary(db_session, runtime, scorer):
    item = _resolved_item(db_session, runtime, scorer, ResolutionAction.REJECT)
    service = FeedbackService(db_session, runtime)
    service.submit(item.id, "voter-1", was_accurate=True, severity_rating=SeverityRating.ACCURATE)
    service.submit(item.id, "voter-2", was_accurate=True, severity_rating=SeverityRating.ACCURATE)

    got, summary = service.consensus(str(item.id))
    assert got.id == item.id
    assert summary.vote_count == 2
    assert summary.agreement_rate == pytest.approx(1.0)
    assert summary.consensus == "accurate"
    assert summary.override_recommended is False


def _disagree(service: FeedbackService, item, voters: int) -> None:
    for n in range(voters):
        service.submit(item.id, f"voter-{n}", was_accurate=False, severity_rating=SeverityRating.TOO_STRICT)


def test_override_reverses_a_rejection_the_community_disputes(db_session, runtime, scorer, redis_client):
    item = _resolved_item(db_session, runtime, scorer, ResolutionAction.REJECT)
    service = FeedbackService(db_session, runtime)
    _disagree(service, item, 5)

    out = service.apply_override(item.id, "mod-b", notes="reads as a genuine offer")

    assert out.summary.override_recommended is True
    assert out.action.action_type == ActionType.APPROVE
    assert out.action.is_community_override is True
    assert out.action.reason.endswith("; reads as a genuine offer")
    assert db_session.get(QueueItem, item.id).status == QueueStatus.REJECTED

    overrides = db_session.execute(
        select(ModerationAction).where(ModerationAction.is_community_override.is_(True))
    ).scalars().all()
    assert len(overrides) == 1

    events = redis_client.events("community_override_applied")
    assert len(events) == 1
    assert events[0]["action"] == "approve"

    with pytest.raises(ConflictError):
        service.apply_override(item.id, "mod-c")
    assert len(redis_client.events("community_override_applied")) == 1


def test_override_needs_enough_disagreeing_votes(db_session, runtime, scorer):
    item = _resolved_item(db_session, runtime, scorer, ResolutionAction.REJECT)
    service = FeedbackService(db_session, runtime)
    _disagree(service, item, 4)

    with pytest.raises(ConflictError) as exc:
        service.apply_override(item.id, "mod-b")
    assert exc.value.details["vote_count"] == 4


def test_override_refuses_pending_items(db_session, runtime, scorer):
    item = _blocked_item(db_session, runtime, scorer)
    with pytest.raises(ConflictError):
        FeedbackService(db_session, runtime).apply_override(item.id, "mod-b")
