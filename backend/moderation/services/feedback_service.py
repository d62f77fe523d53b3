"""Community feedback on resolved queue items.

One vote per (item, voter); resubmission overwrites. Each accepted vote may
nudge the voter's community trust (once per item) and may move the winning
rule's activation threshold (once per item). A strong disagreeing consensus
lets a moderator record a community override of the resolution.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from engine.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from engine.core.feedback import (
    FeedbackSummary,
    VoteRecord,
    adjust_threshold,
    can_vote,
    summarize,
    threshold_direction,
    vote_agrees_with_outcome,
    vote_weight,
)
from engine.core.reputation import ACCURATE_VOTE_DELTA
from engine.core.timeutil import utc_now
from moderation.models.feedback_vote import FeedbackVote, SeverityRating
from moderation.models.moderation_action import ActionType, ModerationAction
from moderation.models.queue_item import QueueItem, QueueStatus
from moderation.repositories.base import storage_guard
from moderation.repositories.content_repo import ActionRepository, ResultRepository
from moderation.repositories.feedback_repo import FeedbackRepository
from moderation.repositories.queue_repo import QueueRepository
from moderation.repositories.rule_repo import RuleRepository, rule_from_row
from moderation.services.reputation_service import ReputationService
from moderation.services.runtime import ModerationRuntime


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ThresholdAdjustment:
    rule_id: str
    before: float
    after: float


@dataclass(frozen=True, slots=True)
class VoteOutcome:
    vote: FeedbackVote
    summary: FeedbackSummary
    adjustment: Optional[ThresholdAdjustment] = None


@dataclass(frozen=True, slots=True)
class OverrideOutcome:
    action: ModerationAction
    summary: FeedbackSummary


def _records(votes: Sequence[FeedbackVote]) -> list[VoteRecord]:
    return [
        VoteRecord(
            voter_id=v.voter_id,
            weight=v.voter_weight,
            was_accurate=v.was_accurate,
            severity_rating=v.severity_rating.value,
        )
        for v in votes
    ]


def _parse_id(raw: str | uuid.UUID) -> uuid.UUID:
    if isinstance(raw, uuid.UUID):
        return raw
    try:
        return uuid.UUID(str(raw))
    except ValueError as e:
        raise ValidationError(f"Invalid queue item id: {raw!r}.") from e


class FeedbackService:
    def __init__(self, session: Session, runtime: ModerationRuntime) -> None:
        self._session = session
        self._runtime = runtime
        self._votes = FeedbackRepository(session)
        self._queue = QueueRepository(session)
        self._results = ResultRepository(session)
        self._actions = ActionRepository(session)
        self._rules = RuleRepository(session)
        self._reputation = ReputationService(session, runtime)

    def submit(
        self,
        queue_item_id: str | uuid.UUID,
        voter_id: str,
        *,
        was_accurate: bool,
        severity_rating: SeverityRating,
    ) -> VoteOutcome:
        item_id = _parse_id(queue_item_id)
        voter = self._reputation.get_view(voter_id)
        if not can_vote(voter.trust_tier):
            raise ForbiddenError(
                "Your trust tier does not allow feedback votes.",
                details={"trust_tier": voter.trust_tier},
            )

        with self._runtime.locks.hold(f"feedback:{item_id}"):
            item = self._queue.get_for_update(item_id)
            if item is None:
                raise NotFoundError(f"Queue item {item_id} not found.")
            if not item.is_terminal:
                raise ConflictError("Feedback is accepted only on resolved queue items.")

            now = utc_now()
            try:
                vote = self._upsert(item, voter_id, voter.trust_tier, was_accurate, severity_rating, now)
                if not vote.reputation_applied and vote_agrees_with_outcome(was_accurate, item.status.value):
                    self._reputation.apply(
                        voter_id,
                        ACCURATE_VOTE_DELTA,
                        reason="vote:accurate",
                        source_ref=str(item.id),
                        at=now,
                    )
                    vote.reputation_applied = True

                summary = summarize(_records(self._votes.for_item(item.id)))
                adjustment = self._maybe_adjust(item, summary)
                with storage_guard("FeedbackService.submit"):
                    self._session.commit()
            except Exception:
                self._session.rollback()
                self._reputation.discard_events()
                raise

        self._reputation.flush_events()
        if adjustment is not None:
            self._runtime.reload_rules(self._session)
            self._runtime.events.publish(
                "rule_threshold_adjusted",
                {
                    "rule_id": adjustment.rule_id,
                    "before": adjustment.before,
                    "after": adjustment.after,
                    "queue_item_id": str(item.id),
                },
            )
        return VoteOutcome(vote=vote, summary=summary, adjustment=adjustment)

    def consensus(self, queue_item_id: str | uuid.UUID) -> tuple[QueueItem, FeedbackSummary]:
        item_id = _parse_id(queue_item_id)
        item = self._queue.get(item_id)
        if item is None:
            raise NotFoundError(f"Queue item {item_id} not found.")
        return item, summarize(_records(self._votes.for_item(item.id)))

    def apply_override(
        self,
        queue_item_id: str | uuid.UUID,
        moderator_id: str,
        *,
        notes: Optional[str] = None,
    ) -> OverrideOutcome:
        """Record the reverse of a resolution the community consensus rejects.

        The item stays terminal; the override lands in the action log (once per item).
        """
        item_id = _parse_id(queue_item_id)
        with self._runtime.locks.hold(f"feedback:{item_id}"):
            item = self._queue.get_for_update(item_id)
            if item is None:
                raise NotFoundError(f"Queue item {item_id} not found.")
            if not item.is_terminal:
                raise ConflictError("Only resolved queue items can be overridden.")
            summary = summarize(_records(self._votes.for_item(item.id)))
            if not summary.override_recommended:
                raise ConflictError(
                    "Community consensus does not recommend overriding this resolution.",
                    details={"vote_count": summary.vote_count, "agreement_rate": summary.agreement_rate},
                )
            if any(a.is_community_override for a in self._actions.for_queue_item(item.id)):
                raise ConflictError("A community override was already applied to this item.")

            action_type = ActionType.APPROVE if item.status == QueueStatus.REJECTED else ActionType.REJECT
            reason = f"community_override: agreement {summary.agreement_rate:.2f} over {summary.vote_count} votes"
            if notes:
                reason = f"{reason}; {notes}"
            try:
                action = self._actions.add(
                    ModerationAction(
                        queue_item_id=item.id,
                        content_id=item.content_id,
                        moderator_id=moderator_id,
                        action_type=action_type,
                        reason=reason,
                        is_automated=False,
                        is_community_override=True,
                        created_at=utc_now(),
                    )
                )
                with storage_guard("FeedbackService.apply_override"):
                    self._session.commit()
            except Exception:
                self._session.rollback()
                raise

        logger.info(f"Community override on {item.id}: {item.status.value} -> {action_type.value} by {moderator_id}")
        self._runtime.events.publish(
            "community_override_applied",
            {
                "queue_item_id": str(item.id),
                "content_id": item.content_id,
                "action": action_type.value,
                "moderator_id": moderator_id,
            },
        )
        return OverrideOutcome(action=action, summary=summary)

    def _upsert(
        self,
        item: QueueItem,
        voter_id: str,
        tier: str,
        was_accurate: bool,
        rating: SeverityRating,
        now: datetime,
    ) -> FeedbackVote:
        vote = self._votes.get(queue_item_id=item.id, voter_id=voter_id)
        if vote is None:
            return self._votes.add(
                FeedbackVote(
                    queue_item_id=item.id,
                    voter_id=voter_id,
                    voter_tier=tier,
                    voter_weight=vote_weight(tier),
                    was_accurate=was_accurate,
                    severity_rating=rating,
                    reputation_applied=False,
                    submitted_at=now,
                )
            )
        vote.voter_tier = tier
        vote.voter_weight = vote_weight(tier)
        vote.was_accurate = was_accurate
        vote.severity_rating = rating
        vote.submitted_at = now
        with storage_guard("FeedbackService.upsert"):
            self._session.flush()
        return vote

    def _maybe_adjust(self, item: QueueItem, summary: FeedbackSummary) -> Optional[ThresholdAdjustment]:
        if item.threshold_adjusted:
            return None
        direction = threshold_direction(summary)
        if direction == 0:
            return None

        result = self._results.get(item.result_id) if item.result_id is not None else None
        rule_id = result.winning_rule_id if result is not None else None
        if not rule_id:
            logger.info(f"Feedback consensus on {item.id} has no winning rule to adjust")
            return None
        row = self._rules.get(rule_id)
        if row is None:
            logger.warning(f"Winning rule {rule_id} for {item.id} no longer exists")
            return None

        before = row.activation_threshold
        adjusted = adjust_threshold(rule_from_row(row), direction, self._runtime.settings.rule_threshold_step)
        row.activation_threshold = adjusted.activation_threshold
        item.threshold_adjusted = True
        logger.info(f"Rule {rule_id} threshold {before:.4f} -> {adjusted.activation_threshold:.4f} from feedback on {item.id}")
        return ThresholdAdjustment(rule_id=rule_id, before=before, after=adjusted.activation_threshold)
