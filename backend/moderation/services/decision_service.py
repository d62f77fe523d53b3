"""Evaluate content and persist the outcome.

The pure decision engine does the scoring and rule work; this service adds the
parts that touch storage: submission immutability, result persistence, rule
trigger statistics, queueing, and the automated audit trail for blocks.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from engine.core.decision import CONTENT_TYPES, Decision, EvaluationContext, evaluate, fail_safe_decision
from engine.core.errors import ConflictError, ScorerUnavailable, ValidationError
from engine.core.reputation import can_bypass_queue
from engine.core.timeutil import ensure_utc, utc_now
from moderation.models.content_submission import ContentSubmission, ContentType
from moderation.models.moderation_action import AUTOMATED_MODERATOR_ID, ActionType, ModerationAction
from moderation.models.moderation_result import ModerationResult, Severity, Verdict
from moderation.models.queue_item import QueueItem
from moderation.repositories.content_repo import ActionRepository, ResultRepository, SubmissionRepository
from moderation.repositories.report_repo import ReportRepository
from moderation.repositories.rule_repo import RuleRepository
from moderation.services.queue_service import QueueService
from moderation.services.reputation_service import ReputationService
from moderation.services.runtime import ModerationRuntime


logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 50_000


@dataclass(frozen=True, slots=True)
class EvaluationRequest:
    content_id: str
    content_type: str
    text: str
    author_id: str
    analyze_only: bool = False
    submitted_at: Optional[datetime] = None
    account_created_at: Optional[datetime] = None
    professional_context: bool = False
    context: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class EvaluationOutcome:
    decision: Decision
    result_id: Optional[uuid.UUID] = None
    queue_item: Optional[QueueItem] = None
    queue_reused: bool = False
    queue_bypassed: bool = False
    computed_at: Optional[datetime] = None


def _validate(req: EvaluationRequest) -> None:
    if not req.content_id or not req.content_id.strip():
        raise ValidationError("contentId is required.")
    if len(req.content_id) > 128:
        raise ValidationError("contentId must be at most 128 characters.")
    if req.content_type not in CONTENT_TYPES:
        raise ValidationError(
            f"Invalid contentType {req.content_type!r}.",
            details={"allowed": list(CONTENT_TYPES)},
        )
    if not req.text or not req.text.strip():
        raise ValidationError("content must not be empty.")
    if len(req.text) > MAX_CONTENT_LENGTH:
        raise ValidationError(f"content must be at most {MAX_CONTENT_LENGTH} characters.")


class DecisionService:
    def __init__(self, session: Session, runtime: ModerationRuntime) -> None:
        self._session = session
        self._runtime = runtime
        self._submissions = SubmissionRepository(session)
        self._results = ResultRepository(session)
        self._actions = ActionRepository(session)
        self._reports = ReportRepository(session)
        self._rules = RuleRepository(session)
        self._queue = QueueService(session, runtime)
        self._reputation = ReputationService(session, runtime)

    def evaluate(self, req: EvaluationRequest) -> EvaluationOutcome:
        _validate(req)
        submitted_at = ensure_utc(req.submitted_at) if req.submitted_at else utc_now()

        existing = self._submissions.get(req.content_id)
        if existing is not None and existing.text != req.text:
            raise ConflictError(
                f"Content {req.content_id} was already submitted with different text.",
                details={"content_id": req.content_id},
            )
        has_report = self._has_open_report(req.content_id)

        reputation = self._reputation.get_view(req.author_id)
        context = EvaluationContext(
            content_type=req.content_type,
            submitted_at=submitted_at,
            account_created_at=req.account_created_at,
            professional_context=req.professional_context,
            has_report=has_report,
            extra=dict(req.context or {}),
        )
        try:
            decision = evaluate(
                content_id=req.content_id,
                text=req.text,
                reputation=reputation,
                context=context,
                scorer=self._runtime.scorer,
                rules=self._runtime.rule_engine,
            )
        except ScorerUnavailable as e:
            logger.warning(f"Scorer unavailable for {req.content_id}; failing safe to review: {e}")
            decision = fail_safe_decision(content_id=req.content_id, reputation=reputation, reason="scorer_unavailable")

        if req.analyze_only:
            return EvaluationOutcome(decision=decision, computed_at=utc_now())

        return self._persist(req, decision, existing=existing, submitted_at=submitted_at, has_report=has_report)

    def _persist(
        self,
        req: EvaluationRequest,
        decision: Decision,
        *,
        existing: Optional[ContentSubmission],
        submitted_at: datetime,
        has_report: bool,
    ) -> EvaluationOutcome:
        content_type = ContentType(req.content_type)
        severity = Severity(decision.severity)
        now = utc_now()

        with self._runtime.locks.hold(req.content_id):
            try:
                if existing is None:
                    self._submissions.add(
                        ContentSubmission(
                            content_id=req.content_id,
                            content_type=content_type,
                            author_id=req.author_id,
                            text=req.text,
                            submitted_at=submitted_at,
                        )
                    )
                result = self._results.add(self._result_row(req, decision, now))
                if decision.winning_rule_id:
                    self._rules.increment_triggered(decision.winning_rule_id)

                bypass = (
                    decision.action == Verdict.FLAG.value
                    and severity == Severity.LOW
                    and not has_report
                    and can_bypass_queue(decision.author_tier)
                )
                item: Optional[QueueItem] = None
                reused = False
                if (decision.should_flag or has_report) and not bypass:
                    item = self._queue.active_for_content(req.content_id)
                    if item is not None:
                        reused = True
                    else:
                        item = self._queue.enqueue_locked(
                            content_id=req.content_id,
                            content_type=content_type,
                            reason=", ".join(decision.reasons) or decision.action,
                            severity=severity,
                            auto_flagged=True,
                            flag_score=max(decision.scores.spam, decision.scores.toxicity),
                            author_id=req.author_id,
                            result_id=result.id,
                        )

                if decision.action == Verdict.BLOCK.value:
                    self._actions.add(
                        ModerationAction(
                            queue_item_id=item.id if item is not None else None,
                            content_id=req.content_id,
                            moderator_id=AUTOMATED_MODERATOR_ID,
                            action_type=ActionType.BLOCK,
                            reason=", ".join(decision.reasons),
                            is_automated=True,
                            created_at=now,
                        )
                    )
                self._queue.commit()
            except Exception:
                self._session.rollback()
                raise

        logger.info(
            f"Evaluated {req.content_id}: action={decision.action} severity={decision.severity} "
            f"rule={decision.winning_rule_id} degraded={decision.degraded} queued={item is not None}"
        )
        for effect in decision.side_effects:
            self._runtime.events.publish(
                f"rule_side_effect:{effect.type}",
                {
                    "content_id": req.content_id,
                    "author_id": req.author_id,
                    "rule_id": decision.winning_rule_id,
                    "target": effect.target,
                    "parameters": dict(effect.parameters),
                },
            )
        return EvaluationOutcome(
            decision=decision,
            result_id=result.id,
            queue_item=item,
            queue_reused=reused,
            queue_bypassed=bypass,
            computed_at=now,
        )

    def _result_row(self, req: EvaluationRequest, d: Decision, now: datetime) -> ModerationResult:
        return ModerationResult(
            content_id=req.content_id,
            author_id=req.author_id,
            author_tier=d.author_tier,
            author_score=d.author_score,
            spam_score=d.scores.spam,
            toxicity_score=d.scores.toxicity,
            quality_score=d.scores.quality,
            cultural_adjustment=d.scores.cultural_adjustment,
            raw_spam_score=d.raw_spam,
            raw_toxicity_score=d.raw_toxicity,
            flags=d.scores.active_flags(),
            should_flag=d.should_flag,
            severity=Severity(d.severity),
            action=Verdict(d.action),
            confidence=d.confidence,
            rule_ids_triggered=list(d.triggered_rule_ids),
            winning_rule_id=d.winning_rule_id,
            reasons=list(d.reasons),
            side_effects=[
                {"type": e.type, "target": e.target, "parameters": dict(e.parameters)} for e in d.side_effects
            ],
            degraded=d.degraded,
            processing_ms=d.processing_ms,
            computed_at=now,
        )

    def _has_open_report(self, content_id: str) -> bool:
        return self._reports.has_open_for_content(content_id)
