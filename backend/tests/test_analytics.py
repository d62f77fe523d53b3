from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import BUSINESS_HOURS
from engine.core import analytics
from engine.core.analytics import (
    ActionRecord,
    AnalyticsDataset,
    DecisionRecord,
    QueueRecord,
    VoteRow,
)
from engine.core.errors import ValidationError
from moderation.models.queue_item import ResolutionAction
from moderation.services.analytics_service import AnalyticsService
from moderation.services.decision_service import DecisionService, EvaluationRequest
from moderation.services.queue_service import QueueService


UTC = timezone.utc
END = datetime(2026, 10, 14, 12, 0, tzinfo=UTC)


def _decision(action: str, at: datetime, content_id: str = "c", author: str = "a-1") -> DecisionRecord:
    return DecisionRecord(
        content_id=content_id,
        content_type="comment",
        author_id=author,
        author_tier="new",
        action=action,
        severity="medium",
        flags=(),
        computed_at=at,
        processing_ms=12,
    )


def _dataset() -> AnalyticsDataset:
    recent = END - timedelta(hours=2)
    older = END - timedelta(days=1, hours=2)
    return AnalyticsDataset(
        decisions=(
            _decision("allow", recent, "c-1"),
            _decision("block", recent, "c-2"),
            _decision("review", recent, "c-3"),
            _decision("allow", recent, "c-4"),
            _decision("allow", older, "c-0"),
        ),
        actions=(
            ActionRecord("block", True, analytics.AUTOMATED_MODERATOR_ID, recent),
            ActionRecord("reject", False, "mod-a", recent),
        ),
        queue=(
            QueueRecord(
                id="q-1",
                status="rejected",
                severity="high",
                auto_flagged=True,
                author_id="a-1",
                action_taken="reject",
                created_at=recent - timedelta(minutes=30),
                processed_at=recent,
            ),
        ),
        votes=(
            VoteRow("q-1", "v-1", 0.8, True, "accurate", recent),
            VoteRow("q-1", "v-2", 0.8, False, "too_strict", recent),
        ),
    )


def test_overview_counts_current_window_only():
    start = END - timedelta(days=1)
    o = analytics.compute_overview(_dataset().window(start, END), start, END)

    assert o.content_volume == 4
    assert o.flag_rate == pytest.approx(0.5)
    assert o.total_actions == 2
    assert o.automated_actions == 1
    assert o.automation_rate == pytest.approx(0.5)
    assert o.resolved_items == 1
    assert o.mean_response_time_seconds == pytest.approx(1800.0)
    assert o.feedback_votes == 2
    assert o.accuracy_rate == pytest.approx(0.5)
    assert o.false_positive_rate == pytest.approx(0.5)
    assert o.false_negative_rate == 0.0
    assert o.community_agreement_rate == pytest.approx(0.5)


def test_empty_dataset_yields_zeroes():
    o = analytics.compute_overview(AnalyticsDataset(), END - timedelta(hours=1), END)
    assert o.content_volume == 0
    assert o.accuracy_rate == 0.0
    assert analytics.system_health(o) == "healthy"


def test_window_bounds_are_half_open():
    ds = AnalyticsDataset(decisions=(_decision("allow", END), _decision("allow", END - timedelta(hours=1))))
    assert len(ds.window(END - timedelta(hours=1), END).decisions) == 1


def test_lookback_covers_current_and_previous_windows():
    assert analytics.lookback_start(END, "day") == END - timedelta(days=4)


def test_metric_history_has_one_point_per_window_oldest_first():
    points = analytics.metric_history(_dataset(), end=END, period="day", metric="content_volume")
    assert len(points) == 4
    assert [p["value"] for p in points] == [0, 0, 1, 4]
    assert points[-1]["end"] == END
    assert points[0]["start"] < points[-1]["start"]


def test_metric_history_rejects_unknown_metric():
    with pytest.raises(ValueError):
        analytics.metric_history(_dataset(), end=END, period="day", metric="nope")


def test_report_is_deterministic_for_fixed_input():
    kw = dict(end=END, period="day", confidence_floor=0.7, generated_at=END)
    first = analytics.generate_report(_dataset(), **kw)
    second = analytics.generate_report(_dataset(), **kw)
    assert analytics.report_to_dict(first) == analytics.report_to_dict(second)
    assert first.timeframe.start == END - timedelta(days=1)
    assert len(first.recommendations) <= analytics.MAX_RECOMMENDATIONS


def test_csv_export_has_flat_rows():
    report = analytics.generate_report(_dataset(), end=END, period="day", confidence_floor=0.7, generated_at=END)
    lines = analytics.report_to_csv(report).splitlines()
    assert lines[0] == "section,name,value,detail"
    assert "overview,content_volume,4," in lines
    assert all(line.count(",") >= 3 for line in lines)


def test_service_reads_persisted_decisions(db_session, runtime, scorer):
    decisions = DecisionService(db_session, runtime)
    scorer.set(toxicity=0.7)
    flagged = decisions.evaluate(
        EvaluationRequest(content_id="c-1", content_type="comment", text="x", author_id="a-1", submitted_at=BUSINESS_HOURS)
    )
    scorer.set(toxicity=0.0)
    decisions.evaluate(
        EvaluationRequest(content_id="c-2", content_type="comment", text="y", author_id="a-2", submitted_at=BUSINESS_HOURS)
    )
    QueueService(db_session, runtime).resolve(flagged.queue_item.id, "mod-a", ResolutionAction.REJECT)

    service = AnalyticsService(db_session, runtime)
    out = service.overview("day")
    assert out["overview"]["content_volume"] == 2
    assert out["overview"]["flag_rate"] == pytest.approx(0.5)
    assert out["overview"]["total_actions"] == 1
    assert out["timeframe"]["period"] == "day"

    live = service.real_time()
    assert live["queue"]["total_pending"] == 0
    assert live["active_rules"] == len(runtime.rule_engine.rules)

    history = service.metric_history("hour", "content_volume")
    assert len(history["points"]) == 4

    assert service.export("day", "csv").startswith("section,name,value,detail")


def test_service_validates_inputs(db_session, runtime):
    service = AnalyticsService(db_session, runtime)
    with pytest.raises(ValidationError):
        service.overview("fortnight")
    with pytest.raises(ValidationError):
        service.metric_history("day", "nope")
    with pytest.raises(ValidationError):
        service.export("day", "xml")


def test_human_resolution_of_report_counts_as_manual_action(db_session, runtime):
    from moderation.models.content_report import ReportCategory
    from moderation.models.content_submission import ContentType
    from moderation.services.report_service import ReportService

    service = AnalyticsService(db_session, runtime)
    before = service.overview("day")["overview"]

    out = ReportService(db_session, runtime).create(
        reporter_id="rep-1",
        content_id="c-77",
        content_type=ContentType.FORUM_POST,
        category=ReportCategory.SPAM,
        reason="repeated links",
    )
    QueueService(db_session, runtime).resolve(out.queue_item.id, "mod-a", ResolutionAction.APPROVE)

    after = service.overview("day")["overview"]
    assert after["total_actions"] == before["total_actions"] + 1
    assert after["automated_actions"] == before["automated_actions"]
    assert after["automation_rate"] == 0.0
