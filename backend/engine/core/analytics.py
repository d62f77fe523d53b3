"""Moderation analytics (pure, read-only).

Inputs are plain records loaded by the repository layer for a lookback span;
everything here is recomputed per call and never persisted.

Determinism:
- Same dataset + same window end + same period => identical report.
- Ties are broken by name so orderings never depend on dict iteration.
"""

from __future__ import annotations

import csv
import io
import math
from collections import Counter, defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, Optional, Sequence

from engine.core.feedback import VoteRecord, summarize
from engine.core.timeutil import ensure_utc, period_length, utc_now


PREVIOUS_WINDOWS = 3
TREND_CHANGE_PCT = 10.0
MIN_TREND_SAMPLE = 20
RESPONSE_TIME_TARGET_SECONDS = 3600.0
MAX_RECOMMENDATIONS = 8

AUTOMATED_MODERATOR_ID = "auto_moderation_system"


# --- input records ----------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DecisionRecord:
    content_id: str
    content_type: str
    author_id: str
    author_tier: str
    action: str
    severity: str
    flags: tuple[str, ...]
    computed_at: datetime
    processing_ms: int = 0
    degraded: bool = False


@dataclass(frozen=True, slots=True)
class ActionRecord:
    action_type: str
    is_automated: bool
    moderator_id: str
    created_at: datetime


@dataclass(frozen=True, slots=True)
class QueueRecord:
    id: str
    status: str
    severity: str
    auto_flagged: bool
    author_id: Optional[str]
    action_taken: Optional[str]
    created_at: datetime
    processed_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class VoteRow:
    queue_item_id: str
    voter_id: str
    weight: float
    was_accurate: bool
    severity_rating: str
    submitted_at: datetime


@dataclass(frozen=True, slots=True)
class ReportRecord:
    reporter_id: str
    category: str
    status: str
    resolution: Optional[str]
    created_at: datetime


@dataclass(frozen=True, slots=True)
class AnalyticsDataset:
    decisions: tuple[DecisionRecord, ...] = ()
    actions: tuple[ActionRecord, ...] = ()
    queue: tuple[QueueRecord, ...] = ()
    votes: tuple[VoteRow, ...] = ()
    reports: tuple[ReportRecord, ...] = ()

    def window(self, start: datetime, end: datetime) -> "AnalyticsDataset":
        def inside(ts: Optional[datetime]) -> bool:
            return ts is not None and start <= ensure_utc(ts) < end

        return AnalyticsDataset(
            decisions=tuple(d for d in self.decisions if inside(d.computed_at)),
            actions=tuple(a for a in self.actions if inside(a.created_at)),
            queue=tuple(q for q in self.queue if inside(q.created_at) or inside(q.processed_at)),
            votes=tuple(v for v in self.votes if inside(v.submitted_at)),
            reports=tuple(r for r in self.reports if inside(r.created_at)),
        )


# --- output records ---------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Timeframe:
    period: str
    start: datetime
    end: datetime


@dataclass(frozen=True, slots=True)
class Overview:
    total_actions: int
    automated_actions: int
    accuracy_rate: float
    mean_response_time_seconds: float
    mean_processing_ms: float
    false_positive_rate: float
    false_negative_rate: float
    community_agreement_rate: float
    automation_rate: float
    content_volume: int
    flag_rate: float
    resolved_items: int
    feedback_votes: int


@dataclass(frozen=True, slots=True)
class Trend:
    metric: str
    current_value: float
    previous_value: float
    change_percent: float
    direction: str
    confidence: float
    predicted_value: float
    sample_size: int
    factors: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class ContentInsight:
    pattern: str
    content_type: str
    frequency: int
    share: float
    change_percent: float
    impact: str
    recommendation: str


@dataclass(frozen=True, slots=True)
class UserPattern:
    pattern: str
    description: str
    user_count: int
    frequency: int
    risk_level: str
    recommendation: str


@dataclass(frozen=True, slots=True)
class Optimization:
    area: str
    current_efficiency: float
    potential_improvement: float
    implementation_cost: str
    priority: float
    suggestion: str


@dataclass(frozen=True, slots=True)
class PredictiveAlert:
    id: str
    type: str
    metric: str
    severity: str
    probability: float
    timeframe: str
    predicted_value: float
    message: str
    recommended_actions: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class AnalyticsReport:
    timeframe: Timeframe
    overview: Overview
    trends: tuple[Trend, ...]
    content_insights: tuple[ContentInsight, ...]
    user_patterns: tuple[UserPattern, ...]
    optimizations: tuple[Optimization, ...]
    predictive_alerts: tuple[PredictiveAlert, ...]
    recommendations: tuple[str, ...]
    generated_at: datetime = field(default_factory=utc_now)


# --- overview ---------------------------------------------------------------


def _ratio(num: float, den: float) -> float:
    return round(num / den, 4) if den else 0.0


def _mean(xs: Sequence[float]) -> float:
    return sum(xs) / len(xs) if xs else 0.0


def compute_overview(ds: AnalyticsDataset, start: datetime, end: datetime) -> Overview:
    actions = ds.actions
    automated = sum(1 for a in actions if a.is_automated)

    resolved = [
        q
        for q in ds.queue
        if q.processed_at is not None and start <= ensure_utc(q.processed_at) < end
    ]
    response_times = [
        (ensure_utc(q.processed_at) - ensure_utc(q.created_at)).total_seconds()  # type: ignore[arg-type]
        for q in resolved
    ]

    votes = ds.votes
    accurate = sum(1 for v in votes if v.was_accurate)
    fp = sum(1 for v in votes if not v.was_accurate and v.severity_rating == "too_strict")
    fn = sum(1 for v in votes if not v.was_accurate and v.severity_rating == "too_lenient")

    by_item: dict[str, list[VoteRecord]] = defaultdict(list)
    for v in votes:
        by_item[v.queue_item_id].append(
            VoteRecord(voter_id=v.voter_id, weight=v.weight, was_accurate=v.was_accurate, severity_rating=v.severity_rating)
        )
    agreements = [summarize(item_votes).agreement_rate for _, item_votes in sorted(by_item.items())]

    decisions = ds.decisions
    flagged = sum(1 for d in decisions if d.action != "allow")

    return Overview(
        total_actions=len(actions),
        automated_actions=automated,
        accuracy_rate=_ratio(accurate, len(votes)),
        mean_response_time_seconds=round(_mean(response_times), 2),
        mean_processing_ms=round(_mean([float(d.processing_ms) for d in decisions]), 2),
        false_positive_rate=_ratio(fp, len(votes)),
        false_negative_rate=_ratio(fn, len(votes)),
        community_agreement_rate=round(_mean(agreements), 4),
        automation_rate=_ratio(automated, len(actions)),
        content_volume=len(decisions),
        flag_rate=_ratio(flagged, len(decisions)),
        resolved_items=len(resolved),
        feedback_votes=len(votes),
    )


# --- trends -----------------------------------------------------------------

# metric -> (label, is_rate, sample-size accessor)
TRACKED_METRICS: dict[str, tuple[str, bool, Callable[[Overview], int]]] = {
    "total_actions": ("Moderation actions", False, lambda o: o.total_actions),
    "content_volume": ("Content volume", False, lambda o: o.content_volume),
    "flag_rate": ("Flag rate", True, lambda o: o.content_volume),
    "accuracy_rate": ("Accuracy rate", True, lambda o: o.feedback_votes),
    "false_positive_rate": ("False positive rate", True, lambda o: o.feedback_votes),
    "community_agreement_rate": ("Community agreement", True, lambda o: o.feedback_votes),
    "automation_rate": ("Automation rate", True, lambda o: o.total_actions),
    "mean_response_time_seconds": ("Response time", False, lambda o: o.resolved_items),
}


def trend_slope(values: Sequence[float]) -> float:
    """Least-squares slope over equally spaced points."""
    n = len(values)
    if n < 2:
        return 0.0
    xs = range(n)
    sx = sum(xs)
    sy = sum(values)
    sxy = sum(x * y for x, y in zip(xs, values))
    sxx = sum(x * x for x in xs)
    den = n * sxx - sx * sx
    return (n * sxy - sx * sy) / den if den else 0.0


def _confidence(sample: int, previous: Sequence[float]) -> tuple[float, float]:
    n_factor = min(1.0, sample / MIN_TREND_SAMPLE)
    m = _mean(previous)
    if len(previous) > 1:
        std = math.sqrt(sum((x - m) ** 2 for x in previous) / len(previous))
    else:
        std = 0.0
    if m > 0:
        cv = std / m
    else:
        cv = 0.0 if std == 0 else 1.0
    return round(n_factor * (1.0 / (1.0 + cv)), 3), cv


def compute_trends(
    current: Overview,
    previous: Sequence[Overview],
    *,
    period: str,
) -> tuple[Trend, ...]:
    """previous is ordered most recent first."""
    trends: list[Trend] = []
    for metric, (label, is_rate, sample_of) in TRACKED_METRICS.items():
        cur = float(getattr(current, metric))
        prev_vals = [float(getattr(o, metric)) for o in previous]
        baseline = _mean(prev_vals)
        if baseline:
            change = (cur - baseline) / baseline * 100.0
        else:
            change = 100.0 if cur > 0 else 0.0

        if change > TREND_CHANGE_PCT:
            direction = "increasing"
        elif change < -TREND_CHANGE_PCT:
            direction = "decreasing"
        else:
            direction = "stable"

        series = list(reversed(prev_vals)) + [cur]
        predicted = max(0.0, cur + trend_slope(series))
        if is_rate:
            predicted = min(1.0, predicted)

        sample = int(sample_of(current))
        confidence, cv = _confidence(sample, prev_vals)

        factors: list[str] = []
        if direction != "stable":
            factors.append(
                f"{label} {direction} {change:+.1f}% versus the previous {len(prev_vals)}-{period} average"
            )
        if sample < MIN_TREND_SAMPLE:
            factors.append(f"Small sample ({sample} observations) limits confidence")
        if cv > 0.5:
            factors.append("High variability across previous periods")

        trends.append(
            Trend(
                metric=metric,
                current_value=round(cur, 4),
                previous_value=round(baseline, 4),
                change_percent=round(change, 2),
                direction=direction,
                confidence=confidence,
                predicted_value=round(predicted, 4),
                sample_size=sample,
                factors=tuple(factors),
            )
        )
    return tuple(trends)


# --- patterns ---------------------------------------------------------------

FLAG_RECOMMENDATIONS: dict[str, str] = {
    "promotional": "Tighten promotional-content rules for new and restricted accounts",
    "has_links": "Route link-heavy posts from untrusted authors to review",
    "url_shortener": "Block shortened URLs from accounts below the trusted tier",
    "contact_info": "Require review for posts sharing phone numbers or emails",
    "excessive_caps": "Add a formatting nudge before posting all-caps content",
    "excessive_punctuation": "Treat punctuation bursts as a weak spam signal only",
    "harassment": "Prioritise harassment reports and warn repeat authors",
    "threat": "Escalate threat language to senior moderators immediately",
    "animal_abuse": "Route animal-welfare violations to specialist reviewers",
    "profanity": "Use warnings rather than removal for mild profanity",
    "misinformation": "Attach expert review to misinformation flags",
    "bilingual": "Check bilingual content against regional idiom lists before acting",
    "regional_idiom": "Extend regional idiom lists to cut cultural false positives",
}


def content_insights(current: AnalyticsDataset, previous: AnalyticsDataset) -> tuple[ContentInsight, ...]:
    flagged = [d for d in current.decisions if d.action != "allow"]
    if not flagged:
        return ()
    counts: Counter[str] = Counter()
    types: dict[str, Counter[str]] = defaultdict(Counter)
    for d in flagged:
        for f in d.flags:
            counts[f] += 1
            types[f][d.content_type] += 1

    prev_counts: Counter[str] = Counter()
    for d in previous.decisions:
        if d.action != "allow":
            prev_counts.update(d.flags)

    out: list[ContentInsight] = []
    for flag, freq in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])):
        prev = prev_counts.get(flag, 0)
        change = ((freq - prev) / prev * 100.0) if prev else (100.0 if freq else 0.0)
        top_type = sorted(types[flag].items(), key=lambda kv: (-kv[1], kv[0]))[0][0]
        out.append(
            ContentInsight(
                pattern=flag,
                content_type=top_type,
                frequency=freq,
                share=_ratio(freq, len(flagged)),
                change_percent=round(change, 2),
                impact="negative",
                recommendation=FLAG_RECOMMENDATIONS.get(flag, f"Review rule coverage for '{flag}' signals"),
            )
        )
    return tuple(out)


_RISK_RANK = {"low": 0, "medium": 1, "high": 2}


def _risk(user_count: int) -> str:
    if user_count >= 5:
        return "high"
    if user_count >= 2:
        return "medium"
    return "low"


def user_patterns(ds: AnalyticsDataset) -> tuple[UserPattern, ...]:
    found: list[UserPattern] = []

    newcomer: Counter[str] = Counter(
        d.author_id for d in ds.decisions if d.action != "allow" and d.author_tier in ("restricted", "new")
    )
    clustered = {a: n for a, n in newcomer.items() if n >= 2}
    if clustered:
        found.append(
            UserPattern(
                pattern="new_user_violation_cluster",
                description="New or restricted accounts with repeated flagged submissions",
                user_count=len(clustered),
                frequency=sum(clustered.values()),
                risk_level=_risk(len(clustered)),
                recommendation="Apply stricter first-week posting limits and onboarding guidance",
            )
        )

    offenders: Counter[str] = Counter(
        q.author_id for q in ds.queue if q.author_id and q.action_taken in ("reject", "ban")
    )
    repeat = {a: n for a, n in offenders.items() if n >= 2}
    if repeat:
        found.append(
            UserPattern(
                pattern="repeat_offenders",
                description="Authors with multiple rejected or banned items",
                user_count=len(repeat),
                frequency=sum(repeat.values()),
                risk_level=_risk(len(repeat)),
                recommendation="Escalate repeat offenders to temporary posting restrictions",
            )
        )

    dismissed: Counter[str] = Counter(r.reporter_id for r in ds.reports if r.resolution == "dismissed")
    false_reporters = {a: n for a, n in dismissed.items() if n >= 2}
    if false_reporters:
        found.append(
            UserPattern(
                pattern="false_reporters",
                description="Reporters whose reports are repeatedly dismissed",
                user_count=len(false_reporters),
                frequency=sum(false_reporters.values()),
                risk_level=_risk(len(false_reporters)),
                recommendation="Down-weight reports from users with a high dismissal rate",
            )
        )

    weekend = [d for d in ds.decisions if d.action != "allow" and ensure_utc(d.computed_at).weekday() >= 5]
    flagged_total = sum(1 for d in ds.decisions if d.action != "allow")
    if flagged_total >= 5 and len(weekend) / flagged_total > 0.5:
        authors = {d.author_id for d in weekend}
        found.append(
            UserPattern(
                pattern="weekend_violation_spike",
                description="Most flagged content arrives on weekends",
                user_count=len(authors),
                frequency=len(weekend),
                risk_level=_risk(len(authors)),
                recommendation="Schedule additional moderator coverage on weekends",
            )
        )

    return tuple(sorted(found, key=lambda p: (-_RISK_RANK[p.risk_level], -p.user_count, p.pattern)))


# --- optimizations ----------------------------------------------------------

COST_FACTOR = {"low": 1.0, "medium": 1.5, "high": 2.5}


def _optimization(area: str, efficiency: float, potential: float, cost: str, suggestion: str) -> Optimization:
    efficiency = max(0.0, min(100.0, efficiency))
    potential = max(0.0, min(100.0, potential))
    priority = potential * (1.0 - efficiency / 200.0) / COST_FACTOR[cost]
    return Optimization(
        area=area,
        current_efficiency=round(efficiency, 2),
        potential_improvement=round(potential, 2),
        implementation_cost=cost,
        priority=round(priority, 2),
        suggestion=suggestion,
    )


def optimizations(o: Overview) -> tuple[Optimization, ...]:
    candidates: list[Optimization] = []
    if o.feedback_votes:
        candidates.append(
            _optimization(
                "Automated decision accuracy",
                o.accuracy_rate * 100,
                (0.95 - o.accuracy_rate) * 100,
                "medium",
                "Retune rules with the most inaccurate feedback",
            )
        )
        candidates.append(
            _optimization(
                "False positive reduction",
                (1 - o.false_positive_rate) * 100,
                o.false_positive_rate * 100,
                "medium",
                "Raise thresholds on rules rated too strict",
            )
        )
    if o.resolved_items:
        speed = 100.0 * min(1.0, RESPONSE_TIME_TARGET_SECONDS / max(o.mean_response_time_seconds, 1.0))
        candidates.append(
            _optimization(
                "Queue processing speed",
                speed,
                100.0 - speed,
                "low",
                "Rebalance moderator shifts toward peak queue hours",
            )
        )
        engagement = 100.0 * min(1.0, o.feedback_votes / (o.resolved_items * 3))
        candidates.append(
            _optimization(
                "Community engagement",
                engagement,
                100.0 - engagement,
                "high",
                "Invite trusted users to rate recent resolutions",
            )
        )
    if o.total_actions:
        candidates.append(
            _optimization(
                "Automation coverage",
                o.automation_rate * 100,
                (0.8 - o.automation_rate) * 100,
                "low",
                "Automate clear-cut block decisions with high rule confidence",
            )
        )
    kept = [c for c in candidates if c.potential_improvement > 0]
    return tuple(sorted(kept, key=lambda c: (-c.priority, c.area)))


# --- alerts -----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _AlertRule:
    type: str
    metric: str
    direction: str
    breach: Callable[[Trend], bool]
    severe: Callable[[Trend], bool]
    message: str
    actions: tuple[str, ...]


ALERT_RULES: tuple[_AlertRule, ...] = (
    _AlertRule(
        "volume_spike",
        "content_volume",
        "increasing",
        lambda t: t.predicted_value >= 1.5 * max(t.previous_value, 1.0),
        lambda t: t.predicted_value >= 2.0 * max(t.previous_value, 1.0),
        "Content volume is projected to spike",
        ("Pre-allocate moderator capacity", "Confirm automated rules are current"),
    ),
    _AlertRule(
        "quality_drop",
        "accuracy_rate",
        "decreasing",
        lambda t: t.predicted_value < 0.8,
        lambda t: t.predicted_value < 0.6,
        "Decision accuracy is projected to fall below 80%",
        ("Audit recently triggered rules", "Sample recent decisions for manual review"),
    ),
    _AlertRule(
        "false_positive_increase",
        "false_positive_rate",
        "increasing",
        lambda t: t.predicted_value > 0.2,
        lambda t: t.predicted_value > 0.35,
        "False positive rate is projected to exceed 20%",
        ("Raise thresholds on rules rated too strict", "Check cultural-context adjustments"),
    ),
    _AlertRule(
        "community_disagreement",
        "community_agreement_rate",
        "decreasing",
        lambda t: t.predicted_value < 0.7,
        lambda t: t.predicted_value < 0.5,
        "Community agreement with decisions is projected to fall below 70%",
        ("Publish moderation guidelines", "Review disputed decisions with senior moderators"),
    ),
    _AlertRule(
        "system_overload",
        "mean_response_time_seconds",
        "increasing",
        lambda t: t.predicted_value > RESPONSE_TIME_TARGET_SECONDS,
        lambda t: t.predicted_value > 2 * RESPONSE_TIME_TARGET_SECONDS,
        "Queue response time is projected to exceed the one-hour target",
        ("Add moderator coverage", "Enable queue bypass for trusted authors"),
    ),
)


def predictive_alerts(
    trends: Iterable[Trend],
    *,
    period: str,
    window_end: datetime,
    confidence_floor: float,
) -> tuple[PredictiveAlert, ...]:
    by_metric = {t.metric: t for t in trends}
    out: list[PredictiveAlert] = []
    for rule in ALERT_RULES:
        t = by_metric.get(rule.metric)
        if t is None or t.direction != rule.direction or not rule.breach(t):
            continue
        if t.confidence < confidence_floor:
            continue
        out.append(
            PredictiveAlert(
                id=f"{rule.type}:{ensure_utc(window_end).isoformat()}",
                type=rule.type,
                metric=rule.metric,
                severity="high" if rule.severe(t) else "medium",
                probability=t.confidence,
                timeframe=f"next {period}",
                predicted_value=t.predicted_value,
                message=rule.message,
                recommended_actions=rule.actions,
            )
        )
    return tuple(sorted(out, key=lambda a: (a.severity != "high", -a.probability, a.type)))


# --- recommendations --------------------------------------------------------


def recommendations(
    o: Overview,
    trends: Sequence[Trend],
    insights: Sequence[ContentInsight],
    patterns: Sequence[UserPattern],
) -> tuple[str, ...]:
    recs: list[str] = []
    if o.feedback_votes and o.accuracy_rate < 0.8:
        recs.append("Improve model accuracy: retune rules with the most inaccurate community feedback")
    if o.feedback_votes and o.false_positive_rate > 0.2:
        recs.append("Reduce false positives: raise activation thresholds on rules rated too strict")
    if o.feedback_votes and o.false_negative_rate > 0.2:
        recs.append("Reduce false negatives: lower thresholds on rules rated too lenient")
    if o.feedback_votes and o.community_agreement_rate < 0.7:
        recs.append("Investigate community disagreement: publish clearer moderation guidelines")
    if o.resolved_items and o.mean_response_time_seconds > RESPONSE_TIME_TARGET_SECONDS:
        recs.append("Shorten queue response time: add moderator coverage for peak periods")
    if o.total_actions and o.automation_rate < 0.6:
        recs.append("Increase automation: automate clear-cut block decisions")
    for t in trends:
        if t.direction == "increasing" and t.metric in ("false_positive_rate", "mean_response_time_seconds"):
            recs.append(f"Watch rising {TRACKED_METRICS[t.metric][0].lower()}: {t.change_percent:+.1f}% this period")
    for i in insights:
        if i.share >= 0.3:
            recs.append(f"Recurring '{i.pattern}' pattern: {i.recommendation}")
    for p in patterns:
        if p.risk_level == "high":
            recs.append(f"High-risk pattern '{p.pattern}': {p.recommendation}")

    seen: set[str] = set()
    unique: list[str] = []
    for r in recs:
        if r not in seen:
            seen.add(r)
            unique.append(r)
    return tuple(unique[:MAX_RECOMMENDATIONS])


# --- report -----------------------------------------------------------------


def lookback_start(end: datetime, period: str, windows: int = PREVIOUS_WINDOWS) -> datetime:
    return ensure_utc(end) - period_length(period) * (windows + 1)


def _windows(end: datetime, period: str, count: int) -> list[tuple[datetime, datetime]]:
    """[(start, end)] most recent first, count+1 windows including current."""
    length = period_length(period)
    end = ensure_utc(end)
    return [(end - length * (i + 1), end - length * i) for i in range(count + 1)]


def generate_report(
    dataset: AnalyticsDataset,
    *,
    end: datetime,
    period: str,
    confidence_floor: float,
    generated_at: Optional[datetime] = None,
) -> AnalyticsReport:
    windows = _windows(end, period, PREVIOUS_WINDOWS)
    slices = [dataset.window(s, e) for s, e in windows]
    overviews = [compute_overview(ds, s, e) for ds, (s, e) in zip(slices, windows)]

    current, previous = overviews[0], overviews[1:]
    trends = compute_trends(current, previous, period=period)
    insights = content_insights(slices[0], slices[1])
    patterns = user_patterns(slices[0])
    alerts = predictive_alerts(trends, period=period, window_end=windows[0][1], confidence_floor=confidence_floor)

    return AnalyticsReport(
        timeframe=Timeframe(period=period, start=windows[0][0], end=windows[0][1]),
        overview=current,
        trends=trends,
        content_insights=insights,
        user_patterns=patterns,
        optimizations=optimizations(current),
        predictive_alerts=alerts,
        recommendations=recommendations(current, trends, insights, patterns),
        generated_at=generated_at or utc_now(),
    )


def metric_history(
    dataset: AnalyticsDataset,
    *,
    end: datetime,
    period: str,
    metric: str,
) -> list[dict[str, Any]]:
    if metric not in TRACKED_METRICS:
        raise ValueError(f"unknown metric {metric!r}; expected one of {sorted(TRACKED_METRICS)}")
    points = []
    for s, e in reversed(_windows(end, period, PREVIOUS_WINDOWS)):
        o = compute_overview(dataset.window(s, e), s, e)
        points.append({"start": s, "end": e, "value": getattr(o, metric)})
    return points


def system_health(o: Overview) -> str:
    if not o.feedback_votes or o.accuracy_rate > 0.8:
        return "healthy"
    if o.accuracy_rate > 0.6:
        return "warning"
    return "critical"


def report_to_dict(report: AnalyticsReport) -> dict[str, Any]:
    return asdict(report)


def report_to_csv(report: AnalyticsReport) -> str:
    buf = io.StringIO()
    w = csv.writer(buf, lineterminator="\n")
    w.writerow(["section", "name", "value", "detail"])
    for k, v in asdict(report.overview).items():
        w.writerow(["overview", k, v, ""])
    for t in report.trends:
        w.writerow(["trend", t.metric, t.current_value, f"{t.direction} ({t.change_percent:+.2f}%)"])
    for i in report.content_insights:
        w.writerow(["content_insight", i.pattern, i.frequency, i.recommendation])
    for p in report.user_patterns:
        w.writerow(["user_pattern", p.pattern, p.user_count, p.risk_level])
    for op in report.optimizations:
        w.writerow(["optimization", op.area, op.priority, op.suggestion])
    for a in report.predictive_alerts:
        w.writerow(["alert", a.type, a.probability, a.message])
    for r in report.recommendations:
        w.writerow(["recommendation", "", "", r])
    return buf.getvalue()
