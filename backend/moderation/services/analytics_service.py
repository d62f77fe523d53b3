"""Analytics orchestration (read-only).

Every call loads the lookback span from storage and recomputes the report; no
snapshot is ever persisted. Storage failures propagate as StorageUnavailable
so the API can answer with an explicit degraded response.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session

from engine.core import analytics
from engine.core.errors import ValidationError
from engine.core.timeutil import PERIODS, ensure_utc, utc_now
from moderation.repositories.analytics_repo import AnalyticsRepository
from moderation.repositories.queue_repo import QueueRepository
from moderation.services.runtime import ModerationRuntime


logger = logging.getLogger(__name__)

ACTIONS = ("overview", "trends", "patterns", "optimizations", "metric_history", "real_time", "export")
FORMATS = ("json", "csv")


def validate_period(period: str) -> str:
    if period not in PERIODS:
        raise ValidationError(f"Invalid period {period!r}.", details={"allowed": sorted(PERIODS)})
    return period


class AnalyticsService:
    def __init__(self, session: Session, runtime: ModerationRuntime) -> None:
        self._runtime = runtime
        self._repo = AnalyticsRepository(session)
        self._queue = QueueRepository(session)

    def report(self, period: str, *, end: Optional[datetime] = None) -> analytics.AnalyticsReport:
        validate_period(period)
        end = ensure_utc(end) if end is not None else utc_now()
        dataset = self._repo.load_dataset(analytics.lookback_start(end, period), end)
        report = analytics.generate_report(
            dataset,
            end=end,
            period=period,
            confidence_floor=self._runtime.settings.alert_confidence_floor,
        )
        logger.info(
            f"Analytics report period={period} decisions={len(dataset.decisions)} "
            f"alerts={len(report.predictive_alerts)}"
        )
        return report

    def overview(self, period: str, *, end: Optional[datetime] = None) -> dict[str, Any]:
        r = self.report(period, end=end)
        return {
            "timeframe": asdict(r.timeframe),
            "overview": asdict(r.overview),
            "recommendations": list(r.recommendations),
        }

    def trends(self, period: str, *, end: Optional[datetime] = None) -> dict[str, Any]:
        r = self.report(period, end=end)
        return {
            "timeframe": asdict(r.timeframe),
            "trends": [asdict(t) for t in r.trends],
            "predictive_alerts": [asdict(a) for a in r.predictive_alerts],
        }

    def patterns(self, period: str, *, end: Optional[datetime] = None) -> dict[str, Any]:
        r = self.report(period, end=end)
        return {
            "timeframe": asdict(r.timeframe),
            "content_insights": [asdict(i) for i in r.content_insights],
            "user_patterns": [asdict(p) for p in r.user_patterns],
        }

    def optimizations(self, period: str, *, end: Optional[datetime] = None) -> dict[str, Any]:
        r = self.report(period, end=end)
        return {
            "timeframe": asdict(r.timeframe),
            "optimizations": [asdict(o) for o in r.optimizations],
        }

    def metric_history(self, period: str, metric: str, *, end: Optional[datetime] = None) -> dict[str, Any]:
        validate_period(period)
        if metric not in analytics.TRACKED_METRICS:
            raise ValidationError(
                f"Unknown metric {metric!r}.",
                details={"allowed": sorted(analytics.TRACKED_METRICS)},
            )
        end = ensure_utc(end) if end is not None else utc_now()
        dataset = self._repo.load_dataset(analytics.lookback_start(end, period), end)
        return {
            "metric": metric,
            "period": period,
            "points": analytics.metric_history(dataset, end=end, period=period, metric=metric),
        }

    def real_time(self, *, now: Optional[datetime] = None) -> dict[str, Any]:
        """Last hour plus live queue backlog."""
        end = ensure_utc(now) if now is not None else utc_now()
        start = end - timedelta(hours=1)
        overview = analytics.compute_overview(self._repo.load_dataset(start, end), start, end)
        stats = self._queue.stats()
        return {
            "window": {"start": start, "end": end},
            "overview": asdict(overview),
            "queue": asdict(stats),
            "active_rules": len(self._runtime.rule_engine.rules),
            "system_health": analytics.system_health(overview),
        }

    def export(self, period: str, fmt: str = "json", *, end: Optional[datetime] = None) -> dict[str, Any] | str:
        if fmt not in FORMATS:
            raise ValidationError(f"Invalid format {fmt!r}.", details={"allowed": list(FORMATS)})
        r = self.report(period, end=end)
        if fmt == "csv":
            return analytics.report_to_csv(r)
        return analytics.report_to_dict(r)
