"""Scheduled entry point: moderation analytics report (READ-ONLY).

STRICT:
- Reads decisions, queue items, reports and reputation from the DB.
- Writes the report to a file (JSON or CSV) and logs a summary line.
- NO database writes.

Run:
  python engine/job/run_analytics_report.py --period week --format csv --output reports/week.csv
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

# Ensure backend/ is importable when run as a plain script.
BASE_DIR = Path(__file__).resolve().parents[2]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from engine.core import analytics  # noqa: E402
from engine.core.errors import ModerationError  # noqa: E402
from engine.core.timeutil import PERIODS, utc_now  # noqa: E402
from moderation.core.db import SessionLocal  # noqa: E402
from moderation.core.env import load_env_if_present  # noqa: E402
import moderation.models as _models  # noqa: F401,E402
from moderation.services.analytics_service import FORMATS, AnalyticsService  # noqa: E402
from moderation.services.runtime import build_runtime  # noqa: E402


logger = logging.getLogger("moderation.analytics_job")
logger.setLevel(logging.INFO)
if not logging.getLogger().handlers:
    logging.basicConfig(level=logging.INFO, format="%(message)s")


def _log(event: dict) -> None:
    logger.info(json.dumps(event, ensure_ascii=False, default=str))


def _write(path: Path, body: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(body, encoding="utf-8")


def main(argv: Optional[list[str]] = None) -> int:
    load_env_if_present()

    p = argparse.ArgumentParser(description="Generate a moderation analytics report")
    p.add_argument("--period", choices=sorted(PERIODS), default="day")
    p.add_argument("--format", choices=list(FORMATS), default="json", dest="fmt")
    p.add_argument("--output", type=Path, default=None, help="Write here instead of stdout.")
    args = p.parse_args(argv)

    runtime = build_runtime()
    end = utc_now()

    db = SessionLocal()
    try:
        report = AnalyticsService(db, runtime).report(args.period, end=end)
    except ModerationError as e:
        _log({"event": "analytics_report_failed", "period": args.period, "error": e.code, "message": e.message})
        return 1
    finally:
        db.close()

    if args.fmt == "csv":
        body = analytics.report_to_csv(report)
    else:
        body = json.dumps(analytics.report_to_dict(report), ensure_ascii=False, indent=2, default=str) + "\n"

    if args.output is not None:
        _write(args.output, body)
    else:
        sys.stdout.write(body)

    _log(
        {
            "event": "analytics_report_generated",
            "period": args.period,
            "format": args.fmt,
            "end": end.isoformat(),
            "total_actions": report.overview.total_actions,
            "alerts": len(report.predictive_alerts),
            "output": str(args.output) if args.output else None,
        }
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
