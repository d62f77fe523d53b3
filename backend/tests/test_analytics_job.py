from __future__ import annotations

import json

import pytest

import engine.job.run_analytics_report as job
from conftest import BUSINESS_HOURS
from moderation.models.content_submission import ContentSubmission
from moderation.services.decision_service import DecisionService, EvaluationRequest


@pytest.fixture()
def wired_job(monkeypatch: pytest.MonkeyPatch, runtime, session_factory):
    monkeypatch.setattr(job, "SessionLocal", session_factory)
    monkeypatch.setattr(job, "build_runtime", lambda: runtime)
    return job


def _seed_decision(session_factory, runtime, scorer) -> None:
    scorer.set(toxicity=0.7)
    with session_factory() as s:
        DecisionService(s, runtime).evaluate(
            EvaluationRequest(
                content_id="c-1",
                content_type="comment",
                text="some text",
                author_id="author-1",
                submitted_at=BUSINESS_HOURS,
            )
        )


def test_json_report_is_written_to_output(wired_job, session_factory, runtime, scorer, tmp_path):
    _seed_decision(session_factory, runtime, scorer)
    out = tmp_path / "reports" / "day.json"

    assert wired_job.main(["--period", "day", "--format", "json", "--output", str(out)]) == 0

    body = json.loads(out.read_text(encoding="utf-8"))
    assert body["overview"]["content_volume"] == 1
    assert body["timeframe"]["period"] == "day"


def test_csv_report_goes_to_stdout(wired_job, capsys: pytest.CaptureFixture[str]):
    assert wired_job.main(["--period", "week", "--format", "csv"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "section,name,value,detail"
    assert "overview,content_volume,0," in lines


def test_job_never_writes(wired_job, session_factory, runtime, scorer):
    _seed_decision(session_factory, runtime, scorer)
    with session_factory() as s:
        before = s.query(ContentSubmission).count()

    assert wired_job.main(["--period", "day"]) == 0

    with session_factory() as s:
        assert s.query(ContentSubmission).count() == before


def test_unknown_period_is_rejected_by_argparse(wired_job):
    with pytest.raises(SystemExit):
        wired_job.main(["--period", "fortnight"])
