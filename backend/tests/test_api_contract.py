from __future__ import annotations

import os

import pytest

from conftest import make_jwt, seed_reputation, token_exp


@pytest.fixture(autouse=True)
def _auth_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("MOD_JWT_SECRET", "test-secret")


def _auth_header(role: str, sub: str = "user-1") -> dict[str, str]:
    token = make_jwt(sub=sub, role=role, secret=os.environ["MOD_JWT_SECRET"], exp=token_exp())
    return {"Authorization": f"Bearer {token}"}


def _evaluate(client, content_id: str = "c-1", text: str = "hello world", **extra):
    body = {
        "content": text,
        "contentType": "comment",
        "contentId": content_id,
        "submittedAt": "2026-10-14T11:00:00Z",
        **extra,
    }
    return client.post("/v1/moderation/evaluate", json=body, headers=_auth_header("USER"))


def test_openapi_lists_moderation_routes(client):
    spec = client.get("/openapi.json").json()
    paths = spec["paths"]
    for p in (
        "/v1/moderation/evaluate",
        "/v1/moderation/queue",
        "/v1/moderation/reports",
        "/v1/moderation/feedback",
        "/v1/moderation/analytics",
        "/v1/moderation/rules",
        "/v1/moderation/reputation/{user_id}",
    ):
        assert p in paths, f"missing route {p}"
    assert set(paths["/v1/moderation/queue"]) == {"get", "patch"}


def test_evaluate_response_shape(client, scorer):
    scorer.set(toxicity=0.7)
    r = _evaluate(client)
    assert r.status_code == 200
    body = r.json()

    assert body["success"] is True
    assert body["degraded"] is False
    data = body["data"]
    for key in (
        "contentId",
        "resultId",
        "action",
        "severity",
        "shouldFlag",
        "confidence",
        "scores",
        "flags",
        "ruleIdsTriggered",
        "authorTier",
        "queueItem",
    ):
        assert key in data, f"missing {key}"
    assert data["action"] == "review"
    assert data["severity"] == "high"
    assert data["authorTier"] == "new"
    assert data["scores"]["toxicity"] == pytest.approx(0.7)
    assert data["queueItem"]["status"] == "pending"
    # Internal/raw text never echoes back.
    assert "content" not in data
    assert "text" not in data


def test_evaluate_analyze_only_returns_no_ids(client, scorer):
    scorer.set(spam=0.9)
    r = _evaluate(client, analyzeOnly=True)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["analyzeOnly"] is True
    assert data["resultId"] is None
    assert data["queueItem"] is None


def test_evaluate_validation_errors_use_envelope(client):
    r = client.post(
        "/v1/moderation/evaluate",
        json={"content": "", "contentType": "tweet", "contentId": "c-1"},
        headers=_auth_header("USER"),
    )
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["error"]["code"] == "validation_error"
    fields = {f["field"] for f in body["error"]["details"]["fields"]}
    assert {"content", "contentType"} <= fields


def test_evaluate_text_conflict_returns_409(client):
    assert _evaluate(client, text="first").status_code == 200
    r = _evaluate(client, text="second")
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "conflict"


def test_queue_claim_and_resolve_flow(client, scorer):
    scorer.set(toxicity=0.7)
    item_id = _evaluate(client).json()["data"]["queueItem"]["id"]

    listing = client.get("/v1/moderation/queue", headers=_auth_header("MODERATOR", "mod-a"))
    assert listing.status_code == 200
    data = listing.json()["data"]
    assert data["stats"]["totalPending"] == 1
    assert [i["id"] for i in data["items"]] == [item_id]

    claim = client.post(f"/v1/moderation/queue/{item_id}/claim", headers=_auth_header("MODERATOR", "mod-a"))
    assert claim.status_code == 200
    assert claim.json()["data"]["status"] == "reviewing"

    other = client.patch(
        "/v1/moderation/queue",
        json={"queueItemId": item_id, "action": "approve"},
        headers=_auth_header("MODERATOR", "mod-b"),
    )
    assert other.status_code == 409

    r = client.patch(
        "/v1/moderation/queue",
        json={"queueItemId": item_id, "action": "reject", "moderatorNotes": "abusive"},
        headers=_auth_header("MODERATOR", "mod-a"),
    )
    assert r.status_code == 200
    body = r.json()["data"]
    assert body["item"]["status"] == "rejected"
    assert body["item"]["actionTaken"] == "reject"
    assert body["authorReputation"]["userId"] == "user-1"
    assert body["authorReputation"]["scoreAfter"] < body["authorReputation"]["scoreBefore"]

    again = client.patch(
        "/v1/moderation/queue",
        json={"queueItemId": item_id, "action": "approve"},
        headers=_auth_header("MODERATOR", "mod-a"),
    )
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "already_resolved"


def test_unknown_queue_item_returns_404(client):
    r = client.post(
        "/v1/moderation/queue/00000000-0000-0000-0000-000000000000/claim",
        headers=_auth_header("MODERATOR"),
    )
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "not_found"


def test_report_then_duplicate(client):
    body = {"contentType": "forum_post", "contentId": "c-9", "category": "harassment", "reason": "targets a user"}
    r = client.post("/v1/moderation/reports", json=body, headers=_auth_header("USER", "rep-1"))
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["report"]["priority"] == "high"
    assert data["report"]["status"] == "pending"
    assert data["queueReused"] is False

    dup = client.post("/v1/moderation/reports", json=body, headers=_auth_header("USER", "rep-1"))
    assert dup.status_code == 400
    assert dup.json()["error"]["code"] == "duplicate_report"

    mine = client.get("/v1/moderation/reports", headers=_auth_header("USER", "rep-1"))
    assert [x["reporterId"] for x in mine.json()["data"]] == ["rep-1"]
    assert client.get("/v1/moderation/reports", headers=_auth_header("USER", "rep-2")).json()["data"] == []
    assert len(client.get("/v1/moderation/reports", headers=_auth_header("MODERATOR")).json()["data"]) == 1


def test_feedback_vote_and_consensus(client, scorer):
    scorer.set(toxicity=0.7)
    item_id = _evaluate(client).json()["data"]["queueItem"]["id"]
    client.patch(
        "/v1/moderation/queue",
        json={"queueItemId": item_id, "action": "reject"},
        headers=_auth_header("MODERATOR", "mod-a"),
    )

    vote = client.post(
        "/v1/moderation/feedback",
        json={"queueItemId": item_id, "wasAccurate": True, "severityRating": "accurate"},
        headers=_auth_header("USER", "voter-1"),
    )
    assert vote.status_code == 200
    data = vote.json()["data"]
    assert data["voterTier"] == "new"
    assert data["summary"]["voteCount"] == 1
    assert data["thresholdAdjustment"] is None

    consensus = client.get(f"/v1/moderation/feedback/{item_id}", headers=_auth_header("MODERATOR"))
    assert consensus.status_code == 200
    assert consensus.json()["data"]["summary"]["agreementRate"] == pytest.approx(1.0)


def test_reputation_lookup_shape(client, session_factory):
    with session_factory() as s:
        seed_reputation(s, "user-1", 20.0)
    r = client.get("/v1/moderation/reputation/user-1", headers=_auth_header("USER", "user-1"))
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["trustTier"] == "trusted"
    assert data["overallScore"] == pytest.approx(200.0)
    assert "queue_bypass" in data["privileges"]
    assert set(data["factors"]) >= {"moderation_history", "community_trust"}
    assert data["recentEvents"][0]["reason"] == "test:seed"


def test_rules_crud_and_reload(client):
    admin = _auth_header("ADMIN", "admin-1")
    listed = client.get("/v1/moderation/rules", headers=_auth_header("MODERATOR"))
    assert listed.status_code == 200
    ids = [r["id"] for r in listed.json()["data"]]
    assert "threat-language" in ids

    created = client.post(
        "/v1/moderation/rules",
        json={
            "id": "link-spam",
            "name": "Link spam",
            "priority": 50,
            "conditions": [{"signalPath": "metadata.has_links", "operator": "eq", "threshold": True}],
            "actions": [{"type": "review"}],
        },
        headers=admin,
    )
    assert created.status_code == 200
    assert created.json()["data"]["timesTriggered"] == 0

    dup = client.post(
        "/v1/moderation/rules",
        json={"id": "link-spam", "name": "x", "conditions": [{"signalPath": "a", "operator": "eq"}], "actions": [{"type": "flag"}]},
        headers=admin,
    )
    assert dup.status_code == 409

    patched = client.patch("/v1/moderation/rules/link-spam", json={"isActive": False}, headers=admin)
    assert patched.status_code == 200
    assert patched.json()["data"]["isActive"] is False

    reload = client.post("/v1/moderation/rules/reload", headers=admin)
    assert reload.status_code == 200
    assert reload.json()["data"]["activeRules"] == len(ids)


def test_rule_with_unknown_operator_is_rejected(client):
    r = client.post(
        "/v1/moderation/rules",
        json={
            "id": "bad-op",
            "name": "Bad",
            "conditions": [{"signalPath": "signals.spam", "operator": "approx", "threshold": 0.5}],
            "actions": [{"type": "flag"}],
        },
        headers=_auth_header("ADMIN"),
    )
    assert r.status_code == 400


def test_analytics_overview_and_csv_export(client, scorer):
    scorer.set(toxicity=0.7)
    _evaluate(client)

    r = client.get("/v1/moderation/analytics?action=overview&period=day", headers=_auth_header("MODERATOR"))
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["overview"]["content_volume"] == 1
    assert data["timeframe"]["period"] == "day"

    csv = client.get("/v1/moderation/analytics?action=export&period=week&format=csv", headers=_auth_header("ADMIN"))
    assert csv.status_code == 200
    assert csv.headers["content-type"].startswith("text/csv")
    assert csv.text.splitlines()[0] == "section,name,value,detail"


def test_analytics_rejects_bad_action_and_missing_metric(client):
    h = _auth_header("MODERATOR")
    assert client.get("/v1/moderation/analytics?action=forecast", headers=h).status_code == 400
    assert client.get("/v1/moderation/analytics?action=metric_history", headers=h).status_code == 400
    ok = client.get("/v1/moderation/analytics?action=metric_history&metric=flag_rate&period=hour", headers=h)
    assert ok.status_code == 200
    assert len(ok.json()["data"]["points"]) == 4


def test_rule_dry_run_explains_without_persisting(client, scorer):
    scorer.set(spam=0.8, flags={"promotional": True})
    body = {"content": "buy now", "contentType": "forum_post", "submittedAt": "2026-10-14T11:00:00Z"}
    r = client.post("/v1/moderation/rules/test", json=body, headers=_auth_header("MODERATOR", "mod-a"))
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["action"] == "block"
    assert data["winningRuleId"] == "new-account-promotion"
    assert data["draft"] is False
    assert data["authorTier"] == "new"
    traced = {t["ruleId"]: t for t in data["rules"]}
    assert traced["new-account-promotion"]["triggered"] is True
    assert traced["threat-language"]["triggered"] is False

    queue = client.get("/v1/moderation/queue", headers=_auth_header("MODERATOR"))
    assert queue.json()["data"]["stats"]["totalPending"] == 0

    draft = {
        **body,
        "rules": [
            {
                "id": "draft-x",
                "name": "Draft",
                "conditions": [{"signalPath": "signals.spam", "operator": "approx", "threshold": 0.5}],
                "actions": [{"type": "flag"}],
            }
        ],
    }
    bad = client.post("/v1/moderation/rules/test", json=draft, headers=_auth_header("MODERATOR"))
    assert bad.status_code == 400


def test_bulk_toggle_rules(client):
    admin = _auth_header("ADMIN", "admin-1")
    before = client.post("/v1/moderation/rules/reload", headers=admin).json()["data"]["activeRules"]

    off = client.post(
        "/v1/moderation/rules/bulk",
        json={"ruleIds": ["threat-language", "off-hours-links"], "operation": "deactivate"},
        headers=admin,
    )
    assert off.status_code == 200
    assert off.json()["data"] == {"updated": ["threat-language", "off-hours-links"], "activeRules": before - 2}

    missing = client.post(
        "/v1/moderation/rules/bulk",
        json={"ruleIds": ["threat-language", "nope"], "operation": "activate"},
        headers=admin,
    )
    assert missing.status_code == 404
    assert missing.json()["error"]["details"]["missing"] == ["nope"]


def test_community_override_flow(client, scorer):
    scorer.set(toxicity=0.7)
    item_id = _evaluate(client).json()["data"]["queueItem"]["id"]
    client.patch(
        "/v1/moderation/queue",
        json={"queueItemId": item_id, "action": "reject"},
        headers=_auth_header("MODERATOR", "mod-a"),
    )
    url = f"/v1/moderation/feedback/{item_id}/override"

    early = client.post(url, json={}, headers=_auth_header("MODERATOR", "mod-b"))
    assert early.status_code == 409

    for n in range(5):
        client.post(
            "/v1/moderation/feedback",
            json={"queueItemId": item_id, "wasAccurate": False, "severityRating": "too_strict"},
            headers=_auth_header("USER", f"voter-{n}"),
        )

    r = client.post(url, json={"moderatorNotes": "benign"}, headers=_auth_header("MODERATOR", "mod-b"))
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["actionType"] == "approve"
    assert data["summary"]["overrideRecommended"] is True
    assert data["summary"]["voteCount"] == 5

    again = client.post(url, json={}, headers=_auth_header("MODERATOR", "mod-b"))
    assert again.status_code == 409
