from __future__ import annotations

import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Generator, Optional

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


ROOT = Path(__file__).resolve().parents[2]

# Ensure `backend/` packages are importable when pytest runs without an install.
BACKEND_DIR = ROOT / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from engine.core.errors import ScorerUnavailable  # noqa: E402
from engine.core.reputation import FACTORS, build_view  # noqa: E402
from engine.core.scorers import HeuristicSignalScorer  # noqa: E402
from engine.core.signals import SignalScores  # noqa: E402
from moderation.core.base import Base  # noqa: E402
from moderation.core.settings import Settings  # noqa: E402
import moderation.models  # noqa: F401,E402
from moderation.repositories.reputation_repo import ReputationRepository  # noqa: E402
from moderation.services.runtime import EventPublisher, ModerationRuntime, build_runtime, seed_and_load_rules  # noqa: E402


UTC = timezone.utc

# A weekday afternoon, so business-hour rules stay quiet unless a test opts in.
BUSINESS_HOURS = datetime(2026, 10, 14, 11, 0, tzinfo=UTC)


class RecordingRedis:
    """Stands in for a redis client: keeps every published message."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, dict[str, Any]]] = []

    def publish(self, channel: str, message: str) -> int:
        self.messages.append((channel, json.loads(message)))
        return 1

    def events(self, name: Optional[str] = None) -> list[dict[str, Any]]:
        bodies = [m for _, m in self.messages]
        if name is None:
            return bodies
        return [b for b in bodies if b["event"] == name]


class FixedScorer:
    """Scorer double returning preset scores (or failing on demand)."""

    def __init__(
        self,
        *,
        spam: float = 0.0,
        toxicity: float = 0.0,
        quality: float = 0.8,
        cultural_adjustment: float = 0.0,
        flags: Optional[dict[str, bool]] = None,
        fail: bool = False,
    ) -> None:
        self.spam = spam
        self.toxicity = toxicity
        self.quality = quality
        self.cultural_adjustment = cultural_adjustment
        self.flags = dict(flags or {})
        self.fail = fail
        self.calls = 0

    def set(self, **kw: Any) -> None:
        for k, v in kw.items():
            setattr(self, k, v)

    def score(self, text: str, *, content_type: str) -> SignalScores:
        self.calls += 1
        if self.fail:
            raise ScorerUnavailable("Signal scorer timed out.")
        return SignalScores(
            spam=self.spam,
            toxicity=self.toxicity,
            quality=self.quality,
            cultural_adjustment=self.cultural_adjustment,
            flags=dict(self.flags),
        ).clamped()


def make_jwt(sub: str, role: str, secret: str, *, exp: int | None = None) -> str:
    """HS256 JWT generator for API tests (no external dependency)."""
    import base64, hashlib, hmac  # noqa: E401

    def b64url(raw: bytes) -> str:
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    header = {"alg": "HS256", "typ": "JWT"}
    payload: dict[str, Any] = {"sub": sub, "role": role}
    if exp is not None:
        payload["exp"] = exp

    header_b64 = b64url(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_b64 = b64url(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("ascii")
    sig = hmac.new(secret.encode("utf-8"), signing_input, hashlib.sha256).digest()
    return f"{header_b64}.{payload_b64}.{b64url(sig)}"


def token_exp(hours: int = 1) -> int:
    return int((datetime.now(tz=UTC) + timedelta(hours=hours)).timestamp())


def seed_reputation(session: Session, user_id: str, value: float) -> None:
    """Give a user every factor at `value` (10 -> new, 20 -> trusted, 40 -> expert, 3 -> restricted)."""
    from engine.core.reputation import ReputationUpdate, default_view

    view = build_view(user_id, {name: value for name in FACTORS})
    ReputationRepository(session).save_update(
        ReputationUpdate(before=default_view(user_id), after=view, deltas={}),
        reason="test:seed",
        source_ref=None,
        at=datetime.now(tz=UTC),
    )
    session.commit()


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(eng, "connect")
    def _fk_on(dbapi_conn, _record) -> None:
        dbapi_conn.execute("PRAGMA foreign_keys=ON")

    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def settings() -> Settings:
    return Settings(rate_limit_per_hour=1000)


@pytest.fixture()
def redis_client() -> RecordingRedis:
    return RecordingRedis()


@pytest.fixture()
def scorer() -> FixedScorer:
    return FixedScorer()


@pytest.fixture()
def runtime(settings: Settings, scorer: FixedScorer, redis_client: RecordingRedis, session_factory) -> ModerationRuntime:
    rt = build_runtime(settings, scorer=scorer, events=EventPublisher(redis_client))
    seed_and_load_rules(rt, session_factory)
    return rt


@pytest.fixture()
def heuristic_runtime(settings: Settings, redis_client: RecordingRedis, session_factory) -> ModerationRuntime:
    rt = build_runtime(settings, scorer=HeuristicSignalScorer(), events=EventPublisher(redis_client))
    seed_and_load_rules(rt, session_factory)
    return rt


def build_client(runtime: ModerationRuntime, session_factory):
    from fastapi.testclient import TestClient

    from moderation.api.deps import get_db_session
    from moderation.main import create_app

    app = create_app(runtime, session_factory=session_factory)

    def _session() -> Generator[Session, None, None]:
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db_session] = _session
    return TestClient(app)


@pytest.fixture()
def client(runtime: ModerationRuntime, session_factory):
    with build_client(runtime, session_factory) as c:
        yield c
