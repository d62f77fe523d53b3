"""Process-wide moderation runtime.

The host application constructs exactly one ModerationRuntime at startup and
stores it on `app.state`. It owns the only long-lived state of the subsystem:
the rule set (reloadable), the reputation cache (reloadable), per-content and
per-user locks, and the best-effort event publisher. Services are per-request objects
that borrow it.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import redis
from sqlalchemy.orm import Session

from engine.core.errors import RuleLoadError, StorageUnavailable
from engine.core.locks import KeyedLocks
from engine.core.reputation import ReputationView
from engine.core.rules import RuleEngine, load_rules_yaml
from engine.core.scorers import HeuristicSignalScorer, HttpSignalScorer
from engine.core.signals import SignalScorer
from moderation.core.settings import Settings, get_settings
from moderation.repositories.base import storage_guard
from moderation.repositories.rule_repo import RuleRepository, row_from_rule


logger = logging.getLogger(__name__)

EVENTS_CHANNEL = "moderation:events"


class ReputationCache:
    """TTL cache of ReputationView keyed by user id.

    Writers invalidate after commit; readers fall through to the repository on a
    miss. A stale entry is at most `ttl_seconds` old.
    """

    def __init__(self, *, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[float, ReputationView]] = {}

    def get(self, user_id: str) -> Optional[ReputationView]:
        with self._lock:
            hit = self._entries.get(user_id)
            if hit is None:
                return None
            stored_at, view = hit
            if self._clock() - stored_at > self._ttl:
                del self._entries[user_id]
                return None
            return view

    def put(self, view: ReputationView) -> None:
        if self._ttl <= 0:
            return
        with self._lock:
            self._entries[view.user_id] = (self._clock(), view)

    def invalidate(self, user_id: Optional[str] = None) -> None:
        with self._lock:
            if user_id is None:
                self._entries.clear()
            else:
                self._entries.pop(user_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class EventPublisher:
    """Best-effort moderation event fan-out.

    Every event is logged. When REDIS_URL is configured the event is also
    published as JSON on EVENTS_CHANNEL; publish failures are logged and never
    fail the calling operation.
    """

    def __init__(self, client: Optional[Any] = None, *, channel: str = EVENTS_CHANNEL) -> None:
        self._client = client
        self._channel = channel

    @classmethod
    def from_url(cls, url: Optional[str]) -> "EventPublisher":
        if not url:
            return cls(None)
        return cls(redis.from_url(url))

    def publish(self, event: str, payload: dict[str, Any]) -> None:
        body = {"event": event, **payload}
        logger.info(json.dumps(body, default=str, sort_keys=True))
        if self._client is None:
            return
        try:
            self._client.publish(self._channel, json.dumps(body, default=str))
        except redis.RedisError as e:
            logger.warning(f"Event publish failed for {event}: {e}")


@dataclass
class ModerationRuntime:
    settings: Settings
    scorer: SignalScorer
    rule_engine: RuleEngine
    reputation_cache: ReputationCache
    events: EventPublisher
    locks: KeyedLocks = field(default_factory=KeyedLocks)
    reputation_locks: KeyedLocks = field(default_factory=KeyedLocks)

    def reload_rules(self, session: Session) -> int:
        """Swap the engine's rule set for the active rules stored in the database."""
        rules = RuleRepository(session).list_active_rules()
        self.rule_engine.reload(rules)
        return len(rules)


def build_scorer(settings: Settings) -> SignalScorer:
    if settings.scorer_url:
        return HttpSignalScorer(settings.scorer_url, timeout_seconds=settings.scorer_timeout_seconds)
    return HeuristicSignalScorer()


def build_runtime(
    settings: Optional[Settings] = None,
    *,
    scorer: Optional[SignalScorer] = None,
    events: Optional[EventPublisher] = None,
) -> ModerationRuntime:
    """Construct the runtime with rules loaded from the YAML seed file.

    The database copy of the rules replaces this set once `seed_and_load_rules`
    runs against a live session.
    """
    settings = settings or get_settings()
    rules = load_rules_yaml(
        settings.rules_path,
        default_min=settings.rule_threshold_min,
        default_max=settings.rule_threshold_max,
    )
    return ModerationRuntime(
        settings=settings,
        scorer=scorer or build_scorer(settings),
        rule_engine=RuleEngine(rules),
        reputation_cache=ReputationCache(ttl_seconds=settings.reputation_cache_ttl_seconds),
        events=events or EventPublisher.from_url(settings.redis_url),
    )


def seed_rules_if_empty(runtime: ModerationRuntime, session: Session) -> int:
    repo = RuleRepository(session)
    if repo.count() > 0:
        return 0
    settings = runtime.settings
    rules = load_rules_yaml(
        settings.rules_path,
        default_min=settings.rule_threshold_min,
        default_max=settings.rule_threshold_max,
    )
    for rule in rules:
        repo.add(row_from_rule(rule))
    with storage_guard("seed_rules_if_empty"):
        session.commit()
    logger.info(f"Seeded {len(rules)} moderation rules from {settings.rules_path}")
    return len(rules)


def seed_and_load_rules(runtime: ModerationRuntime, session_factory: Callable[[], Session]) -> None:
    """Startup hook: seed the rule table, then serve the database copy.

    When storage is unreachable the YAML rules already in the engine stay in
    effect and the failure is logged.
    """
    try:
        with session_factory() as session:
            seed_rules_if_empty(runtime, session)
            runtime.reload_rules(session)
    except (StorageUnavailable, RuleLoadError) as e:
        logger.error(f"Rule store unavailable at startup; serving seed rules: {e}")
