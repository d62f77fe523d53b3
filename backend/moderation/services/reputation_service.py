"""Reputation reads (cached) and delta writes.

Writes join the caller's transaction; `flush_events()` must be called after
the caller commits so the cache is invalidated and tier changes are published
only for state that actually landed.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Mapping, Optional

from sqlalchemy.orm import Session

from engine.core.reputation import ReputationUpdate, ReputationView, default_view
from moderation.repositories.reputation_repo import ReputationRepository
from moderation.services.runtime import ModerationRuntime


logger = logging.getLogger(__name__)


class ReputationService:
    def __init__(self, session: Session, runtime: ModerationRuntime) -> None:
        self._session = session
        self._runtime = runtime
        self._repo = ReputationRepository(session)
        self._pending: list[tuple[ReputationUpdate, str, Optional[str]]] = []

    def get_view(self, user_id: str) -> ReputationView:
        cache = self._runtime.reputation_cache
        cached = cache.get(user_id)
        if cached is not None:
            return cached
        view = self._repo.get_view(user_id) or default_view(user_id)
        cache.put(view)
        return view

    def apply(
        self,
        user_id: str,
        deltas: Mapping[str, float],
        *,
        reason: str,
        source_ref: Optional[str],
        at: datetime,
    ) -> ReputationUpdate:
        # The row lock lasts until commit; the process lock covers stores without FOR UPDATE.
        with self._runtime.reputation_locks.hold(user_id):
            update = self._repo.apply_deltas(user_id, deltas, reason=reason, source_ref=source_ref, at=at)
        self._pending.append((update, reason, source_ref))
        return update

    def flush_events(self) -> None:
        pending, self._pending = self._pending, []
        for update, reason, source_ref in pending:
            self._runtime.reputation_cache.invalidate(update.after.user_id)
            if update.tier_changed:
                logger.info(
                    f"Trust tier changed for {update.after.user_id}: "
                    f"{update.before.trust_tier} -> {update.after.trust_tier}"
                )
                self._runtime.events.publish(
                    "tier_changed",
                    {
                        "user_id": update.after.user_id,
                        "tier_before": update.before.trust_tier,
                        "tier_after": update.after.trust_tier,
                        "score_before": update.before.overall_score,
                        "score_after": update.after.overall_score,
                        "reason": reason,
                        "source_ref": source_ref,
                    },
                )

    def discard_events(self) -> None:
        self._pending = []

    def history(self, user_id: str, *, limit: int = 20):
        return self._repo.events_for(user_id, limit=limit)
