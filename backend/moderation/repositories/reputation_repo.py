from __future__ import annotations

from datetime import datetime
from typing import Mapping, Optional, Sequence

from sqlalchemy import desc, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from engine.core.reputation import FACTORS, ReputationUpdate, ReputationView, apply_deltas, build_view, default_view
from moderation.core.base import utc_now
from moderation.models.reputation import ReputationEvent, ReputationScore
from moderation.repositories.base import BaseRepository, storage_guard


_UPSERT_DIALECTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


def view_from_row(row: ReputationScore) -> ReputationView:
    return build_view(
        row.user_id,
        {name: getattr(row, name) for name in FACTORS},
        last_calculated=row.last_calculated,
    )


class ReputationRepository(BaseRepository):
    def get(self, user_id: str) -> Optional[ReputationScore]:
        stmt = select(ReputationScore).where(ReputationScore.user_id == user_id)
        return self._execute(stmt).scalars().first()

    def get_view(self, user_id: str) -> Optional[ReputationView]:
        row = self.get(user_id)
        return view_from_row(row) if row is not None else None

    def ensure(self, user_id: str) -> None:
        """Insert the default row for `user_id`; an existing row (or a concurrent insert) is left alone."""
        insert_fn = _UPSERT_DIALECTS.get(self.session.get_bind().dialect.name)
        view = default_view(user_id)
        now = utc_now()
        values = {name: float(view.factors[name]) for name in FACTORS}
        values.update(
            user_id=user_id,
            overall_score=view.overall_score,
            trust_tier=view.trust_tier,
            last_calculated=now,
            created_at=now,
        )
        if insert_fn is None:
            if self.get(user_id) is None:
                self._add(ReputationScore(**values))
            return
        stmt = insert_fn(ReputationScore).values(**values).on_conflict_do_nothing(index_elements=["user_id"])
        with storage_guard(self.__class__.__name__):
            self.session.execute(stmt)

    def lock(self, user_id: str) -> Optional[ReputationScore]:
        """Load the row for update, refreshing any copy already in the identity map."""
        stmt = (
            select(ReputationScore)
            .where(ReputationScore.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._execute(stmt).scalars().first()

    def apply_deltas(
        self,
        user_id: str,
        deltas: Mapping[str, float],
        *,
        reason: str,
        source_ref: Optional[str],
        at: datetime,
    ) -> ReputationUpdate:
        """Read-modify-write of the factors under a row lock, plus the delta event."""
        self.ensure(user_id)
        row = self.lock(user_id)
        update = apply_deltas(view_from_row(row), deltas, at=at)
        self._write(row, update, reason=reason, source_ref=source_ref, at=at)
        return update

    def save_update(
        self,
        update: ReputationUpdate,
        *,
        reason: str,
        source_ref: Optional[str],
        at: datetime,
    ) -> ReputationScore:
        """Write absolute factor values and append the event (same unit of work)."""
        self.ensure(update.after.user_id)
        row = self.lock(update.after.user_id)
        self._write(row, update, reason=reason, source_ref=source_ref, at=at)
        return row

    def _write(
        self,
        row: ReputationScore,
        update: ReputationUpdate,
        *,
        reason: str,
        source_ref: Optional[str],
        at: datetime,
    ) -> None:
        after = update.after
        for name in FACTORS:
            setattr(row, name, float(after.factors[name]))
        row.overall_score = after.overall_score
        row.trust_tier = after.trust_tier
        row.last_calculated = at

        self._add(
            ReputationEvent(
                user_id=after.user_id,
                reason=reason,
                source_ref=source_ref,
                deltas=dict(update.deltas),
                score_before=update.before.overall_score,
                score_after=after.overall_score,
                tier_before=update.before.trust_tier,
                tier_after=after.trust_tier,
                created_at=at,
            )
        )

    def events_for(self, user_id: str, *, limit: int = 50) -> Sequence[ReputationEvent]:
        stmt = (
            select(ReputationEvent)
            .where(ReputationEvent.user_id == user_id)
            .order_by(desc(ReputationEvent.created_at))
            .limit(limit)
        )
        return self._execute(stmt).scalars().all()
