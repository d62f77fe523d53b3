"""Append-only enforcement for audit tables.

Audit rows (submissions, automated results, moderator actions, reputation
deltas) are written once. Corrections append a new row.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import event, inspect


class ImmutableRecordError(RuntimeError):
    """Raised when an append-only row is updated or deleted."""


def register_append_only(model: type, *, mutable: Iterable[str] = ()) -> None:
    allowed = frozenset(mutable)
    name = model.__name__

    @event.listens_for(model, "before_update", propagate=True)
    def _prevent_update(mapper, connection, target) -> None:
        state = inspect(target)
        if not state.persistent:
            return
        for attr in state.mapper.column_attrs:
            if attr.key in allowed:
                continue
            if state.attrs[attr.key].history.has_changes():
                raise ImmutableRecordError(
                    f"{name} is append-only: field '{attr.key}' cannot be updated."
                )

    @event.listens_for(model, "before_delete", propagate=True)
    def _prevent_delete(mapper, connection, target) -> None:
        raise ImmutableRecordError(f"{name} deletion is forbidden; audit rows must remain intact.")
