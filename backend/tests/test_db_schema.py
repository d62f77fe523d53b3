from __future__ import annotations

import importlib.util
from pathlib import Path

from sqlalchemy import inspect

from moderation.core.base import Base


MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "alembic" / "versions"

EXPECTED_TABLES = {
    "content_submissions",
    "moderation_results",
    "moderation_queue_items",
    "moderation_actions",
    "content_reports",
    "reputation_scores",
    "reputation_events",
    "moderation_rules",
    "feedback_votes",
}


class _RecordingOp:
    """Captures the DDL a migration would emit."""

    def __init__(self) -> None:
        self.tables: dict[str, set[str]] = {}
        self.indexes: dict[str, dict] = {}

    def create_table(self, name, *elements, **kw):
        self.tables[name] = {e.name for e in elements if hasattr(e, "type")}

    def create_index(self, name, table, columns, **kw):
        self.indexes[name] = {"table": table, "columns": list(columns), **kw}

    def __getattr__(self, name):
        return lambda *a, **kw: None


def _run_baseline() -> _RecordingOp:
    path = next(MIGRATIONS_DIR.glob("0001_*.py"))
    spec = importlib.util.spec_from_file_location("baseline_migration", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    recorder = _RecordingOp()
    module.op = recorder
    module.upgrade()
    return recorder


def test_expected_tables_exist(engine):
    tables = set(inspect(engine).get_table_names())
    assert EXPECTED_TABLES.issubset(tables)


def test_active_queue_item_index_is_partial_and_unique():
    table = Base.metadata.tables["moderation_queue_items"]
    active = [
        ix
        for ix in table.indexes
        if ix.unique and [c.name for c in ix.columns] == ["content_id"]
        and ix.dialect_options["postgresql"]["where"] is not None
    ]
    assert active, "No partial unique index on moderation_queue_items.content_id"


def test_check_constraints_exist():
    def has(table: str, needle: str) -> bool:
        t = Base.metadata.tables[table]
        return any(needle in str(getattr(c, "sqltext", "")) for c in t.constraints)

    assert has("moderation_results", "spam_score")
    assert has("moderation_results", "confidence")
    assert has("reputation_scores", "overall_score")


def test_baseline_migration_matches_models():
    recorded = _run_baseline()

    assert set(recorded.tables) == set(Base.metadata.tables)
    for name, table in Base.metadata.tables.items():
        assert recorded.tables[name] == {c.name for c in table.columns}, f"column drift in {name}"


def test_baseline_migration_declares_partial_unique_indexes():
    recorded = _run_baseline()
    partial = [ix for ix in recorded.indexes.values() if ix.get("unique") and ix.get("postgresql_where") is not None]
    assert {ix["table"] for ix in partial} >= {"moderation_queue_items", "content_reports"}
