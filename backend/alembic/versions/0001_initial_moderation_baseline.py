"""Initial baseline for the content moderation store."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql


# Revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")

# Enums are stored as their lowercase values in VARCHAR(16) columns (non-native).
ENUM_STR = sa.String(length=16)

_ACTIVE_QUEUE_WHERE = sa.text("status IN ('pending', 'reviewing')")
_OPEN_REPORT_WHERE = sa.text("status IN ('pending', 'reviewing')")


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False)


def upgrade() -> None:
    # -------------------------------------------------------------------------
    # Submissions and automated results (append-only).
    # -------------------------------------------------------------------------
    op.create_table(
        "content_submissions",
        sa.Column("content_id", sa.String(length=128), nullable=False),
        sa.Column("content_type", ENUM_STR, nullable=False),
        sa.Column("author_id", sa.String(length=128), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("content_id", name="pk_content_submissions"),
    )
    op.create_index("ix_content_submissions_author_id", "content_submissions", ["author_id"])

    op.create_table(
        "moderation_results",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("content_id", sa.String(length=128), nullable=False),
        sa.Column("author_id", sa.String(length=128), nullable=False),
        sa.Column("author_tier", sa.String(length=16), nullable=False),
        sa.Column("author_score", sa.Float(), nullable=False),
        sa.Column("spam_score", sa.Float(), nullable=False),
        sa.Column("toxicity_score", sa.Float(), nullable=False),
        sa.Column("quality_score", sa.Float(), nullable=False),
        sa.Column("cultural_adjustment", sa.Float(), nullable=False),
        sa.Column("raw_spam_score", sa.Float(), nullable=False),
        sa.Column("raw_toxicity_score", sa.Float(), nullable=False),
        sa.Column("flags", JSON_TYPE, nullable=False),
        sa.Column("should_flag", sa.Boolean(), nullable=False),
        sa.Column("severity", ENUM_STR, nullable=False),
        sa.Column("action", ENUM_STR, nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("rule_ids_triggered", JSON_TYPE, nullable=False),
        sa.Column("winning_rule_id", sa.String(length=64), nullable=True),
        sa.Column("reasons", JSON_TYPE, nullable=False),
        sa.Column("side_effects", JSON_TYPE, nullable=False),
        sa.Column("degraded", sa.Boolean(), nullable=False),
        sa.Column("processing_ms", sa.Integer(), nullable=False),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "spam_score >= 0 AND spam_score <= 1 AND toxicity_score >= 0 AND toxicity_score <= 1 "
            "AND quality_score >= 0 AND quality_score <= 1",
            name="ck_moderation_results_score_range",
        ),
        sa.CheckConstraint("confidence >= 0 AND confidence <= 1", name="ck_moderation_results_confidence_range"),
        sa.ForeignKeyConstraint(
            ["content_id"],
            ["content_submissions.content_id"],
            name="fk_moderation_results_content_id",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_moderation_results"),
    )
    op.create_index("ix_moderation_results_content_id", "moderation_results", ["content_id"])
    op.create_index("ix_moderation_results_author_id", "moderation_results", ["author_id"])
    op.create_index("ix_moderation_results_computed_at", "moderation_results", ["computed_at"])

    # -------------------------------------------------------------------------
    # Review queue.
    # -------------------------------------------------------------------------
    op.create_table(
        "moderation_queue_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("content_id", sa.String(length=128), nullable=False),
        sa.Column("content_type", ENUM_STR, nullable=False),
        sa.Column("author_id", sa.String(length=128), nullable=True),
        sa.Column("result_id", sa.Uuid(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("severity", ENUM_STR, nullable=False),
        sa.Column("status", ENUM_STR, nullable=False),
        sa.Column("auto_flagged", sa.Boolean(), nullable=False),
        sa.Column("flag_score", sa.Float(), nullable=False),
        sa.Column("reported_by", sa.String(length=128), nullable=True),
        sa.Column("assigned_moderator", sa.String(length=128), nullable=True),
        sa.Column("moderator_notes", sa.Text(), nullable=True),
        sa.Column("action_taken", ENUM_STR, nullable=True),
        sa.Column("threshold_adjusted", sa.Boolean(), nullable=False),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.CheckConstraint("flag_score >= 0 AND flag_score <= 1", name="ck_queue_items_flag_score_range"),
        sa.ForeignKeyConstraint(
            ["result_id"],
            ["moderation_results.id"],
            name="fk_queue_items_result_id",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_moderation_queue_items"),
    )
    op.create_index("ix_moderation_queue_items_content_id", "moderation_queue_items", ["content_id"])
    op.create_index("ix_moderation_queue_items_author_id", "moderation_queue_items", ["author_id"])
    op.create_index("ix_queue_items_status_created", "moderation_queue_items", ["status", "created_at"])
    op.create_index(
        "uq_queue_items_active_content",
        "moderation_queue_items",
        ["content_id"],
        unique=True,
        postgresql_where=_ACTIVE_QUEUE_WHERE,
        sqlite_where=_ACTIVE_QUEUE_WHERE,
    )

    op.create_table(
        "moderation_actions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("queue_item_id", sa.Uuid(), nullable=True),
        sa.Column("content_id", sa.String(length=128), nullable=False),
        sa.Column("moderator_id", sa.String(length=128), nullable=False),
        sa.Column("action_type", ENUM_STR, nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("is_automated", sa.Boolean(), nullable=False),
        sa.Column("is_community_override", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.ForeignKeyConstraint(
            ["queue_item_id"],
            ["moderation_queue_items.id"],
            name="fk_moderation_actions_queue_item_id",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_moderation_actions"),
    )
    op.create_index("ix_moderation_actions_queue_item_id", "moderation_actions", ["queue_item_id"])
    op.create_index("ix_moderation_actions_content_id", "moderation_actions", ["content_id"])
    op.create_index("ix_moderation_actions_created_at", "moderation_actions", ["created_at"])

    # -------------------------------------------------------------------------
    # User reports.
    # -------------------------------------------------------------------------
    op.create_table(
        "content_reports",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("content_id", sa.String(length=128), nullable=False),
        sa.Column("content_type", ENUM_STR, nullable=False),
        sa.Column("reporter_id", sa.String(length=128), nullable=False),
        sa.Column("category", ENUM_STR, nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("evidence_urls", JSON_TYPE, nullable=False),
        sa.Column("priority", ENUM_STR, nullable=False),
        sa.Column("status", ENUM_STR, nullable=False),
        sa.Column("queue_item_id", sa.Uuid(), nullable=True),
        sa.Column("resolution", ENUM_STR, nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["queue_item_id"],
            ["moderation_queue_items.id"],
            name="fk_content_reports_queue_item_id",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_content_reports"),
    )
    op.create_index("ix_content_reports_content_id", "content_reports", ["content_id"])
    op.create_index("ix_content_reports_reporter_id", "content_reports", ["reporter_id"])
    op.create_index("ix_content_reports_queue_item_id", "content_reports", ["queue_item_id"])
    op.create_index(
        "uq_content_reports_open_per_reporter",
        "content_reports",
        ["reporter_id", "content_id"],
        unique=True,
        postgresql_where=_OPEN_REPORT_WHERE,
        sqlite_where=_OPEN_REPORT_WHERE,
    )

    # -------------------------------------------------------------------------
    # Reputation.
    # -------------------------------------------------------------------------
    op.create_table(
        "reputation_scores",
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("content_quality", sa.Float(), nullable=False),
        sa.Column("community_helpfulness", sa.Float(), nullable=False),
        sa.Column("consistent_activity", sa.Float(), nullable=False),
        sa.Column("moderation_history", sa.Float(), nullable=False),
        sa.Column("expertise", sa.Float(), nullable=False),
        sa.Column("community_trust", sa.Float(), nullable=False),
        sa.Column("account_maturity", sa.Float(), nullable=False),
        sa.Column("behavior_pattern", sa.Float(), nullable=False),
        sa.Column("overall_score", sa.Float(), nullable=False),
        sa.Column("trust_tier", sa.String(length=16), nullable=False),
        sa.Column("last_calculated", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
        sa.CheckConstraint("overall_score >= 0 AND overall_score <= 1000", name="ck_reputation_scores_overall_range"),
        sa.PrimaryKeyConstraint("user_id", name="pk_reputation_scores"),
    )
    op.create_index("ix_reputation_scores_trust_tier", "reputation_scores", ["trust_tier"])

    op.create_table(
        "reputation_events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("reason", sa.String(length=64), nullable=False),
        sa.Column("source_ref", sa.String(length=128), nullable=True),
        sa.Column("deltas", JSON_TYPE, nullable=False),
        sa.Column("score_before", sa.Float(), nullable=False),
        sa.Column("score_after", sa.Float(), nullable=False),
        sa.Column("tier_before", sa.String(length=16), nullable=False),
        sa.Column("tier_after", sa.String(length=16), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_reputation_events"),
    )
    op.create_index("ix_reputation_events_user_id", "reputation_events", ["user_id"])
    op.create_index("ix_reputation_events_user_created", "reputation_events", ["user_id", "created_at"])

    # -------------------------------------------------------------------------
    # Rules and community feedback.
    # -------------------------------------------------------------------------
    op.create_table(
        "moderation_rules",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("conditions", JSON_TYPE, nullable=False),
        sa.Column("actions", JSON_TYPE, nullable=False),
        sa.Column("activation_threshold", sa.Float(), nullable=False),
        sa.Column("min_threshold", sa.Float(), nullable=False),
        sa.Column("max_threshold", sa.Float(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("times_triggered", sa.Integer(), nullable=False),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "min_threshold >= 0 AND max_threshold <= 1 AND min_threshold <= max_threshold",
            name="ck_moderation_rules_threshold_bounds",
        ),
        sa.CheckConstraint(
            "activation_threshold >= min_threshold AND activation_threshold <= max_threshold",
            name="ck_moderation_rules_activation_in_bounds",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_moderation_rules"),
    )

    op.create_table(
        "feedback_votes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("queue_item_id", sa.Uuid(), nullable=False),
        sa.Column("voter_id", sa.String(length=128), nullable=False),
        sa.Column("voter_tier", sa.String(length=16), nullable=False),
        sa.Column("voter_weight", sa.Float(), nullable=False),
        sa.Column("was_accurate", sa.Boolean(), nullable=False),
        sa.Column("severity_rating", ENUM_STR, nullable=False),
        sa.Column("reputation_applied", sa.Boolean(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["queue_item_id"],
            ["moderation_queue_items.id"],
            name="fk_feedback_votes_queue_item_id",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_feedback_votes"),
        sa.UniqueConstraint("queue_item_id", "voter_id", name="uq_feedback_votes_item_voter"),
    )
    op.create_index("ix_feedback_votes_queue_item_id", "feedback_votes", ["queue_item_id"])
    op.create_index("ix_feedback_votes_submitted_at", "feedback_votes", ["submitted_at"])


def downgrade() -> None:
    op.drop_table("feedback_votes")
    op.drop_table("moderation_rules")
    op.drop_table("reputation_events")
    op.drop_table("reputation_scores")
    op.drop_table("content_reports")
    op.drop_table("moderation_actions")
    op.drop_table("moderation_queue_items")
    op.drop_table("moderation_results")
    op.drop_table("content_submissions")
