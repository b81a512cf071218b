"""create intent scoring tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from intent_engine.core.constants import (
    BAND_CHECK_CLAUSE,
    EVENT_TYPE_CHECK_CLAUSE,
    STAGE_CHECK_CLAUSE,
)

# revision identifiers, used by Alembic.
revision: str = "a1b2c3d4e5f6"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk(name: str = "id") -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _ts(name: str, nullable: bool = True, default: bool = True) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=sa.text("now()") if default else None,
    )


def upgrade() -> None:
    op.create_table(
        "intent_events",
        _uuid_pk(),
        sa.Column("lead_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("anonymous_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("identity_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("event_source", sa.String(50), nullable=False, server_default="website"),
        sa.Column("event_value", sa.Integer(), nullable=True),
        _ts("occurred_at", nullable=False),
        sa.Column(
            "metadata",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("dedupe_key", sa.String(255), nullable=True),
        _ts("created_at"),
        sa.CheckConstraint(
            "lead_id IS NOT NULL OR anonymous_id IS NOT NULL",
            name="ck_intent_event_subject",
        ),
        sa.CheckConstraint(EVENT_TYPE_CHECK_CLAUSE, name="ck_intent_event_type"),
    )
    op.create_index(
        "uq_intent_events_source_dedupe",
        "intent_events",
        ["event_source", "dedupe_key"],
        unique=True,
        postgresql_where=sa.text("dedupe_key IS NOT NULL"),
    )
    op.create_index(
        "idx_intent_events_lead_occurred", "intent_events", ["lead_id", "occurred_at"]
    )
    op.create_index(
        "idx_intent_events_anon_occurred",
        "intent_events",
        ["anonymous_id", "occurred_at"],
    )

    op.create_table(
        "intent_scores",
        _uuid_pk(),
        sa.Column(
            "intent_event_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("intent_events.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("score", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "confidence", sa.Numeric(4, 3), nullable=False, server_default=sa.text("0")
        ),
        sa.Column(
            "reasons",
            postgresql.ARRAY(sa.String()),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
        sa.Column("model_version", sa.String(50), nullable=False),
        _ts("scored_at"),
        sa.CheckConstraint("score >= 0", name="ck_intent_score_non_negative"),
        sa.CheckConstraint(
            "confidence BETWEEN 0 AND 1", name="ck_intent_score_confidence_range"
        ),
    )

    op.create_table(
        "intent_rules",
        _uuid_pk(),
        sa.Column("rule_key", sa.String(100), nullable=False, unique=True),
        sa.Column("rule_type", sa.String(20), nullable=False),
        sa.Column("event_type", sa.String(50), nullable=True),
        sa.Column("modifier_condition", postgresql.JSONB(), nullable=True),
        sa.Column("points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")
        ),
        sa.Column("description", sa.String(500), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint(
            "rule_type IN ('base_score', 'modifier')", name="ck_intent_rule_type"
        ),
        sa.CheckConstraint("points >= 0", name="ck_intent_rule_points"),
    )

    op.create_table(
        "lead_intent_rollups",
        _uuid_pk(),
        sa.Column("subject_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("subject_type", sa.String(20), nullable=False, server_default="lead"),
        sa.Column("score_7d", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("score_30d", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _ts("last_event_at", default=False),
        sa.Column("last_band_emitted", sa.String(20), nullable=True),
        _ts("updated_at"),
        sa.UniqueConstraint("subject_id", name="uq_lead_intent_rollups_subject"),
        sa.CheckConstraint(
            "subject_type IN ('lead', 'anonymous')", name="ck_rollup_subject_type"
        ),
        sa.CheckConstraint(
            "last_band_emitted IS NULL OR last_band_emitted IN "
            "('cold', 'warm', 'hot', 'critical')",
            name="ck_rollup_last_band",
        ),
    )

    op.create_table(
        "intent_signals",
        _uuid_pk(),
        sa.Column("subject_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("band", sa.String(20), nullable=False),
        sa.Column("score_7d", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("score_30d", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_event_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("last_event_type", sa.String(50), nullable=True),
        sa.Column("last_event_source", sa.String(50), nullable=True),
        _ts("last_event_at", default=False),
        _ts("emitted_at", nullable=False),
        sa.Column(
            "payload",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.CheckConstraint(BAND_CHECK_CLAUSE, name="ck_intent_signal_band"),
    )
    op.create_index(
        "idx_intent_signals_subject_emitted",
        "intent_signals",
        ["subject_id", "emitted_at"],
    )

    op.create_table(
        "intent_subject_scores",
        _uuid_pk(),
        sa.Column("subject_type", sa.String(20), nullable=False),
        sa.Column("subject_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "total_score", sa.Integer(), nullable=False, server_default=sa.text("0")
        ),
        _ts("last_event_at", default=False),
        sa.Column("last_threshold_emitted", sa.String(20), nullable=True),
        sa.Column(
            "metadata",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        _ts("updated_at"),
        sa.UniqueConstraint(
            "subject_type", "subject_id", name="uq_intent_subject_scores_subject"
        ),
        sa.CheckConstraint(
            "subject_type IN ('anonymous', 'identity')", name="ck_intent_subject_type"
        ),
    )

    op.create_table(
        "identities",
        _uuid_pk("identity_id"),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("source", sa.String(50), nullable=True),
        _ts("first_identified_at"),
        _ts("last_seen_at"),
        sa.Column(
            "metadata",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
    )

    op.create_table(
        "tracking_sessions",
        sa.Column("session_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("anonymous_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "identity_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("identities.identity_id", ondelete="SET NULL"),
            nullable=True,
        ),
        _ts("first_seen_at"),
        _ts("last_seen_at"),
    )
    op.create_index(
        "idx_tracking_sessions_anon_seen",
        "tracking_sessions",
        ["anonymous_id", "last_seen_at"],
    )

    op.create_table(
        "marketing_leads",
        _uuid_pk(),
        sa.Column("company_name", sa.String(200), nullable=True),
        sa.Column("contact_name", sa.String(200), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("source_type", sa.String(50), nullable=True),
        sa.Column("marketing_stage", sa.String(5), nullable=False, server_default="M1"),
        sa.Column(
            "intent_score", sa.Integer(), nullable=False, server_default=sa.text("0")
        ),
        _ts("last_signal_at", default=False),
        sa.Column(
            "auto_push_enabled",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
        ),
        sa.Column("sales_customer_id", postgresql.UUID(as_uuid=True), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint(STAGE_CHECK_CLAUSE, name="ck_marketing_lead_stage"),
        sa.CheckConstraint("intent_score >= 0", name="ck_marketing_lead_score"),
    )
    op.create_index("idx_marketing_leads_email", "marketing_leads", ["email"])

    op.create_table(
        "stage_scoring_rules",
        _uuid_pk(),
        sa.Column("rule_name", sa.String(100), nullable=False),
        sa.Column("event_type", sa.String(50), nullable=False, unique=True),
        sa.Column("points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "is_hard_intent",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("stage_hint", sa.String(5), nullable=True),
        sa.Column(
            "is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")
        ),
        _ts("created_at"),
        sa.CheckConstraint("points >= 0", name="ck_stage_rule_points"),
        sa.CheckConstraint(
            "stage_hint IS NULL OR stage_hint IN ('M1', 'M2', 'M3', 'M4', 'M5')",
            name="ck_stage_rule_hint",
        ),
    )

    op.create_table(
        "qualification_config",
        sa.Column("id", sa.Integer(), primary_key=True, server_default=sa.text("1")),
        sa.Column("m1_min", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("m2_min", sa.Integer(), nullable=False, server_default=sa.text("6")),
        sa.Column("m3_min", sa.Integer(), nullable=False, server_default=sa.text("16")),
        sa.Column("m4_min", sa.Integer(), nullable=False, server_default=sa.text("31")),
        sa.Column("m5_min", sa.Integer(), nullable=False, server_default=sa.text("46")),
        sa.Column(
            "auto_push_threshold",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("31"),
        ),
        sa.Column(
            "decay_points_per_week",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("1"),
        ),
        _ts("updated_at"),
        sa.CheckConstraint("id = 1", name="ck_qualification_config_singleton"),
        sa.CheckConstraint(
            "m1_min <= m2_min AND m2_min <= m3_min AND m3_min <= m4_min "
            "AND m4_min <= m5_min",
            name="ck_qualification_config_ascending",
        ),
    )

    op.create_table(
        "sales_customers",
        _uuid_pk(),
        sa.Column("marketing_lead_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("company_name", sa.String(200), nullable=True),
        sa.Column("contact_name", sa.String(200), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column(
            "source", sa.String(50), nullable=False, server_default="marketing_auto_push"
        ),
        _ts("created_at"),
    )

    op.create_table(
        "sales_tasks",
        _uuid_pk(),
        sa.Column(
            "customer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("sales_customers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        _ts("due_at", nullable=False, default=False),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint(
            "priority IN ('high', 'medium', 'low')", name="ck_sales_task_priority"
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'completed', 'overdue')", name="ck_sales_task_status"
        ),
    )


def downgrade() -> None:
    op.drop_table("sales_tasks")
    op.drop_table("sales_customers")
    op.drop_table("qualification_config")
    op.drop_table("stage_scoring_rules")
    op.drop_index("idx_marketing_leads_email", table_name="marketing_leads")
    op.drop_table("marketing_leads")
    op.drop_index("idx_tracking_sessions_anon_seen", table_name="tracking_sessions")
    op.drop_table("tracking_sessions")
    op.drop_table("identities")
    op.drop_table("intent_subject_scores")
    op.drop_index("idx_intent_signals_subject_emitted", table_name="intent_signals")
    op.drop_table("intent_signals")
    op.drop_table("lead_intent_rollups")
    op.drop_table("intent_rules")
    op.drop_table("intent_scores")
    op.drop_index("idx_intent_events_anon_occurred", table_name="intent_events")
    op.drop_index("idx_intent_events_lead_occurred", table_name="intent_events")
    op.drop_index("uq_intent_events_source_dedupe", table_name="intent_events")
    op.drop_table("intent_events")
