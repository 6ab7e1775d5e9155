"""initial trust and moderation schema

Revision ID: 5c1e2a7d9b40
Revises:
Create Date: 2026-10-18 09:12:44.318201

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1e2a7d9b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_SCORE_COLUMNS = (
    "t1_source_score",
    "t2_method_score",
    "t3_proximity_score",
    "t4_temporal_score",
    "t5_validation_score",
)


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    """Create every table of the trust and moderation core."""
    op.create_table(
        "user_account",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("affiliation", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "content_item",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("content_type", sa.String(length=16), nullable=False),
        sa.Column("author_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("parent_id", sa.BigInteger(), nullable=True),
        sa.Column("deleted", sa.Boolean(), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["author_id"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "report",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("content_type", sa.String(length=16), nullable=False),
        sa.Column("content_id", sa.Integer(), nullable=True),
        sa.Column("reporter_id", sa.String(length=36), nullable=True),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("content_snapshot", sa.JSON(), nullable=False),
        sa.Column("moderation_data", sa.JSON(), nullable=True),
        sa.Column("action_taken", sa.String(length=32), nullable=True),
        sa.Column("reviewed_by", sa.String(length=36), nullable=True),
        _timestamp("reviewed_at", nullable=True),
        sa.Column("appeal_outcome", sa.String(length=16), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["reporter_id"], ["user_account.id"]),
        sa.ForeignKeyConstraint(["reviewed_by"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_report_status", "report", ["status"])
    op.create_index(
        "uq_report_pending_reporter_content",
        "report",
        ["reporter_id", "content_type", "content_id"],
        unique=True,
        sqlite_where=sa.text("status = 'pending'"),
        postgresql_where=sa.text("status = 'pending'"),
    )
    op.create_table(
        "appeal",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("report_id", sa.Integer(), nullable=False),
        sa.Column("appellant_id", sa.String(length=36), nullable=False),
        sa.Column("dispute_reason", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=24), nullable=False),
        sa.Column("admin_response", sa.Text(), nullable=True),
        sa.Column("resolved_by", sa.String(length=36), nullable=True),
        _timestamp("resolved_at", nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["report_id"], ["report.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["appellant_id"], ["user_account.id"]),
        sa.ForeignKeyConstraint(["resolved_by"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("report_id"),
    )
    op.create_table(
        "jury_deliberation",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("appeal_id", sa.Integer(), nullable=False),
        sa.Column("quorum", sa.Integer(), nullable=False),
        _timestamp("deadline"),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("votes_uphold", sa.Integer(), nullable=False),
        sa.Column("votes_overturn", sa.Integer(), nullable=False),
        sa.Column("outcome", sa.String(length=16), nullable=True),
        sa.Column("created_by", sa.String(length=36), nullable=False),
        _timestamp("created_at"),
        _timestamp("concluded_at", nullable=True),
        sa.CheckConstraint("quorum > 0", name="ck_jury_deliberation_quorum"),
        sa.ForeignKeyConstraint(["appeal_id"], ["appeal.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["created_by"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("appeal_id"),
    )
    op.create_table(
        "jury_assignment",
        sa.Column("deliberation_id", sa.Integer(), nullable=False),
        sa.Column("juror_id", sa.String(length=36), nullable=False),
        _timestamp("assigned_at"),
        sa.ForeignKeyConstraint(
            ["deliberation_id"],
            ["jury_deliberation.id"],
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(["juror_id"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("deliberation_id", "juror_id"),
    )
    op.create_table(
        "jury_vote",
        sa.Column("deliberation_id", sa.Integer(), nullable=False),
        sa.Column("juror_id", sa.String(length=36), nullable=False),
        sa.Column("verdict", sa.String(length=16), nullable=False),
        sa.Column("reasoning", sa.Text(), nullable=False),
        _timestamp("created_at"),
        sa.CheckConstraint("verdict IN ('uphold', 'overturn')", name="ck_jury_vote_verdict"),
        sa.ForeignKeyConstraint(
            ["deliberation_id"],
            ["jury_deliberation.id"],
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(["juror_id"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("deliberation_id", "juror_id"),
    )
    op.create_table(
        "trust_profile",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("content_id", sa.Integer(), nullable=False),
        sa.Column("content_type", sa.String(length=16), nullable=False),
        sa.Column("t1_source_score", sa.SmallInteger(), nullable=False),
        sa.Column("t1_author_known", sa.Boolean(), nullable=False),
        sa.Column("t1_institution", sa.Text(), nullable=True),
        sa.Column("t2_method_score", sa.SmallInteger(), nullable=False),
        sa.Column("t2_method_described", sa.Boolean(), nullable=False),
        sa.Column("t2_reproducible", sa.Boolean(), nullable=False),
        sa.Column("t2_data_available", sa.Boolean(), nullable=False),
        sa.Column("t3_proximity_score", sa.SmallInteger(), nullable=False),
        sa.Column("t3_proximity_type", sa.String(length=16), nullable=False),
        sa.Column("t3_firsthand", sa.Boolean(), nullable=False),
        sa.Column("t4_temporal_score", sa.SmallInteger(), nullable=False),
        sa.Column("t4_conflict_phase", sa.String(length=32), nullable=True),
        _timestamp("t4_data_timestamp", nullable=True),
        sa.Column("t4_is_time_sensitive", sa.Boolean(), nullable=False),
        sa.Column("t5_validation_score", sa.SmallInteger(), nullable=False),
        sa.Column("t5_corroborating_count", sa.Integer(), nullable=False),
        sa.Column("t5_contradicting_count", sa.Integer(), nullable=False),
        sa.Column("trust_summary", sa.Text(), nullable=True),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("content_id", "content_type", name="uq_trust_profile_content"),
        *(
            sa.CheckConstraint(f"{column} BETWEEN 0 AND 100", name=f"ck_trust_profile_{column}")
            for column in _SCORE_COLUMNS
        ),
    )
    op.create_table(
        "conflict_record",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("conflict_type", sa.String(length=16), nullable=False),
        sa.Column("conflict_detail", sa.Text(), nullable=True),
        sa.Column("external_source_id", sa.String(length=64), nullable=False),
        sa.Column("external_claim", sa.JSON(), nullable=False),
        _timestamp("external_timestamp", nullable=True),
        sa.Column("external_source_trust", sa.Integer(), nullable=True),
        sa.Column("field_content_id", sa.Integer(), nullable=True),
        sa.Column("field_content_type", sa.String(length=16), nullable=True),
        sa.Column("field_claim", sa.JSON(), nullable=False),
        _timestamp("field_timestamp", nullable=True),
        sa.Column("field_source_trust", sa.Integer(), nullable=True),
        sa.Column("resolution", sa.String(length=16), nullable=False),
        sa.Column("suggested_action", sa.Text(), nullable=True),
        sa.Column("action_taken", sa.Boolean(), nullable=False),
        sa.Column("location_name", sa.Text(), nullable=True),
        sa.Column("adjudicated_resolution", sa.String(length=16), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        sa.Column("resolved_by", sa.String(length=36), nullable=True),
        _timestamp("resolved_at", nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["resolved_by"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "audit_event",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("category", sa.String(length=16), nullable=False),
        sa.Column("actor_id", sa.String(length=36), nullable=True),
        sa.Column("source_ip", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_event_category", "audit_event", ["category"])
    op.create_index("ix_audit_event_actor_id", "audit_event", ["actor_id"])
    op.create_table(
        "notification",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.Text(), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["user_id"], ["user_account.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    """Drop every table created by :func:`upgrade`."""
    op.drop_table("notification")
    op.drop_index("ix_audit_event_actor_id", table_name="audit_event")
    op.drop_index("ix_audit_event_category", table_name="audit_event")
    op.drop_table("audit_event")
    op.drop_table("conflict_record")
    op.drop_table("trust_profile")
    op.drop_table("jury_vote")
    op.drop_table("jury_assignment")
    op.drop_table("jury_deliberation")
    op.drop_table("appeal")
    op.drop_index("uq_report_pending_reporter_content", table_name="report")
    op.drop_index("ix_report_status", table_name="report")
    op.drop_table("report")
    op.drop_table("content_item")
    op.drop_table("user_account")
