"""Initial schema — users, sessions, history, achievements, messaging, reviews, audit.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from __future__ import annotations

from typing import Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, tuple[str, ...], None] = None
depends_on: Union[str, tuple[str, ...], None] = None


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    # ── Standalone tables (no FKs) ─────────────────────────────────────

    op.create_table(
        "users",
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sessions_hosted", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sessions_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sessions_requested", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_hours_taught", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_hours_learned", sa.Float(), nullable=False, server_default="0"),
        sa.Column("reviews_written", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default="0", comment="Reviews received"),
        sa.Column("rating_total", sa.Integer(), nullable=False, server_default="0", comment="Sum of received ratings"),
        sa.Column("five_star_reviews", sa.Integer(), nullable=False, server_default="0"),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_is_active", "users", ["is_active"])

    op.create_table(
        "audit_log",
        sa.Column("actor_id", sa.String(100), comment="User ID or 'system'"),
        sa.Column("actor_role", sa.String(50), comment="tutor, student, admin, system"),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("category", sa.String(30), nullable=False),
        sa.Column("description", sa.String(1000)),
        sa.Column("target_type", sa.String(30), comment="Session, Review, User, ..."),
        sa.Column("target_id", postgresql.UUID(as_uuid=True)),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text())),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_log_action", "audit_log", ["action"])
    op.create_index("ix_audit_log_category", "audit_log", ["category"])
    op.create_index("ix_audit_log_target_id", "audit_log", ["target_id"])
    op.create_index("ix_audit_log_category_created", "audit_log", ["category", "created_at"])

    # ── Tables with FK to users ────────────────────────────────────────

    op.create_table(
        "sessions",
        sa.Column("tutor_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.String(1000)),
        sa.Column("skill_name", sa.String(100), nullable=False),
        sa.Column("skill_category", sa.String(30), nullable=False),
        sa.Column("scheduled_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False, comment="Minutes"),
        sa.Column("timezone", sa.String(64), nullable=False),
        sa.Column("format", sa.String(20), nullable=False),
        sa.Column("location", sa.String(200)),
        sa.Column("meeting_link", sa.String(500)),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("request_message", sa.Text()),
        sa.Column("requested_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_by", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id")),
        sa.Column("cancellation_reason", sa.Text()),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("tutor_notes", sa.String(2000)),
        sa.Column("student_notes", sa.String(2000)),
        sa.Column("actual_start_time", sa.DateTime(timezone=True)),
        sa.Column("actual_end_time", sa.DateTime(timezone=True)),
        sa.Column("points_awarded_tutor", sa.Integer()),
        sa.Column("points_awarded_student", sa.Integer()),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("tutor_id <> student_id", name="ck_sessions_distinct_participants"),
        sa.CheckConstraint("duration BETWEEN 15 AND 180", name="ck_sessions_duration_range"),
    )
    op.create_index("ix_sessions_tutor_id", "sessions", ["tutor_id"])
    op.create_index("ix_sessions_student_id", "sessions", ["student_id"])
    op.create_index("ix_sessions_scheduled_date", "sessions", ["scheduled_date"])
    op.create_index("ix_sessions_status", "sessions", ["status"])
    op.create_index("ix_sessions_tutor_scheduled", "sessions", ["tutor_id", "scheduled_date"])
    op.create_index("ix_sessions_student_scheduled", "sessions", ["student_id", "scheduled_date"])
    op.create_index("ix_sessions_status_scheduled", "sessions", ["status", "scheduled_date"])

    op.create_table(
        "user_achievements",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("achievement_id", sa.String(50), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("granted_at", sa.DateTime(timezone=True), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "achievement_id", name="uq_user_achievements_user_achievement"),
    )
    op.create_index("ix_user_achievements_user_id", "user_achievements", ["user_id"])

    # ── Tables with FK to sessions ─────────────────────────────────────

    op.create_table(
        "session_status_changes",
        sa.Column("session_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("sessions.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("changed_by", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id")),
        sa.Column("reason", sa.Text()),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_session_status_changes_session_id", "session_status_changes", ["session_id"])

    op.create_table(
        "reviews",
        sa.Column("session_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("sessions.id"), nullable=False),
        sa.Column("reviewer_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("reviewee_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.String(2000), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id", "reviewer_id", name="uq_reviews_session_reviewer"),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),
    )
    op.create_index("ix_reviews_session_id", "reviews", ["session_id"])
    op.create_index("ix_reviews_reviewer_id", "reviews", ["reviewer_id"])
    op.create_index("ix_reviews_reviewee_id", "reviews", ["reviewee_id"])

    op.create_table(
        "conversations",
        sa.Column("participant_key", sa.String(200), nullable=False),
        sa.Column("related_session_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("sessions.id")),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("last_message_preview", sa.String(100)),
        sa.Column("last_message_sender_id", postgresql.UUID(as_uuid=True)),
        sa.Column("last_message_at", sa.DateTime(timezone=True)),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("participant_key"),
    )
    op.create_index("ix_conversations_last_message_at", "conversations", ["last_message_at"])

    # ── Tables with FK to conversations ────────────────────────────────

    op.create_table(
        "conversation_participants",
        sa.Column("conversation_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("conversations.id"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("unread_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("muted", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("conversation_id", "user_id", name="uq_conversation_participants_member"),
    )
    op.create_index("ix_conversation_participants_conversation_id", "conversation_participants", ["conversation_id"])
    op.create_index("ix_conversation_participants_user_id", "conversation_participants", ["user_id"])

    op.create_table(
        "messages",
        sa.Column("conversation_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("conversations.id"), nullable=False),
        sa.Column("sender_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), comment="NULL for system messages"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("message_type", sa.String(30), nullable=False),
        sa.Column("related_session_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("sessions.id")),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_messages_conversation_id", "messages", ["conversation_id"])
    op.create_index("ix_messages_conversation_created", "messages", ["conversation_id", "created_at"])


def downgrade() -> None:
    # Drop in reverse dependency order
    op.drop_table("messages")
    op.drop_table("conversation_participants")
    op.drop_table("conversations")
    op.drop_table("reviews")
    op.drop_table("session_status_changes")
    op.drop_table("user_achievements")
    op.drop_table("sessions")
    op.drop_table("audit_log")
    op.drop_table("users")
