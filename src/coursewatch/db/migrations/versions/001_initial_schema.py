"""Initial schema: users, modules, classes, course offerings, activity logs, notifications.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(128), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("display_name", sa.String(200), nullable=True),
        sa.Column("role", sa.String(20), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "modules",
        sa.Column("module_id", sa.String(128), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("code", sa.String(50), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "classes",
        sa.Column("class_id", sa.String(128), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("start_date", sa.Date, nullable=True),
        sa.Column("end_date", sa.Date, nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "course_offerings",
        sa.Column("allocation_id", sa.String(128), primary_key=True),
        sa.Column("module_id", sa.String(128), sa.ForeignKey("modules.module_id"), nullable=False),
        sa.Column("class_id", sa.String(128), sa.ForeignKey("classes.class_id"), nullable=False),
        sa.Column("trimester", sa.String(5), nullable=False),
        sa.Column("intake", sa.String(5), nullable=False),
        sa.Column("facilitator_id", sa.String(128), sa.ForeignKey("users.user_id"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_course_offerings_facilitator_id", "course_offerings", ["facilitator_id"])

    op.create_table(
        "activity_logs",
        sa.Column("log_id", sa.String(128), primary_key=True),
        sa.Column(
            "allocation_id",
            sa.String(128),
            sa.ForeignKey("course_offerings.allocation_id"),
            nullable=False,
        ),
        sa.Column("week_number", sa.Integer, nullable=False),
        sa.Column("attendance", sa.JSON, nullable=True),
        sa.Column("formative_one_grading", sa.String(20), nullable=False),
        sa.Column("formative_two_grading", sa.String(20), nullable=False),
        sa.Column("summative_grading", sa.String(20), nullable=False),
        sa.Column("course_moderation", sa.String(20), nullable=False),
        sa.Column("intranet_sync", sa.String(20), nullable=False),
        sa.Column("grade_book_status", sa.String(20), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("allocation_id", "week_number", name="uq_activity_log_allocation_week"),
    )
    op.create_index("ix_activity_logs_allocation_id", "activity_logs", ["allocation_id"])

    op.create_table(
        "notifications",
        sa.Column("notification_id", sa.String(128), primary_key=True),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("recipient_id", sa.String(128), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column(
            "allocation_id",
            sa.String(128),
            sa.ForeignKey("course_offerings.allocation_id"),
            nullable=True,
        ),
        sa.Column("week_number", sa.Integer, nullable=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata", sa.JSON, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])
    op.create_index("ix_notifications_type", "notifications", ["type"])
    op.create_index("ix_notifications_status", "notifications", ["status"])
    op.create_index("ix_notifications_scheduled_for", "notifications", ["scheduled_for"])
    op.create_index("ix_notifications_allocation_week", "notifications", ["allocation_id", "week_number"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("activity_logs")
    op.drop_table("course_offerings")
    op.drop_table("classes")
    op.drop_table("modules")
    op.drop_table("users")
