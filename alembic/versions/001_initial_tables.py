"""Create initial tables

Revision ID: 001_initial_tables
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001_initial_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("username", sa.String(50), unique=True, nullable=False, index=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "push_subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("endpoint", sa.String(1000), nullable=False, unique=True),
        sa.Column("p256dh", sa.String(255), nullable=False),
        sa.Column("auth", sa.String(255), nullable=False),
        sa.Column("device_label", sa.String(100), nullable=False, server_default="Unknown Device"),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("failure_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_failure_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_push_subscriptions_user_id", "push_subscriptions", ["user_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False, server_default=""),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("priority", sa.String(16), nullable=False, server_default="normal"),
        sa.Column("action_url", sa.String(500), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_via_web_push", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sent_via_email", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_kind", "notifications", ["kind"])
    op.create_index("ix_notifications_is_read", "notifications", ["is_read"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])

    op.create_table(
        "notification_preferences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("enable_notifications", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("enable_web_push", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("enable_email", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("enable_whatsapp", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("bill_reminders", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("bill_reminder_days", sa.JSON(), nullable=False),
        sa.Column("budget_alerts", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("budget_threshold", sa.Integer(), nullable=False, server_default="80"),
        sa.Column("post_published", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("post_failed", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("project_deadlines", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("deadline_reminder_days", sa.JSON(), nullable=False),
        sa.Column("task_reminders", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("goal_progress", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("milestone_reminders", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("system_updates", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("security_alerts", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("quiet_hours_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("quiet_hours_start", sa.Time(), nullable=False, server_default="22:00:00"),
        sa.Column("quiet_hours_end", sa.Time(), nullable=False, server_default="07:00:00"),
        sa.Column("timezone", sa.String(50), nullable=False, server_default="Asia/Jakarta"),
        sa.Column("email_digest", sa.String(16), nullable=False, server_default="daily"),
        sa.Column("email_digest_time", sa.Time(), nullable=False, server_default="08:00:00"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("notification_preferences")
    op.drop_index("ix_notifications_created_at", "notifications")
    op.drop_index("ix_notifications_is_read", "notifications")
    op.drop_index("ix_notifications_kind", "notifications")
    op.drop_index("ix_notifications_user_id", "notifications")
    op.drop_table("notifications")
    op.drop_index("ix_push_subscriptions_user_id", "push_subscriptions")
    op.drop_table("push_subscriptions")
    op.drop_table("users")
