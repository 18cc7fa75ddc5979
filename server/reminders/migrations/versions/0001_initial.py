from __future__ import annotations
"""server/reminders/migrations/versions/0001_initial.py
~~~~~~~~~~~~~~~~~~~~~~~~
Schéma initial : file d'envoi, journal d'idempotence, échéances par cours.
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "reminder_queue",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("course_id", sa.Integer(), nullable=False),
        sa.Column("level", sa.SmallInteger(), nullable=False),
        sa.Column("recipient_type", sa.String(32), nullable=False),
        sa.Column("recipient_address", sa.String(255), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("modified_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("sent_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("rendered_subject", sa.Text(), nullable=True),
        sa.Column("rendered_body", sa.Text(), nullable=True),
        sa.Column("error_message", sa.String(255), nullable=True),
        sa.CheckConstraint("level BETWEEN 1 AND 4", name="ck_reminder_queue_level"),
    )
    op.create_index("ix_reminder_queue_user_id", "reminder_queue", ["user_id"])
    op.create_index("ix_reminder_queue_status_created", "reminder_queue", ["status", "created_at"])
    op.create_index(
        "ix_reminder_queue_sibling_key",
        "reminder_queue",
        ["recipient_address", "recipient_type", "course_id", "level"],
    )

    op.create_table(
        "reminder_sent_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("course_id", sa.Integer(), nullable=False),
        sa.Column("level", sa.SmallInteger(), nullable=False),
        sa.Column("enrolled_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("deadline_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("sent_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.UniqueConstraint("user_id", "course_id", "level", name="uq_reminder_sent_log_triple"),
    )

    op.create_table(
        "course_deadline_config",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("course_id", sa.Integer(), nullable=False, unique=True),
        sa.Column("deadline_days", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("modified_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.CheckConstraint("deadline_days >= 1", name="ck_course_deadline_days_positive"),
    )


def downgrade() -> None:
    op.drop_table("course_deadline_config")
    op.drop_table("reminder_sent_log")
    op.drop_index("ix_reminder_queue_sibling_key", table_name="reminder_queue")
    op.drop_index("ix_reminder_queue_status_created", table_name="reminder_queue")
    op.drop_index("ix_reminder_queue_user_id", table_name="reminder_queue")
    op.drop_table("reminder_queue")
