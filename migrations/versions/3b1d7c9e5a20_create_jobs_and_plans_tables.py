"""create background jobs and content plan tables

Revision ID: 3b1d7c9e5a20
Revises:
Create Date: 2026-10-17 09:12:40.118502

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3b1d7c9e5a20"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "background_jobs",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column("type", sa.Text, nullable=False, comment="Job type identifier"),
        sa.Column(
            "payload",
            sa.JSON,
            nullable=False,
            comment="Job parameters, including the entity the job acts on",
        ),
        sa.Column(
            "status",
            sa.Text,
            nullable=False,
            server_default="pending",
            comment="Job status: pending|processing|completed|failed",
        ),
        sa.Column(
            "scheduled_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            comment="Earliest time to run job",
        ),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("max_attempts", sa.Integer, nullable=False, server_default="3"),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="background_jobs_status_check",
        ),
        sa.CheckConstraint(
            "type IN ('script_generation', 'auto_approval', 'video_generation', "
            "'topic_generation', 'research')",
            name="background_jobs_type_check",
        ),
    )

    op.create_index("idx_background_jobs_status", "background_jobs", ["status"])
    # Worker polling: pending jobs by scheduled time
    op.create_index(
        "idx_background_jobs_scheduled_at",
        "background_jobs",
        ["scheduled_at"],
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "video_plans",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("videos_per_day", sa.Integer, nullable=False, server_default="3"),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=True),
        sa.Column("enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("auto_research", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("auto_create", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("auto_approve", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "auto_schedule_trigger", sa.Text, nullable=False, server_default="daily"
        ),
        sa.Column(
            "trigger_time",
            sa.Time,
            nullable=True,
            comment="Local time of day after which today is skipped",
        ),
        sa.Column("timezone", sa.Text, nullable=False, server_default="UTC"),
        sa.Column("default_platforms", sa.JSON, nullable=True),
        sa.Column("deleted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "videos_per_day > 0 AND videos_per_day <= 10",
            name="video_plans_videos_per_day_check",
        ),
        sa.CheckConstraint(
            "auto_schedule_trigger IN ('daily', 'time_based', 'manual')",
            name="video_plans_auto_schedule_trigger_check",
        ),
    )
    op.create_index("ix_video_plans_user_id", "video_plans", ["user_id"])

    # avatar_id / look_id arrive in a later revision
    op.create_table(
        "video_plan_items",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "plan_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("video_plans.id"),
            nullable=False,
        ),
        sa.Column("scheduled_date", sa.Date, nullable=False),
        sa.Column("scheduled_time", sa.Time, nullable=True),
        sa.Column("topic", sa.Text, nullable=True),
        sa.Column("category", sa.Text, nullable=True),
        sa.Column("status", sa.Text, nullable=False, server_default="pending"),
        sa.Column("platforms", sa.JSON, nullable=True),
        sa.Column("research_data", sa.JSON, nullable=True),
        sa.Column("script", sa.Text, nullable=True),
        sa.Column("script_status", sa.Text, nullable=True),
        sa.Column("caption", sa.Text, nullable=True),
        sa.Column("video_id", sa.UUID(as_uuid=True), nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'researching', 'ready', 'draft', 'approved', "
            "'generating', 'completed', 'scheduled', 'posted', 'failed')",
            name="video_plan_items_status_check",
        ),
        sa.CheckConstraint(
            "script_status IS NULL OR script_status IN ('draft', 'approved', 'rejected')",
            name="video_plan_items_script_status_check",
        ),
    )
    op.create_index("idx_video_plan_items_plan_id", "video_plan_items", ["plan_id"])
    op.create_index(
        "idx_video_plan_items_scheduled_date", "video_plan_items", ["scheduled_date"]
    )
    op.create_index("idx_video_plan_items_status", "video_plan_items", ["status"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("idx_video_plan_items_status", table_name="video_plan_items")
    op.drop_index("idx_video_plan_items_scheduled_date", table_name="video_plan_items")
    op.drop_index("idx_video_plan_items_plan_id", table_name="video_plan_items")
    op.drop_table("video_plan_items")
    op.drop_index("ix_video_plans_user_id", table_name="video_plans")
    op.drop_table("video_plans")
    op.drop_index("idx_background_jobs_scheduled_at", table_name="background_jobs")
    op.drop_index("idx_background_jobs_status", table_name="background_jobs")
    op.drop_table("background_jobs")
