"""
Recurring content plans and the dated items generated from them.
"""

from datetime import UTC, date, datetime, time
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Text,
    Time,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from api.infra.database import Base, UTCDateTime


class AutoScheduleTrigger(str, Enum):
    DAILY = "daily"
    TIME_BASED = "time_based"
    MANUAL = "manual"


class PlanItemStatus(str, Enum):
    """Stages a plan item moves through from generation to posting."""

    PENDING = "pending"
    RESEARCHING = "researching"
    READY = "ready"
    DRAFT = "draft"
    APPROVED = "approved"
    GENERATING = "generating"
    COMPLETED = "completed"
    SCHEDULED = "scheduled"
    POSTED = "posted"
    FAILED = "failed"


class ScriptStatus(str, Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    REJECTED = "rejected"


# Columns added after the initial schema; a database that has not been
# migrated yet may lack them.
OPTIONAL_ITEM_COLUMNS = ("avatar_id", "look_id")


class Plan(Base):
    """A recurring content-generation configuration owned by one user."""

    __tablename__ = "video_plans"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    videos_per_day: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    auto_research: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    auto_create: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    auto_approve: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    auto_schedule_trigger: Mapped[str] = mapped_column(
        Text, nullable=False, default=AutoScheduleTrigger.DAILY.value
    )
    trigger_time: Mapped[time | None] = mapped_column(
        Time, nullable=True, comment="Local time of day after which today is skipped"
    )
    timezone: Mapped[str] = mapped_column(Text, nullable=False, default="UTC")
    default_platforms: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        server_default=func.now(),
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        server_default=func.now(),
        default=lambda: datetime.now(UTC),
    )

    items: Mapped[list["PlanItem"]] = relationship(back_populates="plan")

    __table_args__ = (
        CheckConstraint(
            "videos_per_day > 0 AND videos_per_day <= 10",
            name="video_plans_videos_per_day_check",
        ),
        CheckConstraint(
            "auto_schedule_trigger IN ('daily', 'time_based', 'manual')",
            name="video_plans_auto_schedule_trigger_check",
        ),
    )

    def is_active(self) -> bool:
        return self.enabled and self.deleted_at is None


class PlanItem(Base):
    """One scheduled content slot generated from a plan."""

    __tablename__ = "video_plan_items"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    plan_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("video_plans.id"), nullable=False
    )
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    scheduled_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    topic: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=PlanItemStatus.PENDING.value
    )
    platforms: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    # Written by downstream stages
    research_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    script: Mapped[str | None] = mapped_column(Text, nullable=True)
    script_status: Mapped[str | None] = mapped_column(Text, nullable=True)
    caption: Mapped[str | None] = mapped_column(Text, nullable=True)
    video_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Deferred so ORM selects keep working against a database that predates them
    avatar_id: Mapped[str | None] = mapped_column(Text, nullable=True, deferred=True)
    look_id: Mapped[str | None] = mapped_column(Text, nullable=True, deferred=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        server_default=func.now(),
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        server_default=func.now(),
        default=lambda: datetime.now(UTC),
    )

    plan: Mapped[Plan] = relationship(back_populates="items")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'researching', 'ready', 'draft', 'approved', "
            "'generating', 'completed', 'scheduled', 'posted', 'failed')",
            name="video_plan_items_status_check",
        ),
        CheckConstraint(
            "script_status IS NULL OR script_status IN ('draft', 'approved', 'rejected')",
            name="video_plan_items_script_status_check",
        ),
        Index("idx_video_plan_items_plan_id", "plan_id"),
        Index("idx_video_plan_items_scheduled_date", "scheduled_date"),
        Index("idx_video_plan_items_status", "status"),
    )
