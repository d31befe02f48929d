from datetime import date, datetime, time
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import inspect as sa_inspect

from api.v1.core.exceptions import PlanConfigurationError
from api.v1.plans.calendar import resolve_timezone
from api.v1.plans.models import AutoScheduleTrigger, PlanItem, PlanItemStatus, ScriptStatus


class PlanCreate(BaseModel):
    """Schema for creating a content plan."""

    name: str = Field(..., min_length=1, description="Plan name")
    videos_per_day: int = Field(default=3, ge=1, le=10, description="Items per day")
    start_date: date = Field(..., description="First day of the plan")
    end_date: date | None = Field(default=None, description="Last day of the plan")
    enabled: bool = Field(default=True)
    auto_research: bool = Field(
        default=True, description="Assign topics to generated items automatically"
    )
    auto_create: bool = Field(default=False)
    auto_approve: bool = Field(default=False)
    auto_schedule_trigger: AutoScheduleTrigger = Field(default=AutoScheduleTrigger.DAILY)
    trigger_time: time | None = Field(
        default=None, description="Local HH:MM after which today is skipped"
    )
    timezone: str = Field(default="UTC", description="IANA timezone of the plan")
    default_platforms: list[str] | None = Field(default=None)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        try:
            resolve_timezone(v)
        except PlanConfigurationError as e:
            raise ValueError(e.message) from e
        return v


class PlanResponse(BaseModel):
    """Schema for plan responses."""

    id: UUID
    user_id: UUID
    name: str
    videos_per_day: int
    start_date: date
    end_date: date | None
    enabled: bool
    auto_research: bool
    auto_create: bool
    auto_approve: bool
    auto_schedule_trigger: str
    trigger_time: time | None
    timezone: str
    default_platforms: list[str] | None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None

    class Config:
        from_attributes = True


class PlanListResponse(BaseModel):
    plans: list[PlanResponse]
    total: int


class SlotOverrides(BaseModel):
    """
    Positional per-slot overrides; index ``i`` applies to slot ``i`` of every
    generated day.
    """

    times: list[str | None] | None = Field(
        default=None, description="Posting times (HH:MM or HH:MM:SS)"
    )
    topics: list[str | None] | None = Field(default=None)
    categories: list[str | None] | None = Field(default=None)
    avatar_ids: list[str | None] | None = Field(default=None)
    look_ids: list[str | None] | None = Field(default=None)


class GeneratePlanItemsRequest(SlotOverrides):
    start_date: str = Field(..., description="First day to generate (YYYY-MM-DD)")
    end_date: str | None = Field(default=None, description="Last day to generate")


class PlanItemResponse(BaseModel):
    """Schema for plan item responses."""

    id: UUID
    plan_id: UUID
    scheduled_date: date
    scheduled_time: time | None = None
    topic: str | None = None
    category: str | None = None
    status: str
    platforms: list[str] | None = None
    research_data: dict[str, Any] | None = None
    script: str | None = None
    script_status: str | None = None
    caption: str | None = None
    video_id: UUID | None = None
    error_message: str | None = None
    avatar_id: str | None = None
    look_id: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_item(
        cls, item: PlanItem, default_platforms: list[str] | None = None
    ) -> "PlanItemResponse":
        """
        Build from an ORM item without touching deferred columns that were
        never loaded (they may not exist in the database).
        """
        unloaded = sa_inspect(item).unloaded
        data = {
            name: None if name in unloaded else getattr(item, name)
            for name in cls.model_fields
        }
        if data["platforms"] is None:
            data["platforms"] = default_platforms
        return cls.model_validate(data)


class PlanItemUpdate(BaseModel):
    """Schema for updating a plan item; unset fields are left alone."""

    topic: str | None = Field(default=None)
    category: str | None = Field(default=None)
    status: PlanItemStatus | None = Field(default=None)
    scheduled_time: time | None = Field(default=None)
    platforms: list[str] | None = Field(default=None)
    script: str | None = Field(default=None)
    script_status: ScriptStatus | None = Field(default=None)
    caption: str | None = Field(default=None)
    video_id: UUID | None = Field(default=None)
    error_message: str | None = Field(default=None)


class GenerationResponse(BaseModel):
    """Outcome of one generation run."""

    plan_id: UUID
    effective_start: date
    effective_end: date
    days: int
    time_slots: list[str]
    skipped_today: bool
    items: list[PlanItemResponse]
    topic_assignments_dispatched: int


class RegenerateTopicsRequest(BaseModel):
    scheduled_date: date


class RegenerateTopicsResponse(BaseModel):
    job_ids: list[UUID]
