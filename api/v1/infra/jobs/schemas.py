"""
Job system Pydantic schemas.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from api.v1.infra.jobs.models import JobStatus, JobType


class JobCreate(BaseModel):
    """Schema for creating a new job."""

    type: JobType = Field(..., description="Job type identifier")
    payload: dict[str, Any] = Field(default_factory=dict, description="Job parameters")
    scheduled_at: datetime | None = Field(
        default=None, description="Earliest time to run job"
    )


class JobResponse(BaseModel):
    """Schema for job API responses."""

    id: UUID
    type: str
    payload: dict[str, Any]
    status: str
    scheduled_at: datetime
    attempts: int
    max_attempts: int
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class JobListResponse(BaseModel):
    """Schema for job list API response."""

    jobs: list[JobResponse]
    total: int
    limit: int
    offset: int


class JobStatsResponse(BaseModel):
    """Schema for job statistics."""

    total_jobs: int
    by_status: dict[str, int]
    by_type: dict[str, int]
    queue_depth: int  # pending + processing
    due_now: int
    failed_last_hour: int


class JobEnqueueResponse(BaseModel):
    """Schema for job enqueue response."""

    job_id: UUID
    status: JobStatus
    deduplicated: bool = Field(
        default=False, description="An active job for the same entity was returned"
    )
    cooldown: bool = Field(
        default=False, description="A recent non-retryable failure was returned"
    )
