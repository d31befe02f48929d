"""
Job management API endpoints.

Provides admin endpoints for job enqueueing, monitoring, and management.
"""

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.config.settings import Settings, SettingsDep
from api.infra.database import get_session
from api.v1.core.exceptions import JobNotFoundError, create_success_response
from api.v1.core.security import Principal, PrincipalDep
from api.v1.infra.jobs.models import JobStatus, JobType
from api.v1.infra.jobs.schemas import JobCreate, JobListResponse, JobResponse
from api.v1.infra.jobs.service import JobService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/jobs", tags=["jobs"])


def _require_admin(principal: Principal) -> None:
    if not principal.is_admin():
        raise HTTPException(status_code=403, detail="Admin role required")


@router.post("", response_model=dict)
async def enqueue_job(
    job_create: JobCreate,
    principal: Principal = PrincipalDep,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Enqueue a new background job."""
    _require_admin(principal)

    job_service = JobService(settings)
    result = await job_service.enqueue_job(session, job_create)

    logger.info(
        "Job enqueued via API",
        extra={
            "job_id": str(result.job_id),
            "type": job_create.type.value,
            "user_id": principal.user_id,
            "deduplicated": result.deduplicated,
            "cooldown": result.cooldown,
        },
    )

    return create_success_response(data=result.model_dump())


@router.get("", response_model=dict)
async def list_jobs(
    status: list[JobStatus] | None = Query(
        default=None, description="Filter by status"
    ),
    type: JobType | None = Query(default=None, description="Filter by job type"),
    limit: int = Query(default=50, ge=1, le=1000, description="Maximum results"),
    offset: int = Query(default=0, ge=0, description="Results offset"),
    principal: Principal = PrincipalDep,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """List jobs with filtering and pagination."""
    _require_admin(principal)

    job_service = JobService(settings)
    jobs, total = await job_service.list_jobs(
        session,
        statuses=[s.value for s in status] if status else None,
        job_type=type.value if type else None,
        limit=limit,
        offset=offset,
    )

    response_data = JobListResponse(
        jobs=[JobResponse.model_validate(job) for job in jobs],
        total=total,
        limit=limit,
        offset=offset,
    )

    return create_success_response(data=response_data.model_dump())


@router.get("/stats/overview", response_model=dict)
async def get_job_stats(
    principal: Principal = PrincipalDep,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Get queue statistics."""
    _require_admin(principal)

    job_service = JobService(settings)
    stats = await job_service.get_job_stats(session)

    return create_success_response(data=stats.model_dump())


@router.get("/{job_id}", response_model=dict)
async def get_job(
    job_id: UUID,
    principal: Principal = PrincipalDep,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Get a specific job by ID."""
    _require_admin(principal)

    job_service = JobService(settings)
    job = await job_service.get_job_by_id(session, job_id)

    if not job:
        raise JobNotFoundError("Job not found", details={"job_id": str(job_id)})

    return create_success_response(data=JobResponse.model_validate(job).model_dump())


@router.post("/{job_id}/retry", response_model=dict)
async def retry_job(
    job_id: UUID,
    principal: Principal = PrincipalDep,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Retry a terminally failed job."""
    _require_admin(principal)

    job_service = JobService(settings)
    success = await job_service.retry_job(session, job_id)

    if not success:
        raise HTTPException(
            status_code=404, detail="Job not found or not eligible for retry"
        )

    logger.info(
        "Job retried via API",
        extra={"job_id": str(job_id), "user_id": principal.user_id},
    )

    return create_success_response(data={"success": True, "job_id": str(job_id)})


@router.post("/maintenance/cleanup", response_model=dict)
async def cleanup_jobs(
    principal: Principal = PrincipalDep,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Delete completed and failed jobs past the retention period."""
    _require_admin(principal)

    job_service = JobService(settings)
    deleted_count = await job_service.cleanup_old_jobs(session)

    return create_success_response(
        data={
            "deleted_count": deleted_count,
            "retention_days": settings.job_cleanup_after_days,
        }
    )
