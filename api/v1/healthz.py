from datetime import UTC, datetime, timedelta

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import and_, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.config.logging import get_logger
from api.config.settings import Settings, SettingsDep
from api.infra.database import get_session
from api.v1.core.exceptions import create_success_response
from api.v1.infra.jobs.models import Job, JobStatus

logger = get_logger(__name__)

router = APIRouter()


class DatabaseHealth(BaseModel):
    """Database health status."""

    connected: bool
    response_time_ms: float | None = None
    error: str | None = None


class QueueHealth(BaseModel):
    """Job queue health status."""

    queue_depth: int = 0
    processing: int = 0
    due_now: int = 0
    stuck_jobs_count: int = 0
    failed_last_hour: int = 0


class HealthResponse(BaseModel):
    """Health response with database and queue status."""

    ok: bool
    version: str
    environment: str
    timestamp: str
    database: DatabaseHealth
    queue: QueueHealth | None = None


@router.get("/healthz", response_model=dict)
async def health_check(
    settings: Settings = SettingsDep, session: AsyncSession = Depends(get_session)
):
    """Health check endpoint with database and queue status."""

    timestamp = datetime.now(UTC).isoformat()
    overall_ok = True

    db_health = await _check_database_health(session)
    if not db_health.connected:
        overall_ok = False

    # Queue statistics failing doesn't fail overall health
    queue_health = None
    if db_health.connected:
        try:
            queue_health = await _check_queue_health(session, settings)
        except SQLAlchemyError as e:
            logger.warning("Queue health check failed", error=str(e))
            queue_health = QueueHealth()

    health = HealthResponse(
        ok=overall_ok,
        version=settings.version,
        environment=settings.environment,
        timestamp=timestamp,
        database=db_health,
        queue=queue_health,
    )

    return create_success_response(data=health.model_dump())


async def _check_database_health(session: AsyncSession) -> DatabaseHealth:
    """Check database connectivity and response time."""
    start_time = datetime.now(UTC)

    try:
        await session.execute(text("SELECT 1"))

        end_time = datetime.now(UTC)
        response_time_ms = (end_time - start_time).total_seconds() * 1000

        return DatabaseHealth(
            connected=True, response_time_ms=round(response_time_ms, 2)
        )

    except SQLAlchemyError as e:
        await session.rollback()
        return DatabaseHealth(connected=False, error=str(e))


async def _count(session: AsyncSession, *criteria) -> int:
    result = await session.execute(select(func.count(Job.id)).where(and_(*criteria)))
    return result.scalar() or 0


async def _check_queue_health(
    session: AsyncSession, settings: Settings
) -> QueueHealth:
    """Check job queue depth and recent failures."""
    now = datetime.now(UTC)
    stuck_cutoff = now - timedelta(seconds=settings.job_visibility_timeout_s)

    pending = await _count(session, Job.status == JobStatus.PENDING.value)
    processing = await _count(session, Job.status == JobStatus.PROCESSING.value)
    due_now = await _count(
        session,
        Job.status == JobStatus.PENDING.value,
        Job.scheduled_at <= now,
        Job.attempts < Job.max_attempts,
    )
    stuck = await _count(
        session,
        Job.status == JobStatus.PROCESSING.value,
        Job.updated_at < stuck_cutoff,
    )
    failed_last_hour = await _count(
        session,
        Job.status == JobStatus.FAILED.value,
        Job.updated_at >= now - timedelta(hours=1),
    )

    return QueueHealth(
        queue_depth=pending + processing,
        processing=processing,
        due_now=due_now,
        stuck_jobs_count=stuck,
        failed_last_hour=failed_last_hour,
    )
