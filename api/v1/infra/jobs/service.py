"""
Job service for enqueueing, claiming and settling background jobs.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import and_, desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.config.settings import Settings
from api.infra.database import store_errors
from api.v1.core.exceptions import JobNotFoundError
from api.v1.infra.jobs.models import (
    ACTIVE_STATUSES,
    ENTITY_ID_KEYS,
    Job,
    JobStatus,
    JobType,
)
from api.v1.infra.jobs.policy import RetryPolicy
from api.v1.infra.jobs.schemas import JobCreate, JobEnqueueResponse, JobStatsResponse

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class JobService:
    """Service for managing background jobs."""

    def __init__(
        self,
        settings: Settings,
        policy: RetryPolicy | None = None,
        clock: Clock | None = None,
    ):
        self.settings = settings
        self.policy = policy or RetryPolicy.from_settings(settings)
        self.clock = clock or utc_now

    async def enqueue(
        self,
        session: AsyncSession,
        job_type: JobType | str,
        payload: dict[str, Any],
        scheduled_at: datetime | None = None,
    ) -> Job:
        """
        Enqueue a job, returning an existing one when a guard applies.

        For job types with an entity key (video_generation → reel_id):
        an active job for the same entity is returned as-is, and so is the
        latest failed job when it failed with a cooldown-class error inside
        the cooldown window.
        """
        job, _ = await self._enqueue(session, JobType(job_type), payload, scheduled_at)
        return job

    async def enqueue_job(
        self, session: AsyncSession, job_create: JobCreate
    ) -> JobEnqueueResponse:
        """Enqueue from an API request and report which guard (if any) fired."""
        job, guard = await self._enqueue(
            session, job_create.type, job_create.payload, job_create.scheduled_at
        )
        return JobEnqueueResponse(
            job_id=job.id,
            status=job.status,
            deduplicated=guard == "dedup",
            cooldown=guard == "cooldown",
        )

    async def _enqueue(
        self,
        session: AsyncSession,
        job_type: JobType,
        payload: dict[str, Any],
        scheduled_at: datetime | None,
    ) -> tuple[Job, str | None]:
        now = self.clock()
        entity_key = ENTITY_ID_KEYS.get(job_type.value)
        entity_id = payload.get(entity_key) if entity_key else None

        async with store_errors(session, "enqueue"):
            if entity_key and entity_id:
                existing = await self._find_active_job(
                    session, job_type.value, entity_key, str(entity_id)
                )
                if existing:
                    logger.info(
                        "Job deduplicated",
                        extra={
                            "job_id": str(existing.id),
                            "type": job_type.value,
                            entity_key: str(entity_id),
                            "status": existing.status,
                        },
                    )
                    return existing, "dedup"

                last_failed = await self._find_latest_failed_job(
                    session, job_type.value, entity_key, str(entity_id)
                )
                if last_failed and self.policy.in_cooldown(
                    last_failed.error_message, last_failed.updated_at, now
                ):
                    logger.info(
                        "Job enqueue suppressed by failure cooldown",
                        extra={
                            "job_id": str(last_failed.id),
                            "type": job_type.value,
                            entity_key: str(entity_id),
                            "failed_at": last_failed.updated_at.isoformat(),
                            "error_message": last_failed.error_message,
                        },
                    )
                    return last_failed, "cooldown"

            job = Job(
                id=uuid.uuid4(),
                type=job_type.value,
                payload=payload,
                status=JobStatus.PENDING.value,
                scheduled_at=scheduled_at or now,
                attempts=0,
                max_attempts=self.policy.max_attempts,
                created_at=now,
                updated_at=now,
            )
            session.add(job)
            await session.commit()
            await session.refresh(job)

        logger.info(
            "Job enqueued",
            extra={
                "job_id": str(job.id),
                "type": job.type,
                "scheduled_at": job.scheduled_at.isoformat(),
            },
        )
        return job, None

    async def _find_active_job(
        self, session: AsyncSession, job_type: str, entity_key: str, entity_id: str
    ) -> Job | None:
        """Find a pending or processing job for the same entity."""
        result = await session.execute(
            select(Job)
            .where(
                and_(
                    Job.type == job_type,
                    Job.payload[entity_key].as_string() == entity_id,
                    Job.status.in_(ACTIVE_STATUSES),
                )
            )
            .order_by(desc(Job.created_at))
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _find_latest_failed_job(
        self, session: AsyncSession, job_type: str, entity_key: str, entity_id: str
    ) -> Job | None:
        result = await session.execute(
            select(Job)
            .where(
                and_(
                    Job.type == job_type,
                    Job.payload[entity_key].as_string() == entity_id,
                    Job.status == JobStatus.FAILED.value,
                )
            )
            .order_by(desc(Job.updated_at))
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def dequeue_due(self, session: AsyncSession, limit: int) -> list[Job]:
        """Pending jobs whose scheduled time has passed, oldest first."""
        now = self.clock()
        async with store_errors(session, "dequeue_due"):
            result = await session.execute(
                select(Job)
                .where(
                    and_(
                        Job.status == JobStatus.PENDING.value,
                        Job.scheduled_at <= now,
                    )
                )
                .order_by(Job.scheduled_at)
                .limit(limit)
            )
            jobs = result.scalars().all()

        return [job for job in jobs if job.attempts < job.max_attempts]

    async def mark_processing(self, session: AsyncSession, job_id: UUID) -> bool:
        """
        Claim a job for execution.

        The update only matches while the job is still pending, so of several
        concurrent claimers exactly one sees a row affected.
        """
        async with store_errors(session, "mark_processing"):
            result = await session.execute(
                update(Job)
                .where(and_(Job.id == job_id, Job.status == JobStatus.PENDING.value))
                .values(status=JobStatus.PROCESSING.value, updated_at=self.clock())
            )
            await session.commit()

        return result.rowcount > 0

    async def mark_completed(self, session: AsyncSession, job_id: UUID) -> bool:
        """Settle a claimed job; a job no longer in processing is left alone."""
        async with store_errors(session, "mark_completed"):
            result = await session.execute(
                update(Job)
                .where(
                    and_(Job.id == job_id, Job.status == JobStatus.PROCESSING.value)
                )
                .values(status=JobStatus.COMPLETED.value, updated_at=self.clock())
            )
            await session.commit()

        return result.rowcount > 0

    async def mark_failed(
        self,
        session: AsyncSession,
        job_id: UUID,
        error_message: str,
        increment_attempts: bool = True,
        expected_status: str | None = None,
        stale_before: datetime | None = None,
    ) -> Job | None:
        """
        Record a failed attempt.

        Goes back to pending after the retry delay while attempts remain,
        otherwise fails terminally with scheduled_at left untouched.

        The write is conditional on the row still holding the status and
        attempt count it was read with (and ``expected_status`` when given,
        and an ``updated_at`` older than ``stale_before`` when given).
        Completed and failed jobs are never touched. Returns None when
        nothing was written.
        """
        now = self.clock()
        async with store_errors(session, "mark_failed"):
            job = await self.get_job_by_id(session, job_id)
            if job is None:
                raise JobNotFoundError(
                    "Job not found", details={"job_id": str(job_id)}
                )

            read_status = job.status
            read_attempts = job.attempts
            if read_status not in ACTIVE_STATUSES or (
                expected_status is not None and read_status != expected_status
            ):
                written = False
            else:
                new_attempts = read_attempts + 1 if increment_attempts else read_attempts
                retry = self.policy.should_retry(new_attempts, job.max_attempts)

                values: dict[str, Any] = {
                    "attempts": new_attempts,
                    "error_message": error_message,
                    "updated_at": now,
                }
                if retry:
                    values["status"] = JobStatus.PENDING.value
                    values["scheduled_at"] = self.policy.next_run_at(now, new_attempts)
                else:
                    values["status"] = JobStatus.FAILED.value

                conditions = [
                    Job.id == job_id,
                    Job.status == read_status,
                    Job.attempts == read_attempts,
                ]
                if stale_before is not None:
                    conditions.append(Job.updated_at < stale_before)

                result = await session.execute(
                    update(Job)
                    .where(and_(*conditions))
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
                written = result.rowcount > 0

            if written:
                job = await self.get_job_by_id(session, job_id)

        if not written:
            logger.info(
                "Job failure not recorded, state changed",
                extra={"job_id": str(job_id), "status": read_status},
            )
            return None

        if retry:
            logger.info(
                "Job scheduled for retry",
                extra={
                    "job_id": str(job_id),
                    "attempts": new_attempts,
                    "next_run_at": job.scheduled_at.isoformat(),
                },
            )
        else:
            logger.warning(
                "Job failed permanently",
                extra={
                    "job_id": str(job_id),
                    "attempts": new_attempts,
                    "error_message": error_message,
                },
            )
        return job

    async def get_job_by_id(self, session: AsyncSession, job_id: UUID) -> Job | None:
        result = await session.execute(
            select(Job)
            .where(Job.id == job_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_jobs(
        self,
        session: AsyncSession,
        statuses: list[str] | None = None,
        job_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Job], int]:
        """List jobs newest first, with the unpaginated total."""
        base_query = select(Job)
        if statuses:
            base_query = base_query.where(Job.status.in_(statuses))
        if job_type:
            base_query = base_query.where(Job.type == job_type)

        async with store_errors(session, "list_jobs"):
            total_result = await session.execute(
                select(func.count()).select_from(base_query.subquery())
            )
            total = total_result.scalar() or 0

            jobs_result = await session.execute(
                base_query.order_by(desc(Job.created_at)).offset(offset).limit(limit)
            )
            jobs = list(jobs_result.scalars().all())

        return jobs, total

    async def get_job_stats(self, session: AsyncSession) -> JobStatsResponse:
        """Get queue statistics."""
        now = self.clock()
        async with store_errors(session, "get_job_stats"):
            total_result = await session.execute(select(func.count(Job.id)))
            total_jobs = total_result.scalar() or 0

            status_result = await session.execute(
                select(Job.status, func.count(Job.id)).group_by(Job.status)
            )
            by_status = dict(status_result.all())

            type_result = await session.execute(
                select(Job.type, func.count(Job.id)).group_by(Job.type)
            )
            by_type = dict(type_result.all())

            due_result = await session.execute(
                select(func.count(Job.id)).where(
                    and_(
                        Job.status == JobStatus.PENDING.value,
                        Job.scheduled_at <= now,
                        Job.attempts < Job.max_attempts,
                    )
                )
            )
            due_now = due_result.scalar() or 0

            failed_recent_result = await session.execute(
                select(func.count(Job.id)).where(
                    and_(
                        Job.status == JobStatus.FAILED.value,
                        Job.updated_at >= now - timedelta(hours=1),
                    )
                )
            )
            failed_last_hour = failed_recent_result.scalar() or 0

        queue_depth = by_status.get(JobStatus.PENDING.value, 0) + by_status.get(
            JobStatus.PROCESSING.value, 0
        )

        return JobStatsResponse(
            total_jobs=total_jobs,
            by_status=by_status,
            by_type=by_type,
            queue_depth=queue_depth,
            due_now=due_now,
            failed_last_hour=failed_last_hour,
        )

    async def retry_job(self, session: AsyncSession, job_id: UUID) -> bool:
        """Send a terminally failed job back to pending with a fresh attempt budget."""
        now = self.clock()
        async with store_errors(session, "retry_job"):
            result = await session.execute(
                update(Job)
                .where(and_(Job.id == job_id, Job.status == JobStatus.FAILED.value))
                .values(
                    status=JobStatus.PENDING.value,
                    attempts=0,
                    scheduled_at=now,
                    updated_at=now,
                )
            )
            await session.commit()

        success = result.rowcount > 0
        if success:
            logger.info("Job retried", extra={"job_id": str(job_id)})

        return success

    async def requeue_stale_jobs(self, session: AsyncSession) -> int:
        """
        Fail jobs stuck in processing past the visibility timeout.

        A worker that died mid-job leaves its claim behind; routing the job
        through mark_failed consumes an attempt so a job that keeps killing
        workers still reaches a terminal state. Each write is re-checked
        against processing and the cutoff, so a job settled between the scan
        and the update keeps its outcome.
        """
        timeout_seconds = self.settings.job_visibility_timeout_s
        cutoff = self.clock() - timedelta(seconds=timeout_seconds)

        async with store_errors(session, "requeue_stale_jobs"):
            result = await session.execute(
                select(Job.id).where(
                    and_(
                        Job.status == JobStatus.PROCESSING.value,
                        Job.updated_at < cutoff,
                    )
                )
            )
            stale_ids = list(result.scalars().all())

        recovered = 0
        for job_id in stale_ids:
            job = await self.mark_failed(
                session,
                job_id,
                f"Job timed out after {timeout_seconds}s in processing",
                expected_status=JobStatus.PROCESSING.value,
                stale_before=cutoff,
            )
            if job is not None:
                recovered += 1

        if recovered:
            logger.warning(
                "Recovered stale jobs",
                extra={
                    "stale_job_count": recovered,
                    "timeout_seconds": timeout_seconds,
                },
            )
        return recovered

    async def cleanup_old_jobs(self, session: AsyncSession) -> int:
        """Delete completed and failed jobs past the retention period."""
        retention_days = self.settings.job_cleanup_after_days
        cutoff = self.clock() - timedelta(days=retention_days)

        async with store_errors(session, "cleanup_old_jobs"):
            result = await session.execute(
                Job.__table__.delete().where(
                    and_(
                        Job.status.in_(
                            [JobStatus.COMPLETED.value, JobStatus.FAILED.value]
                        ),
                        Job.updated_at < cutoff,
                    )
                )
            )
            deleted_count = result.rowcount
            await session.commit()

        if deleted_count > 0:
            logger.info(
                "Cleaned up old jobs",
                extra={
                    "deleted_count": deleted_count,
                    "retention_days": retention_days,
                },
            )

        return deleted_count
