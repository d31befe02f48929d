"""
Polling job worker.
"""

import asyncio
import os
import socket
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.config.logging import bind_job_context, clear_job_context, get_logger
from api.config.settings import Settings
from api.infra.database import get_database
from api.v1.core.exceptions import StoreUnavailableError
from api.v1.core.registries import JobRegistry, job_registry
from api.v1.infra.jobs.models import JobStatus
from api.v1.infra.jobs.service import JobService

logger = get_logger(__name__)


class JobWorker:
    """
    Executes due jobs on a fixed tick.

    Each tick claims a bounded batch of due jobs, runs the handler
    registered for each job type and settles the job as completed or
    failed. Claims are conditional updates, so concurrent workers never
    run the same job twice.
    """

    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        registry: JobRegistry | None = None,
        job_service: JobService | None = None,
    ):
        self.settings = settings
        self.session_factory = session_factory or get_database(settings).SessionLocal
        self.registry = registry or job_registry
        self.job_service = job_service or JobService(settings)
        self.worker_id = f"{socket.gethostname()}-{os.getpid()}-{id(self)}"
        self.running = False
        self._stopped = asyncio.Event()

    async def tick(self) -> int:
        """Run one poll cycle. Returns the number of jobs executed."""
        processed = 0
        async with self.session_factory() as session:
            jobs = await self.job_service.dequeue_due(
                session, self.settings.job_batch_size
            )
            # Plain values: a rollback after a failed handler expires the batch
            batch = [(job.id, job.type, dict(job.payload or {})) for job in jobs]
            for job_id, job_type, payload in batch:
                if await self._process_job(session, job_id, job_type, payload):
                    processed += 1

        if processed:
            logger.info(
                "Worker tick finished", worker_id=self.worker_id, processed=processed
            )
        return processed

    async def _process_job(
        self,
        session: AsyncSession,
        job_id: UUID,
        job_type: str,
        payload: dict[str, Any],
    ) -> bool:
        """Claim and execute one job. Returns False if another worker won the claim."""
        if not await self.job_service.mark_processing(session, job_id):
            logger.debug("Job already claimed", job_id=str(job_id), job_type=job_type)
            return False

        job_logger = logger.bind(
            job_id=str(job_id), job_type=job_type, worker_id=self.worker_id
        )
        bind_job_context(str(job_id), job_type)
        try:
            job_logger.info("Processing job started")
            try:
                handler = self.registry.get(job_type)
                result = await handler.handle(session, payload)
            except Exception as e:
                job_logger.exception("Job processing failed", error=str(e))
                await session.rollback()
                await self.job_service.mark_failed(
                    session,
                    job_id,
                    str(e) or e.__class__.__name__,
                    expected_status=JobStatus.PROCESSING.value,
                )
                return True

            if not await self.job_service.mark_completed(session, job_id):
                job_logger.warning("Job settled elsewhere, result dropped", result=result)
                return True
            job_logger.info("Processing job completed", result=result)
            return True
        finally:
            clear_job_context()

    async def start(self) -> None:
        """Run ticks on the configured interval until stop() is called."""
        if self.running:
            raise RuntimeError("Worker is already running")

        self.running = True
        self._stopped.clear()
        logger.info(
            "Starting job worker",
            worker_id=self.worker_id,
            batch_size=self.settings.job_batch_size,
            poll_interval_s=self.settings.job_poll_interval_s,
        )

        try:
            while self.running:
                try:
                    async with self.session_factory() as session:
                        await self.job_service.requeue_stale_jobs(session)
                    await self.tick()
                except StoreUnavailableError:
                    logger.exception(
                        "Job store unavailable, backing off", worker_id=self.worker_id
                    )

                try:
                    await asyncio.wait_for(
                        self._stopped.wait(), timeout=self.settings.job_poll_interval_s
                    )
                except asyncio.TimeoutError:
                    pass
        finally:
            self.running = False
            logger.info("Job worker stopped", worker_id=self.worker_id)

    async def stop(self) -> None:
        """Stop after the current tick."""
        logger.info("Stopping job worker", worker_id=self.worker_id)
        self.running = False
        self._stopped.set()

