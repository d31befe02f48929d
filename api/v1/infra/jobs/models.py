"""
Background job model backing the polling queue.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, Index, Integer, Text, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column

from api.infra.database import Base, UTCDateTime


class JobStatus(str, Enum):
    """Job status enumeration."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobType(str, Enum):
    """Kinds of deferred work the pipeline queues."""

    SCRIPT_GENERATION = "script_generation"
    AUTO_APPROVAL = "auto_approval"
    VIDEO_GENERATION = "video_generation"
    TOPIC_GENERATION = "topic_generation"
    RESEARCH = "research"


# Payload key carrying the logical entity a job type acts on. Only these job
# types get the dedup and cooldown guards on enqueue.
ENTITY_ID_KEYS: dict[str, str] = {
    JobType.VIDEO_GENERATION.value: "reel_id",
}

ACTIVE_STATUSES = (JobStatus.PENDING.value, JobStatus.PROCESSING.value)


class Job(Base):
    """
    A durable unit of deferred work.

    Eligible for execution iff status is pending, scheduled_at has passed and
    attempts is still below max_attempts.
    """

    __tablename__ = "background_jobs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    type: Mapped[str] = mapped_column(
        Text, nullable=False, comment="Job type identifier"
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        server_default="{}",
        comment="Job-specific parameters",
    )
    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=JobStatus.PENDING.value,
        comment="Job status: pending|processing|completed|failed",
    )
    scheduled_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
        comment="Earliest time to run job",
    )
    attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Number of failed attempts"
    )
    max_attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=3, comment="Attempts before terminal failure"
    )
    error_message: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Last error message"
    )

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

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="background_jobs_status_check",
        ),
        CheckConstraint(
            "type IN ('script_generation', 'auto_approval', 'video_generation', "
            "'topic_generation', 'research')",
            name="background_jobs_type_check",
        ),
        Index("idx_background_jobs_status", "status"),
        Index(
            "idx_background_jobs_scheduled_at",
            "scheduled_at",
            postgresql_where=text("status = 'pending'"),
        ),
    )

    def is_active(self) -> bool:
        """Check if job is pending or being processed."""
        return self.status in ACTIVE_STATUSES

    def is_eligible(self, now: datetime) -> bool:
        """Check if a worker may execute this job at ``now``."""
        return (
            self.status == JobStatus.PENDING.value
            and self.scheduled_at <= now
            and self.attempts < self.max_attempts
        )

    @property
    def entity_id(self) -> str | None:
        """Logical entity id from the payload, for guarded job types."""
        key = ENTITY_ID_KEYS.get(self.type)
        if not key or not self.payload:
            return None
        value = self.payload.get(key)
        return str(value) if value else None
