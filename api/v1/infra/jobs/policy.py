"""
Retry and cooldown policy for queued jobs.

All scheduling math takes ``now`` explicitly so it can be exercised without
a wall clock.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from api.config.settings import Settings


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt limits, retry delay and failure cooldown for the queue."""

    max_attempts: int = 3
    retry_delay: timedelta = timedelta(minutes=5)
    cooldown: timedelta = timedelta(minutes=30)
    cooldown_markers: tuple[str, ...] = ("insufficient credits",)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.job_max_attempts,
            retry_delay=timedelta(seconds=settings.job_retry_delay_s),
            cooldown=timedelta(seconds=settings.job_failure_cooldown_s),
            cooldown_markers=tuple(
                marker.lower() for marker in settings.job_cooldown_error_markers
            ),
        )

    def delay_for(self, attempts: int) -> timedelta:
        """Delay before the next attempt. Constant regardless of attempt count."""
        return self.retry_delay

    def next_run_at(self, now: datetime, attempts: int) -> datetime:
        return now + self.delay_for(attempts)

    def should_retry(self, attempts: int, max_attempts: int | None = None) -> bool:
        """Whether a job that has failed ``attempts`` times goes back to pending."""
        limit = self.max_attempts if max_attempts is None else max_attempts
        return attempts < limit

    def is_cooldown_error(self, error_message: str | None) -> bool:
        """Whether a failure message belongs to the non-retryable classification."""
        if not error_message:
            return False
        message = error_message.lower()
        return any(marker in message for marker in self.cooldown_markers)

    def in_cooldown(
        self, error_message: str | None, failed_at: datetime | None, now: datetime
    ) -> bool:
        """Whether re-enqueue after this failure should still be suppressed."""
        if failed_at is None or not self.is_cooldown_error(error_message):
            return False
        return now - failed_at < self.cooldown
