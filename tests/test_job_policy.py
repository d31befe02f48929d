"""Tests for the retry and cooldown policy."""

from datetime import UTC, datetime, timedelta

from api.config.settings import Settings
from api.v1.infra.jobs.policy import RetryPolicy

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


class TestRetryPolicy:
    def test_defaults(self):
        """Defaults match the queue's documented behavior."""
        policy = RetryPolicy()
        assert policy.max_attempts == 3
        assert policy.retry_delay == timedelta(minutes=5)
        assert policy.cooldown == timedelta(minutes=30)

    def test_from_settings(self):
        settings = Settings(
            job_max_attempts=5,
            job_retry_delay_s=60,
            job_failure_cooldown_s=600,
            job_cooldown_error_markers=["Quota Exceeded"],
        )
        policy = RetryPolicy.from_settings(settings)

        assert policy.max_attempts == 5
        assert policy.retry_delay == timedelta(minutes=1)
        assert policy.cooldown == timedelta(minutes=10)
        assert policy.cooldown_markers == ("quota exceeded",)

    def test_delay_is_constant(self):
        """The retry delay does not grow with the attempt count."""
        policy = RetryPolicy()
        assert policy.delay_for(1) == policy.delay_for(2) == timedelta(minutes=5)
        assert policy.next_run_at(NOW, 2) == NOW + timedelta(minutes=5)

    def test_should_retry(self):
        policy = RetryPolicy()
        assert policy.should_retry(1) is True
        assert policy.should_retry(2) is True
        assert policy.should_retry(3) is False
        assert policy.should_retry(3, max_attempts=5) is True

    def test_cooldown_error_classification_is_case_insensitive(self):
        policy = RetryPolicy()
        assert policy.is_cooldown_error("Insufficient Credits on account") is True
        assert policy.is_cooldown_error("upstream timeout") is False
        assert policy.is_cooldown_error(None) is False

    def test_in_cooldown_window(self):
        policy = RetryPolicy()
        failed_at = NOW

        assert policy.in_cooldown("insufficient credits", failed_at, NOW + timedelta(minutes=10))
        assert not policy.in_cooldown(
            "insufficient credits", failed_at, NOW + timedelta(minutes=31)
        )
        assert not policy.in_cooldown("network error", failed_at, NOW + timedelta(minutes=1))
        assert not policy.in_cooldown("insufficient credits", None, NOW)
