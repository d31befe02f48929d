"""Tests for CLI commands"""

import uuid
from datetime import UTC, date, datetime, time
from unittest.mock import Mock, patch

import httpx
import pytest
from typer.testing import CliRunner

from api.v1.core.exceptions import PlanNotFoundError
from api.v1.plans.calendar import PlanWindow
from api.v1.plans.generator import GenerationResult
from api.v1.plans.schemas import PlanItemResponse
from cli.client.base import ContentOpsClient, ContentOpsError
from cli.main import app


@pytest.fixture
def runner():
    """CLI test runner"""
    return CliRunner()


def _mock_client(mock_client_class):
    client = Mock()
    client.__enter__ = Mock(return_value=client)
    client.__exit__ = Mock(return_value=None)
    mock_client_class.return_value = client
    return client


class TestMainCommands:
    def test_version(self, runner):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "Content Ops CLI v1.0.0" in result.stdout

    @patch("cli.main.ContentOpsClient")
    def test_status_success(self, mock_client_class, runner):
        """Test status command with successful connection"""
        client = _mock_client(mock_client_class)
        client.health_check.return_value = {
            "ok": True,
            "version": "1.0.0",
            "environment": "development",
            "database": {"connected": True},
            "queue": {"queue_depth": 4, "failed_last_hour": 1},
        }

        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "Connected" in result.stdout
        assert "Queue Depth: 4" in result.stdout

    @patch("cli.main.ContentOpsClient")
    def test_status_failure(self, mock_client_class, runner):
        """Test status command with connection failure"""
        client = _mock_client(mock_client_class)
        client.health_check.side_effect = ContentOpsError("Connection failed")

        result = runner.invoke(app, ["status"])
        assert result.exit_code == 1
        assert "Failed to connect" in result.stdout


class TestJobCommands:
    @patch("cli.commands.jobs.ContentOpsClient")
    def test_stats(self, mock_client_class, runner):
        client = _mock_client(mock_client_class)
        client.get_job_stats.return_value = {
            "total_jobs": 7,
            "queue_depth": 3,
            "due_now": 2,
            "by_status": {"completed": 3, "failed": 1},
            "failed_last_hour": 1,
        }

        result = runner.invoke(app, ["jobs", "stats"])
        assert result.exit_code == 0
        assert "Total Jobs: 7" in result.stdout

    @patch("cli.commands.jobs.ContentOpsClient")
    def test_retry(self, mock_client_class, runner):
        client = _mock_client(mock_client_class)
        client.retry_job.return_value = {"success": True}

        result = runner.invoke(app, ["jobs", "retry", "abc"])
        assert result.exit_code == 0
        client.retry_job.assert_called_once_with("abc")
        assert "queued for retry" in result.stdout

    @patch("cli.commands.jobs.ContentOpsClient")
    def test_retry_failure(self, mock_client_class, runner):
        client = _mock_client(mock_client_class)
        client.retry_job.side_effect = ContentOpsError("API Error 404: not eligible")

        result = runner.invoke(app, ["jobs", "retry", "abc"])
        assert result.exit_code == 1
        assert "Failed to retry job" in result.stdout


class TestPlanCommands:
    def test_invalid_plan_id(self, runner):
        result = runner.invoke(app, ["plans", "generate", "nope", "--start", "2024-01-01"])
        assert result.exit_code == 1
        assert "Invalid plan ID" in result.stdout

    def test_generate(self, runner):
        plan_id = uuid.uuid4()
        now = datetime(2024, 1, 1, tzinfo=UTC)
        generated = GenerationResult(
            plan_id=plan_id,
            window=PlanWindow(start=date(2024, 1, 2), end=date(2024, 1, 2), skipped_today=True),
            time_slots=["09:00:00"],
            items=[
                PlanItemResponse(
                    id=uuid.uuid4(),
                    plan_id=plan_id,
                    scheduled_date=date(2024, 1, 2),
                    scheduled_time=time(9, 0),
                    topic="Morning routine",
                    status="ready",
                    created_at=now,
                    updated_at=now,
                )
            ],
            days=1,
        )
        calls = []

        async def fake_generate(*args):
            calls.append(args)
            return generated

        with patch("cli.commands.plans._generate", fake_generate):
            result = runner.invoke(
                app,
                [
                    "plans", "generate", str(plan_id),
                    "--start", "2024-01-01",
                    "--time", "09:00",
                    "--topic", "Morning routine",
                ],
            )

        assert result.exit_code == 0, result.stdout
        assert "Trigger time already passed" in result.stdout
        assert "Created 1 item(s) over 1 day(s)" in result.stdout
        overrides = calls[0][4]
        assert overrides.times == ["09:00"]
        assert overrides.topics == ["Morning routine"]

    def test_generate_failure(self, runner):
        async def fake_generate(*args):
            raise PlanNotFoundError()

        with patch("cli.commands.plans._generate", fake_generate):
            result = runner.invoke(
                app, ["plans", "generate", str(uuid.uuid4()), "--start", "2024-01-01"]
            )

        assert result.exit_code == 1
        assert "Generation failed: Plan not found" in result.stdout


class TestContentOpsClient:
    def test_unwraps_envelope(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v1/healthz"
            return httpx.Response(200, json={"ok": True, "data": {"version": "1.0.0"}})

        with ContentOpsClient("http://test", transport=httpx.MockTransport(handler)) as client:
            assert client.health_check() == {"version": "1.0.0"}

    def test_error_envelope_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                404, json={"ok": False, "error": {"message": "Job not found", "code": 404}}
            )

        with ContentOpsClient("http://test", transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(ContentOpsError, match="Job not found"):
                client.retry_job("abc")
