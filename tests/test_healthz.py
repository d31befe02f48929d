import pytest
from httpx import AsyncClient

from api.v1.infra.jobs.models import JobType
from api.v1.infra.jobs.service import JobService


@pytest.mark.asyncio
async def test_health_check_success(async_client: AsyncClient):
    """Test health check endpoint returns correct format."""
    response = await async_client.get("/v1/healthz")

    assert response.status_code == 200

    data = response.json()
    assert data["ok"] is True
    assert "data" in data

    health_data = data["data"]
    assert health_data["ok"] is True
    assert health_data["version"] == "1.0.0"
    assert health_data["environment"] == "development"
    assert health_data["database"]["connected"] is True


@pytest.mark.asyncio
async def test_health_check_response_structure(async_client: AsyncClient):
    """Test health check response envelope structure."""
    response = await async_client.get("/v1/healthz")

    data = response.json()

    # Check response envelope structure
    required_keys = ["ok", "data", "message", "request_id"]
    for key in required_keys:
        assert key in data

    # Check that request ID is present in headers
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_health_reports_queue_depth(
    async_client: AsyncClient, session_factory, test_settings
):
    async with session_factory() as session:
        await JobService(test_settings).enqueue(session, JobType.RESEARCH, {})

    response = await async_client.get("/v1/healthz")

    queue = response.json()["data"]["queue"]
    assert queue["queue_depth"] == 1
    assert queue["processing"] == 0
    assert queue["due_now"] == 1
    assert queue["stuck_jobs_count"] == 0
