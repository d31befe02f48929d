import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, date, datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from api.config.settings import Settings
from api.infra.database import Base, get_session
from api.main import create_app

# Import models to ensure they're registered
from api.v1.infra.jobs import models as job_models  # noqa: F401
from api.v1.plans import models as plan_models  # noqa: F401
from api.v1.plans.capabilities import SchemaCapabilityCache
from api.v1.plans.models import Plan

TEST_USER_ID = "test_user_123"
TEST_OWNER = uuid.uuid5(uuid.NAMESPACE_DNS, TEST_USER_ID)


class FrozenClock:
    """Callable clock tests can move forward explicitly."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now = self.now + timedelta(**delta)


@pytest.fixture
async def test_engine(tmp_path):
    """A file-backed SQLite database per test; every session gets its own connection."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'content_ops.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine, class_=AsyncSession, expire_on_commit=False
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        environment="development",
        database_url="sqlite+aiosqlite://",
        job_poll_interval_s=0.01,
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2023, 12, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
def capabilities() -> SchemaCapabilityCache:
    return SchemaCapabilityCache()


@pytest.fixture
def make_plan(db_session: AsyncSession):
    """Factory creating a plan owned by the test user."""

    async def _make_plan(**overrides) -> Plan:
        values = {
            "id": uuid.uuid4(),
            "user_id": TEST_OWNER,
            "name": "Test Plan",
            "videos_per_day": 2,
            "start_date": date(2024, 1, 1),
            "enabled": True,
            "auto_research": False,
            "timezone": "UTC",
        }
        values.update(overrides)
        plan = Plan(**values)
        db_session.add(plan)
        await db_session.commit()
        await db_session.refresh(plan)
        return plan

    return _make_plan


@pytest.fixture
def app(session_factory):
    """Create a test FastAPI application with test database."""
    from api.v1.core.security import Principal, get_principal

    app = create_app()

    async def get_test_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = get_test_session

    def get_test_principal():
        return Principal(user_id=TEST_USER_ID, roles=["admin"])

    app.dependency_overrides[get_principal] = get_test_principal

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
