"""Tests for the topic_generation job handler."""

import uuid
from datetime import date, time

import pytest

from api.v1.infra.jobs.handlers import TopicGenerationHandler
from api.v1.plans.models import PlanItem, PlanItemStatus
from api.v1.plans.topics import StubTopicProvider, TopicAssigner
from tests.conftest import TEST_OWNER


@pytest.fixture
def handler(test_settings):
    return TopicGenerationHandler(
        test_settings, assigner=TopicAssigner(StubTopicProvider(["Lifestyle"]))
    )


class TestTopicGenerationHandler:
    @pytest.mark.asyncio
    async def test_assigns_topic(self, db_session, make_plan, handler):
        plan = await make_plan()
        item = PlanItem(
            id=uuid.uuid4(),
            plan_id=plan.id,
            scheduled_date=date(2024, 1, 1),
            scheduled_time=time(9, 0),
            status=PlanItemStatus.PENDING.value,
        )
        db_session.add(item)
        await db_session.commit()

        result = await handler.handle(
            db_session, {"plan_item_id": str(item.id), "user_id": str(TEST_OWNER)}
        )

        assert result == {
            "status": "completed",
            "plan_item_id": str(item.id),
            "category": "Lifestyle",
        }
        assert item.status == PlanItemStatus.READY.value

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"plan_item_id": str(uuid.uuid4())},
            {"plan_item_id": "not-a-uuid", "user_id": str(uuid.uuid4())},
        ],
    )
    async def test_invalid_payload(self, db_session, handler, payload):
        with pytest.raises(ValueError):
            await handler.handle(db_session, payload)

    def test_assigner_resolved_from_registry(self, test_settings):
        from api.v1.plans.registry_init import init_plan_registries

        init_plan_registries()
        handler = TopicGenerationHandler(test_settings)

        assert isinstance(handler.assigner.provider, StubTopicProvider)
