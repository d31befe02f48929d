"""
Plan service: plan CRUD, item access and the queries downstream stages poll.
"""

import logging
from collections.abc import Callable
from datetime import UTC, date, datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import undefer

from api.config.settings import Settings
from api.infra.database import store_errors
from api.v1.core.exceptions import PlanItemNotFoundError, PlanNotFoundError
from api.v1.infra.jobs.models import JobType
from api.v1.infra.jobs.service import JobService
from api.v1.plans.capabilities import SchemaCapabilityCache
from api.v1.plans.models import (
    OPTIONAL_ITEM_COLUMNS,
    AutoScheduleTrigger,
    Plan,
    PlanItem,
    PlanItemStatus,
    ScriptStatus,
)
from api.v1.plans.schemas import PlanCreate, PlanItemResponse, PlanItemUpdate

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class PlanService:
    """Service for managing plans and their items."""

    def __init__(
        self,
        settings: Settings,
        capabilities: SchemaCapabilityCache,
        job_service: JobService | None = None,
        clock: Clock | None = None,
    ):
        self.settings = settings
        self.capabilities = capabilities
        self.clock = clock or (lambda: datetime.now(UTC))
        self.job_service = job_service or JobService(settings, clock=self.clock)

    def _item_options(self) -> list:
        """Load optional columns only once they are known to exist."""
        return [
            undefer(getattr(PlanItem, column))
            for column in OPTIONAL_ITEM_COLUMNS
            if self.capabilities.status(column) is True
        ]

    async def create_plan(
        self, session: AsyncSession, owner_id: UUID, plan_create: PlanCreate
    ) -> Plan:
        now = self.clock()
        plan = Plan(
            id=uuid4(),
            user_id=owner_id,
            **plan_create.model_dump(),
            created_at=now,
            updated_at=now,
        )
        plan.auto_schedule_trigger = plan_create.auto_schedule_trigger.value

        async with store_errors(session, "create_plan"):
            session.add(plan)
            await session.commit()
            await session.refresh(plan)

        logger.info(
            "Plan created", extra={"plan_id": str(plan.id), "owner_id": str(owner_id)}
        )
        return plan

    async def list_plans(self, session: AsyncSession, owner_id: UUID) -> list[Plan]:
        async with store_errors(session, "list_plans"):
            result = await session.execute(
                select(Plan)
                .where(and_(Plan.user_id == owner_id, Plan.deleted_at.is_(None)))
                .order_by(Plan.created_at.desc())
            )
            return list(result.scalars().all())

    async def get_plan(
        self, session: AsyncSession, plan_id: UUID, owner_id: UUID
    ) -> Plan:
        async with store_errors(session, "get_plan"):
            result = await session.execute(
                select(Plan).where(
                    and_(
                        Plan.id == plan_id,
                        Plan.user_id == owner_id,
                        Plan.deleted_at.is_(None),
                    )
                )
            )
            plan = result.scalar_one_or_none()

        if plan is None:
            raise PlanNotFoundError(details={"plan_id": str(plan_id)})
        return plan

    async def delete_plan(
        self, session: AsyncSession, plan_id: UUID, owner_id: UUID
    ) -> None:
        """Soft delete: the plan stops generating, its items stay."""
        plan = await self.get_plan(session, plan_id, owner_id)
        now = self.clock()
        async with store_errors(session, "delete_plan"):
            plan.deleted_at = now
            plan.enabled = False
            plan.updated_at = now
            await session.commit()

        logger.info("Plan deleted", extra={"plan_id": str(plan_id)})

    async def get_plan_items(
        self,
        session: AsyncSession,
        plan_id: UUID,
        owner_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[PlanItemResponse]:
        """Items in schedule order; unset platforms inherit the plan default."""
        plan = await self.get_plan(session, plan_id, owner_id)
        default_platforms = plan.default_platforms

        query = select(PlanItem).where(PlanItem.plan_id == plan_id)
        if start_date:
            query = query.where(PlanItem.scheduled_date >= start_date)
        if end_date:
            query = query.where(PlanItem.scheduled_date <= end_date)

        async with store_errors(session, "get_plan_items"):
            result = await session.execute(
                query.options(*self._item_options()).order_by(
                    PlanItem.scheduled_date, PlanItem.scheduled_time
                )
            )
            items = result.scalars().all()

        return [PlanItemResponse.from_item(item, default_platforms) for item in items]

    async def _get_owned_item(
        self, session: AsyncSession, item_id: UUID, owner_id: UUID
    ) -> PlanItem:
        result = await session.execute(
            select(PlanItem)
            .join(Plan, Plan.id == PlanItem.plan_id)
            .where(and_(PlanItem.id == item_id, Plan.user_id == owner_id))
            .options(*self._item_options())
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise PlanItemNotFoundError(details={"plan_item_id": str(item_id)})
        return item

    async def update_plan_item(
        self,
        session: AsyncSession,
        item_id: UUID,
        owner_id: UUID,
        updates: PlanItemUpdate,
    ) -> PlanItemResponse:
        async with store_errors(session, "update_plan_item"):
            item = await self._get_owned_item(session, item_id, owner_id)
            for key, value in updates.model_dump(exclude_unset=True, mode="python").items():
                if isinstance(value, Enum):
                    value = value.value
                setattr(item, key, value)
            item.updated_at = self.clock()
            await session.commit()

        return PlanItemResponse.from_item(item)

    async def get_plans_due_for_processing(self, session: AsyncSession) -> list[Plan]:
        """Enabled plans with an automatic schedule trigger."""
        async with store_errors(session, "get_plans_due_for_processing"):
            result = await session.execute(
                select(Plan).where(
                    and_(
                        Plan.enabled.is_(True),
                        Plan.deleted_at.is_(None),
                        Plan.auto_schedule_trigger.in_(
                            [
                                AutoScheduleTrigger.DAILY.value,
                                AutoScheduleTrigger.TIME_BASED.value,
                            ]
                        ),
                    )
                )
            )
            return list(result.scalars().all())

    async def _items_on_enabled_plans(
        self, session: AsyncSession, operation: str, *criteria
    ) -> list[PlanItemResponse]:
        async with store_errors(session, operation):
            result = await session.execute(
                select(PlanItem)
                .join(Plan, Plan.id == PlanItem.plan_id)
                .where(and_(Plan.enabled.is_(True), Plan.deleted_at.is_(None), *criteria))
                .options(*self._item_options())
                .order_by(PlanItem.scheduled_date, PlanItem.scheduled_time)
            )
            items = result.scalars().all()
        return [PlanItemResponse.from_item(item) for item in items]

    async def get_items_ready_for_script_generation(
        self, session: AsyncSession
    ) -> list[PlanItemResponse]:
        return await self._items_on_enabled_plans(
            session,
            "get_items_ready_for_script_generation",
            PlanItem.status == PlanItemStatus.READY.value,
            PlanItem.script.is_(None),
        )

    async def get_items_awaiting_approval(
        self, session: AsyncSession
    ) -> list[PlanItemResponse]:
        return await self._items_on_enabled_plans(
            session,
            "get_items_awaiting_approval",
            PlanItem.script_status == ScriptStatus.DRAFT.value,
        )

    async def get_items_ready_for_video(
        self, session: AsyncSession
    ) -> list[PlanItemResponse]:
        return await self._items_on_enabled_plans(
            session,
            "get_items_ready_for_video",
            PlanItem.status == PlanItemStatus.APPROVED.value,
            PlanItem.script_status == ScriptStatus.APPROVED.value,
            PlanItem.video_id.is_(None),
            PlanItem.script.is_not(None),
        )

    async def get_items_ready_for_distribution(
        self, session: AsyncSession
    ) -> list[PlanItemResponse]:
        return await self._items_on_enabled_plans(
            session,
            "get_items_ready_for_distribution",
            PlanItem.status == PlanItemStatus.COMPLETED.value,
            PlanItem.video_id.is_not(None),
        )

    async def regenerate_topics_for_date(
        self,
        session: AsyncSession,
        plan_id: UUID,
        owner_id: UUID,
        scheduled_date: date,
    ) -> list[UUID]:
        """Queue a topic_generation job for every topic-less item on a date."""
        await self.get_plan(session, plan_id, owner_id)

        async with store_errors(session, "regenerate_topics_for_date"):
            result = await session.execute(
                select(PlanItem.id).where(
                    and_(
                        PlanItem.plan_id == plan_id,
                        PlanItem.scheduled_date == scheduled_date,
                        PlanItem.topic.is_(None),
                    )
                )
            )
            item_ids = list(result.scalars().all())

        job_ids = []
        for item_id in item_ids:
            job = await self.job_service.enqueue(
                session,
                JobType.TOPIC_GENERATION,
                {"plan_item_id": str(item_id), "user_id": str(owner_id)},
            )
            job_ids.append(job.id)

        logger.info(
            "Topic regeneration queued",
            extra={
                "plan_id": str(plan_id),
                "scheduled_date": scheduled_date.isoformat(),
                "jobs": len(job_ids),
            },
        )
        return job_ids
