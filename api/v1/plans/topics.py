"""
Topic assignment for plan items.

Generation never waits on topic research: items are created first and a
topic is attached afterwards, either by a detached task tracked by
``TopicAssignmentDispatcher`` or durably through a ``topic_generation`` job.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.config.logging import get_logger
from api.config.settings import Settings
from api.infra.database import get_database
from api.v1.core.exceptions import (
    PlanGenerationError,
    PlanItemNotFoundError,
    RateLimitError,
)
from api.v1.core.registries import TopicProvider, topic_provider_registry
from api.v1.plans.models import Plan, PlanItem, PlanItemStatus

logger = get_logger(__name__)

DEFAULT_CATEGORY = "general"

RATE_LIMIT_MESSAGE = (
    "Rate limit exceeded. The research service is temporarily unavailable. "
    "Please try again in a few minutes."
)


@dataclass(frozen=True)
class Topic:
    category: str
    idea: str


class StubTopicProvider:
    """
    Deterministic provider: one idea per configured category, same order
    every call. Used until a real research collaborator is registered.
    """

    def __init__(self, categories: Sequence[str]):
        self.categories = list(categories)

    async def generate_topics(self, owner_id: Any) -> list[Topic]:
        return [
            Topic(category=category, idea=f"{category}: idea {index + 1}")
            for index, category in enumerate(self.categories)
        ]


def sanitize_topic_error(error: BaseException) -> str:
    """Turn a provider failure into the message stored on the item."""
    message = str(error) or error.__class__.__name__
    if isinstance(error, RateLimitError):
        return RATE_LIMIT_MESSAGE
    lowered = message.lower()
    if "rate limit" in lowered or "429" in lowered:
        return RATE_LIMIT_MESSAGE
    return f"Failed to prepare topic: {message}"


class TopicAssigner:
    """Attaches a topic to one plan item and marks it ready."""

    def __init__(self, provider: TopicProvider):
        self.provider = provider

    async def assign(
        self, session: AsyncSession, item_id: UUID, owner_id: UUID
    ) -> PlanItem:
        item = await self._load_item(session, item_id, owner_id)
        now = datetime.now(UTC)

        # A user-supplied topic is never overwritten
        if item.topic:
            item.status = PlanItemStatus.READY.value
            item.error_message = None
            item.category = item.category or DEFAULT_CATEGORY
            item.updated_at = now
            await session.commit()
            return item

        try:
            topics = await self.provider.generate_topics(owner_id)
            if not topics:
                raise PlanGenerationError(
                    "Topic provider returned no topics",
                    details={"plan_item_id": str(item_id)},
                )
        except Exception as e:
            item.status = PlanItemStatus.FAILED.value
            item.error_message = sanitize_topic_error(e)
            item.updated_at = datetime.now(UTC)
            await session.commit()
            logger.warning(
                "Topic assignment failed",
                plan_item_id=str(item_id),
                error=str(e),
            )
            raise

        used = await self._sibling_categories(session, item)
        chosen = next((t for t in topics if t.category not in used), topics[0])

        item.topic = chosen.idea
        item.category = chosen.category
        item.status = PlanItemStatus.READY.value
        item.error_message = None
        item.updated_at = datetime.now(UTC)
        await session.commit()

        logger.info(
            "Topic assigned",
            plan_item_id=str(item_id),
            category=chosen.category,
        )
        return item

    async def _load_item(
        self, session: AsyncSession, item_id: UUID, owner_id: UUID
    ) -> PlanItem:
        result = await session.execute(
            select(PlanItem)
            .join(Plan, Plan.id == PlanItem.plan_id)
            .where(and_(PlanItem.id == item_id, Plan.user_id == owner_id))
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise PlanItemNotFoundError(details={"plan_item_id": str(item_id)})
        return item

    async def _sibling_categories(
        self, session: AsyncSession, item: PlanItem
    ) -> set[str]:
        """Categories already taken by other items on the same plan and date."""
        result = await session.execute(
            select(PlanItem.category).where(
                and_(
                    PlanItem.plan_id == item.plan_id,
                    PlanItem.scheduled_date == item.scheduled_date,
                    PlanItem.id != item.id,
                    PlanItem.category.is_not(None),
                )
            )
        )
        return set(result.scalars().all())


class TopicAssignmentDispatcher:
    """
    Runs topic assignments as detached tasks.

    Each task gets its own session. References are held until the task
    finishes so it cannot be garbage collected mid-flight; failures are
    already recorded on the item, the done-callback only logs them.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        assigner: TopicAssigner,
    ):
        self.session_factory = session_factory
        self.assigner = assigner
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, item_id: UUID, owner_id: UUID) -> asyncio.Task:
        task = asyncio.create_task(
            self._run(item_id, owner_id), name=f"topic-assignment-{item_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    async def _run(self, item_id: UUID, owner_id: UUID) -> UUID:
        async with self.session_factory() as session:
            item = await self.assigner.assign(session, item_id, owner_id)
            return item.id

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Topic assignment cancelled", task=task.get_name())
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Background topic assignment failed",
                task=task.get_name(),
                error=str(error),
                error_type=error.__class__.__name__,
            )

    async def drain(self) -> None:
        """Wait for every in-flight assignment to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


def build_topic_assigner(settings: Settings) -> TopicAssigner:
    return TopicAssigner(topic_provider_registry.get(settings.topic_provider.value))


# Dispatcher instance management
_dispatcher: TopicAssignmentDispatcher | None = None


def get_topic_dispatcher(settings: Settings) -> TopicAssignmentDispatcher:
    """Get or create the process-wide dispatcher."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = TopicAssignmentDispatcher(
            get_database(settings).SessionLocal, build_topic_assigner(settings)
        )
    return _dispatcher


async def shutdown_topic_dispatcher() -> None:
    """Let in-flight assignments finish before the process exits."""
    global _dispatcher
    if _dispatcher is not None:
        if _dispatcher.pending:
            logger.info("Waiting for topic assignments", pending=_dispatcher.pending)
        await _dispatcher.drain()
        _dispatcher = None
