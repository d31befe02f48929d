"""
Plan item generation.

Expands a plan into dated items over a window. Items are committed one at
a time so a failure late in a run keeps everything created before it.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time
from typing import Any, Protocol
from uuid import UUID, uuid4

from sqlalchemy import and_, insert, select
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.config.logging import get_logger
from api.config.settings import Settings
from api.v1.core.exceptions import PlanGenerationError, PlanNotFoundError
from api.v1.plans.calendar import (
    PlanWindow,
    iter_calendar_dates,
    parse_calendar_date,
    parse_trigger_time,
    plan_wall_clock,
    resolve_time_slots,
    resolve_window,
)
from api.v1.plans.capabilities import SchemaCapabilityCache, is_missing_column_error
from api.v1.plans.models import OPTIONAL_ITEM_COLUMNS, Plan, PlanItem, PlanItemStatus
from api.v1.plans.schemas import GenerationResponse, PlanItemResponse, SlotOverrides

logger = get_logger(__name__)

Clock = Callable[[], datetime]


class TopicDispatcher(Protocol):
    def dispatch(self, item_id: UUID, owner_id: UUID) -> asyncio.Task: ...


@dataclass
class GenerationResult:
    plan_id: UUID
    window: PlanWindow
    time_slots: list[str]
    items: list[PlanItemResponse] = field(default_factory=list)
    days: int = 0
    topic_tasks: list[asyncio.Task] = field(default_factory=list)

    def to_response(self) -> GenerationResponse:
        return GenerationResponse(
            plan_id=self.plan_id,
            effective_start=self.window.start,
            effective_end=self.window.end,
            days=self.days,
            time_slots=self.time_slots,
            skipped_today=self.window.skipped_today,
            items=self.items,
            topic_assignments_dispatched=len(self.topic_tasks),
        )


def _slot_value(values: list[str | None] | None, index: int) -> str | None:
    """Trimmed override at ``index``; blanks and missing entries are None."""
    if not values or index >= len(values) or values[index] is None:
        return None
    return values[index].strip() or None


class PlanGenerator:
    """Creates the items of a plan for a date window."""

    def __init__(
        self,
        settings: Settings,
        capabilities: SchemaCapabilityCache,
        dispatcher: TopicDispatcher | None = None,
        clock: Clock | None = None,
    ):
        self.settings = settings
        self.capabilities = capabilities
        self.dispatcher = dispatcher
        self.clock = clock or (lambda: datetime.now(UTC))

    async def generate(
        self,
        session: AsyncSession,
        plan_id: UUID,
        owner_id: UUID,
        start_date: str | date,
        end_date: str | date | None = None,
        overrides: SlotOverrides | None = None,
    ) -> GenerationResult:
        plan = await self._load_plan(session, plan_id, owner_id)
        overrides = overrides or SlotOverrides()

        # Plain values: a rollback during the loop expires the ORM instance
        videos_per_day = plan.videos_per_day
        default_platforms = plan.default_platforms
        auto_research = plan.auto_research

        today, current_time = plan_wall_clock(plan.timezone, self.clock())
        start = parse_calendar_date(start_date, "start_date")
        end = parse_calendar_date(end_date, "end_date") if end_date else None
        window = resolve_window(
            start,
            end,
            today=today,
            current_time=current_time,
            trigger_time=parse_trigger_time(plan.trigger_time),
            default_days=self.settings.plan_default_window_days,
        )
        slots = resolve_time_slots(overrides.times, videos_per_day)

        log = logger.bind(plan_id=str(plan_id), owner_id=str(owner_id))
        if window.skipped_today:
            log.info("Trigger time passed, starting tomorrow", today=today.isoformat())
        if window.end_extended:
            log.warning(
                "End date before start date, using default window",
                requested_end=end.isoformat() if end else None,
                effective_end=window.end.isoformat(),
            )

        result = GenerationResult(plan_id=plan_id, window=window, time_slots=slots)
        first_row = True

        for day in iter_calendar_dates(window.start, window.end, self.settings.plan_max_days):
            result.days += 1
            for index, slot in enumerate(slots):
                values = self._build_item(plan_id, day, index, slot, overrides, default_platforms)
                try:
                    row = await self._insert_item(session, values)
                except SQLAlchemyError as e:
                    if first_row:
                        log.error("First plan item insert failed", error=str(e))
                        raise PlanGenerationError(
                            f"Failed to create plan items: {e.__class__.__name__}",
                            details={
                                "plan_id": str(plan_id),
                                "scheduled_date": day.isoformat(),
                                "scheduled_time": slot,
                                "error": str(e),
                            },
                        ) from e
                    log.warning(
                        "Plan item insert failed, skipping",
                        scheduled_date=day.isoformat(),
                        scheduled_time=slot,
                        error=str(e),
                    )
                    continue
                finally:
                    first_row = False

                item = PlanItemResponse.model_validate(row)
                result.items.append(item)

                if auto_research and values["topic"] is None:
                    self._dispatch_topic(result, item.id, owner_id)

        if not result.items:
            raise PlanGenerationError(
                f"Failed to create any plan items after processing {result.days} days",
                details={
                    "plan_id": str(plan_id),
                    "effective_start": window.start.isoformat(),
                    "effective_end": window.end.isoformat(),
                    "days": result.days,
                    "time_slots": len(slots),
                    "requested_start": str(start_date),
                    "requested_end": str(end_date) if end_date else None,
                    "videos_per_day": videos_per_day,
                },
            )

        log.info(
            "Plan items generated",
            items=len(result.items),
            days=result.days,
            start=window.start.isoformat(),
            end=window.end.isoformat(),
            topic_tasks=len(result.topic_tasks),
        )
        return result

    async def _load_plan(
        self, session: AsyncSession, plan_id: UUID, owner_id: UUID
    ) -> Plan:
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

    def _build_item(
        self,
        plan_id: UUID,
        day: date,
        index: int,
        slot: str,
        overrides: SlotOverrides,
        default_platforms: list[str] | None,
    ) -> dict[str, Any]:
        topic = _slot_value(overrides.topics, index)
        now = self.clock()
        return {
            "id": uuid4(),
            "plan_id": plan_id,
            "scheduled_date": day,
            "scheduled_time": time.fromisoformat(slot),
            "topic": topic,
            "category": _slot_value(overrides.categories, index) if topic else None,
            "status": (
                PlanItemStatus.READY.value if topic else PlanItemStatus.PENDING.value
            ),
            "platforms": default_platforms,
            "avatar_id": _slot_value(overrides.avatar_ids, index),
            "look_id": _slot_value(overrides.look_ids, index),
            "created_at": now,
            "updated_at": now,
        }

    async def _insert_item(
        self, session: AsyncSession, values: dict[str, Any]
    ) -> dict[str, Any]:
        """
        Insert one item and commit, returning the stored row.

        Optional columns are only written when they carry a value and are not
        known to be missing. A write rejected for a missing optional column
        records that fact and is retried without it.
        """
        while True:
            payload = {
                key: value
                for key, value in values.items()
                if key not in OPTIONAL_ITEM_COLUMNS
                or (value is not None and self.capabilities.is_available(key))
            }
            returning = [
                column
                for column in PlanItem.__table__.columns
                if column.name not in OPTIONAL_ITEM_COLUMNS
                or column.name in payload
                or self.capabilities.status(column.name) is True
            ]

            try:
                result = await session.execute(
                    insert(PlanItem.__table__).values(**payload).returning(*returning)
                )
                row = result.one()
                await session.commit()
            except DBAPIError as e:
                await session.rollback()
                missing = next(
                    (
                        column
                        for column in OPTIONAL_ITEM_COLUMNS
                        if column in payload and is_missing_column_error(e, column)
                    ),
                    None,
                )
                if missing is None:
                    raise
                self.capabilities.mark_missing(missing)
                continue
            except SQLAlchemyError:
                await session.rollback()
                raise

            for column in OPTIONAL_ITEM_COLUMNS:
                if column in payload:
                    self.capabilities.mark_present(column)
            return dict(row._mapping)

    def _dispatch_topic(
        self, result: GenerationResult, item_id: UUID, owner_id: UUID
    ) -> None:
        if self.dispatcher is None:
            return
        try:
            task = self.dispatcher.dispatch(item_id, owner_id)
        except Exception as e:
            logger.error(
                "Topic assignment dispatch failed",
                plan_item_id=str(item_id),
                error=str(e),
            )
            return
        result.topic_tasks.append(task)
