"""
Plan API routes - plan management, item generation and item updates.
"""

from datetime import date
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.config.logging import get_logger
from api.config.settings import Settings, get_settings
from api.infra.database import get_session
from api.v1.core.exceptions import create_success_response
from api.v1.core.security import Principal, get_principal
from api.v1.plans.capabilities import get_plan_item_capabilities
from api.v1.plans.generator import PlanGenerator
from api.v1.plans.schemas import (
    GeneratePlanItemsRequest,
    PlanCreate,
    PlanItemUpdate,
    PlanListResponse,
    PlanResponse,
    RegenerateTopicsRequest,
    RegenerateTopicsResponse,
    SlotOverrides,
)
from api.v1.plans.service import PlanService
from api.v1.plans.topics import get_topic_dispatcher

logger = get_logger(__name__)

router = APIRouter(prefix="/plans", tags=["plans"])


def get_plan_service(settings: Settings = Depends(get_settings)) -> PlanService:
    return PlanService(settings, get_plan_item_capabilities())


def get_plan_generator(settings: Settings = Depends(get_settings)) -> PlanGenerator:
    return PlanGenerator(
        settings,
        get_plan_item_capabilities(),
        dispatcher=get_topic_dispatcher(settings),
    )


@router.post("", response_model=dict)
async def create_plan(
    request: PlanCreate,
    db: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_principal),
    service: PlanService = Depends(get_plan_service),
) -> dict[str, Any]:
    """Create a new content plan."""
    plan = await service.create_plan(db, principal.owner_uuid, request)
    return create_success_response(data=PlanResponse.model_validate(plan).model_dump())


@router.get("", response_model=dict)
async def list_plans(
    db: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_principal),
    service: PlanService = Depends(get_plan_service),
) -> dict[str, Any]:
    plans = await service.list_plans(db, principal.owner_uuid)
    response = PlanListResponse(
        plans=[PlanResponse.model_validate(plan) for plan in plans], total=len(plans)
    )
    return create_success_response(data=response.model_dump())


@router.get("/{plan_id}", response_model=dict)
async def get_plan(
    plan_id: UUID,
    db: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_principal),
    service: PlanService = Depends(get_plan_service),
) -> dict[str, Any]:
    plan = await service.get_plan(db, plan_id, principal.owner_uuid)
    return create_success_response(data=PlanResponse.model_validate(plan).model_dump())


@router.delete("/{plan_id}", response_model=dict)
async def delete_plan(
    plan_id: UUID,
    db: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_principal),
    service: PlanService = Depends(get_plan_service),
) -> dict[str, Any]:
    """Soft delete a plan; its items are kept."""
    await service.delete_plan(db, plan_id, principal.owner_uuid)
    return create_success_response(data={"success": True, "plan_id": str(plan_id)})


@router.post("/{plan_id}/generate", response_model=dict)
async def generate_plan_items(
    plan_id: UUID,
    request: GeneratePlanItemsRequest,
    db: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_principal),
    generator: PlanGenerator = Depends(get_plan_generator),
) -> dict[str, Any]:
    """Generate dated items for a plan over a window."""
    overrides = SlotOverrides(
        times=request.times,
        topics=request.topics,
        categories=request.categories,
        avatar_ids=request.avatar_ids,
        look_ids=request.look_ids,
    )
    result = await generator.generate(
        db,
        plan_id,
        principal.owner_uuid,
        request.start_date,
        request.end_date,
        overrides,
    )

    logger.info(
        "Plan items generated via API",
        plan_id=str(plan_id),
        items=len(result.items),
        user_id=principal.user_id,
    )
    return create_success_response(data=result.to_response().model_dump())


@router.get("/{plan_id}/items", response_model=dict)
async def get_plan_items(
    plan_id: UUID,
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_principal),
    service: PlanService = Depends(get_plan_service),
) -> dict[str, Any]:
    items = await service.get_plan_items(
        db, plan_id, principal.owner_uuid, start_date, end_date
    )
    return create_success_response(
        data={"items": [item.model_dump() for item in items], "total": len(items)}
    )


@router.patch("/items/{item_id}", response_model=dict)
async def update_plan_item(
    item_id: UUID,
    request: PlanItemUpdate,
    db: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_principal),
    service: PlanService = Depends(get_plan_service),
) -> dict[str, Any]:
    item = await service.update_plan_item(db, item_id, principal.owner_uuid, request)
    return create_success_response(data=item.model_dump())


@router.post("/{plan_id}/topics/regenerate", response_model=dict)
async def regenerate_topics(
    plan_id: UUID,
    request: RegenerateTopicsRequest,
    db: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_principal),
    service: PlanService = Depends(get_plan_service),
) -> dict[str, Any]:
    """Queue topic_generation jobs for topic-less items on a date."""
    job_ids = await service.regenerate_topics_for_date(
        db, plan_id, principal.owner_uuid, request.scheduled_date
    )
    return create_success_response(
        data=RegenerateTopicsResponse(job_ids=job_ids).model_dump()
    )
