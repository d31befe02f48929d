"""
Job handlers for background processing.

Handlers implement the JobHandler protocol and are registered in the job
registry under the job type they execute.
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from api.config.settings import Settings
from api.v1.plans.topics import TopicAssigner, build_topic_assigner

logger = logging.getLogger(__name__)


class TopicGenerationHandler:
    """
    Job handler that assigns a topic to one plan item.

    Payload expected:
    {
        "plan_item_id": "uuid-string",
        "user_id": "uuid-string"
    }

    Provider failures are recorded on the item and re-raised so the job is
    retried on the queue's schedule.
    """

    def __init__(self, settings: Settings, assigner: TopicAssigner | None = None):
        self.settings = settings
        self._assigner = assigner

    @property
    def assigner(self) -> TopicAssigner:
        # Resolved lazily so providers registered after this handler are seen
        if self._assigner is None:
            self._assigner = build_topic_assigner(self.settings)
        return self._assigner

    async def handle(
        self,
        session: AsyncSession,
        payload: dict[str, Any],
    ) -> dict[str, Any] | None:
        item_id_str = payload.get("plan_item_id")
        user_id_str = payload.get("user_id")
        if not item_id_str or not user_id_str:
            raise ValueError("plan_item_id and user_id are required in payload")

        try:
            item_id = UUID(item_id_str)
            owner_id = UUID(user_id_str)
        except ValueError:
            raise ValueError(
                f"Invalid payload ids: plan_item_id={item_id_str}, user_id={user_id_str}"
            )

        item = await self.assigner.assign(session, item_id, owner_id)

        logger.info(
            "Topic generation job finished",
            extra={"plan_item_id": item_id_str, "category": item.category},
        )
        return {
            "status": "completed",
            "plan_item_id": item_id_str,
            "category": item.category,
        }
