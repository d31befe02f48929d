"""
Job registry initialization.

Registers all job handlers with the global job registry.
"""

import logging

from api.config.settings import settings
from api.v1.core.registries import job_registry
from api.v1.infra.jobs.handlers import TopicGenerationHandler
from api.v1.infra.jobs.models import JobType

logger = logging.getLogger(__name__)


def register_job_handlers() -> None:
    """Register all job handlers with the job registry."""

    logger.info("Registering job handlers")

    job_registry.register(
        JobType.TOPIC_GENERATION.value, TopicGenerationHandler(settings)
    )

    logger.info(
        "Job handlers registered", extra={"registered_handlers": job_registry.list()}
    )


# Auto-register handlers when module is imported
register_job_handlers()
