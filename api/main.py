from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from api.config.logging import get_logger, setup_logging
from api.config.settings import settings
from api.infra.database import close_database
from api.v1.core.exceptions import (
    ContentOpsException,
    RequestContextMiddleware,
    content_ops_exception_handler,
    general_exception_handler,
    http_exception_handler,
)
from api.v1.core.registries import job_registry, topic_provider_registry
from api.v1.healthz import router as health_router
from api.v1.infra.jobs import registry_init as _job_handlers  # noqa: F401
from api.v1.infra.jobs.routes import router as jobs_router
from api.v1.plans.registry_init import init_plan_registries
from api.v1.plans.routes import router as plans_router
from api.v1.plans.topics import shutdown_topic_dispatcher

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Content Ops API", environment=settings.environment)
    yield
    await shutdown_topic_dispatcher()
    await close_database()
    logger.info("Content Ops API stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    # Initialize structured logging
    setup_logging()

    init_plan_registries()

    app = FastAPI(
        title=settings.app_name,
        description="Background job queue and recurring content plan generation",
        version=settings.version,
        debug=settings.debug,
        # All endpoints will be under /v1/ prefix
        openapi_url="/v1/openapi.json" if settings.debug else None,
        docs_url="/v1/docs" if settings.debug else None,
        redoc_url="/v1/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # Add middleware
    app.add_middleware(RequestContextMiddleware)

    # Add CORS middleware for development
    if settings.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Add exception handlers
    app.add_exception_handler(ContentOpsException, content_ops_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Include routers with /v1 prefix
    app.include_router(health_router, prefix="/v1", tags=["health"])
    app.include_router(jobs_router, prefix="/v1")
    app.include_router(plans_router, prefix="/v1")

    # Freeze registries in non-development environments to prevent runtime modifications
    if settings.environment != "development":
        job_registry.freeze()
        topic_provider_registry.freeze()

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers,
    )
