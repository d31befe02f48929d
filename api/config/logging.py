import logging
import sys
from typing import Any

import structlog

from .settings import settings

# Applied to structlog events and to stdlib records alike
_SHARED_PROCESSORS: list[Any] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
]


def _renderer() -> Any:
    use_json = settings.log_format == "json" or (
        settings.log_format is None and not settings.debug
    )
    if use_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def setup_logging() -> None:
    """
    Configure structlog and route stdlib logging through the same renderer.

    Modules log either with ``get_logger(__name__).info("msg", key=value)`` or
    with ``logging.getLogger(__name__).info("msg", extra={...})``; both end up
    as one line with the same keys and the bound request/job context.
    """
    level = getattr(logging, settings.log_level)

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[*_SHARED_PROCESSORS, structlog.stdlib.ExtraAdder()],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(),
        ],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    # SQL echo is controlled by the engine, not by the app log level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            (
                structlog.processors.CallsiteParameterAdder(
                    parameters=[structlog.processors.CallsiteParameter.FUNC_NAME]
                )
                if settings.debug
                else structlog.processors.CallsiteParameterAdder(parameters=[])
            ),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def add_request_context(request_id: str, **context: Any) -> None:
    """Add request-specific context to all log messages."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **context)


def bind_job_context(job_id: str, job_type: str, **context: Any) -> None:
    """Attach the running job to every log line emitted by its handler."""
    structlog.contextvars.bind_contextvars(job_id=job_id, job_type=job_type, **context)


def clear_job_context() -> None:
    structlog.contextvars.unbind_contextvars("job_id", "job_type")
