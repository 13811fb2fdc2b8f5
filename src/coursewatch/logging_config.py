"""Structured logging for the API and the notification worker.

Modules log through stdlib ``logging.getLogger(__name__)``; structlog renders
every record (JSON in production, console locally) and merges the context
variables bound around job attempts and trigger runs.
"""

import logging
import sys

import structlog

JOB_CONTEXT_KEYS = ("queue", "job_id", "attempt")
TRIGGER_CONTEXT_KEYS = ("trigger",)

_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "apscheduler.executors", "apscheduler.scheduler")


def _stamp_service(service: str):
    def processor(logger, method_name, event_dict):
        event_dict.setdefault("service", service)
        return event_dict

    return processor


def configure_logging(log_level: str = "info", json_output: bool = False, service: str = "coursewatch") -> None:
    """Route stdlib logging through structlog.

    Args:
        log_level: debug/info/warning/error.
        json_output: JSON lines when True, coloured console otherwise.
        service: value of the ``service`` field stamped on every record.
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _stamp_service(service),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_job_context(queue: str, job_id: str, attempt: int | None = None) -> None:
    """Bind queue/job identifiers to the current async context."""
    ctx: dict = {"queue": queue, "job_id": job_id}
    if attempt is not None:
        ctx["attempt"] = attempt
    structlog.contextvars.bind_contextvars(**ctx)


def clear_job_context() -> None:
    structlog.contextvars.unbind_contextvars(*JOB_CONTEXT_KEYS)


def bind_trigger_context(trigger: str) -> None:
    """Tag every record of a scheduled scan with the trigger name."""
    structlog.contextvars.bind_contextvars(trigger=trigger)


def clear_trigger_context() -> None:
    structlog.contextvars.unbind_contextvars(*TRIGGER_CONTEXT_KEYS)
