"""FastAPI application factory and lifespan management."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from coursewatch import __version__
from coursewatch.config import settings
from coursewatch.logging_config import configure_logging

# Configure logging at import time
configure_logging(log_level=settings.log_level, json_output=settings.json_logs and not settings.local_mode)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the notification worker embedded in the API process."""
    from coursewatch.workers.runner import NotificationWorker

    worker = NotificationWorker(settings)
    await worker.start()

    app.state.worker = worker
    app.state.db_engine = worker.engine
    app.state.db_session_factory = worker.session_factory

    logger.info(
        "CourseWatch API started (db=%s, queues=%s)",
        "sqlite" if "sqlite" in settings.effective_database_url else "postgresql",
        settings.effective_queue_backend,
    )
    yield

    await worker.stop()
    logger.info("CourseWatch API shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="CourseWatch Notifications",
        version=__version__,
        description="Compliance scanning and notification delivery for course activity logs.",
        lifespan=lifespan,
    )

    from coursewatch.errors.handlers import register_exception_handlers
    register_exception_handlers(app)

    from coursewatch.api.router import api_router
    app.include_router(api_router)

    return app


app = create_app()
