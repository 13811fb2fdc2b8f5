"""Health, readiness and queue inspection endpoints."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from coursewatch import __version__
from coursewatch.dependencies import Worker
from coursewatch.models.common import QueueStatsResponse, ReadinessResponse

router = APIRouter()


@router.get("/health")
async def health_check():
    """Return service health status."""
    return {"status": "healthy", "service": "coursewatch", "version": __version__}


@router.get("/health/live")
async def liveness():
    """Liveness probe: 200 while the process is running."""
    return {"status": "alive"}


@router.get("/health/ready", response_model=ReadinessResponse, responses={503: {"model": ReadinessResponse}})
async def readiness(request: Request):
    """Readiness probe: database, queue store and notification service."""
    checks: dict[str, str] = {}
    overall_ok = True

    try:
        session_factory = request.app.state.db_session_factory
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = f"error: {exc}"
        overall_ok = False

    worker = getattr(request.app.state, "worker", None)
    if worker is None or worker.backend is None:
        checks["queues"] = "not_configured"
        overall_ok = False
    else:
        try:
            await worker.backend.ping()
            checks["queues"] = "ok"
        except Exception as exc:
            checks["queues"] = f"error: {exc}"
            overall_ok = False

    if worker is not None and worker.is_ready:
        checks["notification_service"] = "ok"
    else:
        checks["notification_service"] = "not_ready"
        overall_ok = False

    return JSONResponse(
        status_code=200 if overall_ok else 503,
        content=ReadinessResponse(status="ready" if overall_ok else "not_ready", checks=checks).model_dump(),
    )


@router.get("/health/queues", response_model=QueueStatsResponse)
async def queue_stats(worker: Worker):
    """Per-queue job counts."""
    return {"queues": await worker.service.get_queue_stats()}


@router.get("/health/scheduler")
async def scheduler_status(worker: Worker):
    """Scheduled triggers and their next run times."""
    return worker.scheduler.get_status()
