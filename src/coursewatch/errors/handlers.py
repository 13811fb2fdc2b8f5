"""FastAPI exception handlers producing ErrorResponse bodies."""

import logging
import uuid
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from coursewatch.errors.exceptions import CourseWatchError, NotInitializedError
from coursewatch.models.common import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)

# Seconds a client should wait before retrying while the worker is still starting.
NOT_READY_RETRY_AFTER = 5


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI app."""

    @app.exception_handler(CourseWatchError)
    async def coursewatch_error_handler(request: Request, exc: CourseWatchError):
        trace_id = request.headers.get("X-Trace-Id") or uuid.uuid4().hex
        if exc.status_code >= 500:
            logger.warning("request_failed path=%s code=%s: %s", request.url.path, exc.code, exc.message)

        headers = {"X-Trace-Id": trace_id}
        if isinstance(exc, NotInitializedError):
            headers["Retry-After"] = str(NOT_READY_RETRY_AFTER)

        body = ErrorResponse(
            error=ErrorDetail(
                code=exc.code,
                message=exc.message,
                details=exc.details,
                trace_id=trace_id,
                timestamp=datetime.now(timezone.utc),
            ),
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=body.model_dump(mode="json", exclude_none=True),
            headers=headers,
        )
