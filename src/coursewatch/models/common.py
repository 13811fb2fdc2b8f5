"""Shared API models: the error envelope and the operational health payloads."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class ErrorDetail(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: str
    message: str
    details: dict[str, Any] | list[Any] | str | None = None
    trace_id: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Body of every ``CourseWatchError`` response."""

    model_config = ConfigDict(extra="forbid")

    error: ErrorDetail


class QueueCounts(BaseModel):
    """Job counts of one delivery queue, by state."""

    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
    delayed: int = 0


class QueueStatsResponse(BaseModel):
    queues: dict[str, QueueCounts]


class ReadinessResponse(BaseModel):
    status: Literal["ready", "not_ready"]
    checks: dict[str, str]
