"""In-process submission events.

The activity-log submission path emits ``activity_log.submitted`` after its
transaction commits. Subscribers run as background tasks so nothing they do
(or fail to do) reaches the submitter.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from coursewatch.services.id_generator import generate_id

logger = logging.getLogger(__name__)

ACTIVITY_LOG_SUBMITTED = "activity_log.submitted"


class ActivityLogSubmitted(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_id: str
    log_id: str
    allocation_id: str
    week_number: int
    facilitator_id: str
    submitted_at: datetime


Subscriber = Callable[[ActivityLogSubmitted], Awaitable[None]]


class SubmissionEventBus:
    """Registry of async subscribers keyed by event type."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscriber]] = {}
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, event_type: str, subscriber: Subscriber) -> None:
        self._subscribers.setdefault(event_type, []).append(subscriber)

    def emit(self, event_type: str, event: ActivityLogSubmitted) -> int:
        """Schedule every subscriber of ``event_type``. Returns the number scheduled."""
        subscribers = self._subscribers.get(event_type, [])
        for subscriber in subscribers:
            task = asyncio.create_task(self._dispatch(event_type, subscriber, event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return len(subscribers)

    async def _dispatch(self, event_type: str, subscriber: Subscriber, event: ActivityLogSubmitted) -> None:
        try:
            await subscriber(event)
        except Exception:
            logger.exception(
                "Subscriber %s failed for %s (event=%s)",
                getattr(subscriber, "__qualname__", subscriber), event_type, event.event_id,
            )

    async def wait_idle(self) -> None:
        """Wait for every dispatched subscriber to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def build_submitted_event(
    log_id: str,
    allocation_id: str,
    week_number: int,
    facilitator_id: str,
    submitted_at: datetime,
) -> ActivityLogSubmitted:
    return ActivityLogSubmitted(
        event_id=generate_id("evt_"),
        log_id=log_id,
        allocation_id=allocation_id,
        week_number=week_number,
        facilitator_id=facilitator_id,
        submitted_at=submitted_at,
    )
