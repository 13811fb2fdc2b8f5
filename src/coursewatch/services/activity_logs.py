"""Activity log submission, the call point that feeds the late-submission check."""

import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coursewatch.db.models.activity_log import ActivityLogRow
from coursewatch.errors.exceptions import (
    AllocationNotFoundError,
    AuthorizationError,
    ConflictError,
    ValidationError,
)
from coursewatch.events.submission_events import (
    ACTIVITY_LOG_SUBMITTED,
    SubmissionEventBus,
    build_submitted_event,
)
from coursewatch.models.activity_log import ActivityLogSubmit
from coursewatch.repositories.activity_log_repo import ActivityLogRepository
from coursewatch.repositories.course_offering_repo import CourseOfferingRepository
from coursewatch.services.id_generator import generate_id

logger = logging.getLogger(__name__)


class ActivityLogService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], events: SubmissionEventBus):
        self.session_factory = session_factory
        self.events = events

    async def submit(
        self,
        facilitator_id: str,
        allocation_id: str,
        week_number: int,
        *,
        submitted_at: datetime | None = None,
        **fields: Any,
    ) -> ActivityLogRow:
        """Persist a facilitator's weekly log and announce it.

        The ``activity_log.submitted`` event is emitted only after the commit, and
        whatever its subscribers do never changes the returned log.
        """
        try:
            data = ActivityLogSubmit(week_number=week_number, **fields)
        except PydanticValidationError as exc:
            raise ValidationError("Invalid activity log", details=str(exc)) from None

        submitted_at = submitted_at or datetime.now(timezone.utc)

        async with self.session_factory() as session:
            offering = await CourseOfferingRepository(session).get(allocation_id)
            if offering is None:
                raise AllocationNotFoundError(allocation_id)
            if offering.facilitator_id != facilitator_id:
                raise AuthorizationError("Course offering is not assigned to this facilitator")

            logs = ActivityLogRepository(session)
            if await logs.exists(allocation_id, data.week_number):
                raise ConflictError(
                    f"Activity log for week {data.week_number} of {allocation_id} already exists"
                )

            row = await logs.create(
                log_id=generate_id("log_"),
                allocation_id=allocation_id,
                submitted_at=submitted_at,
                **data.model_dump(mode="json"),
            )
            await session.commit()

        logger.info(
            "Activity log %s submitted for %s week %d",
            row.log_id, allocation_id, data.week_number,
        )
        self.events.emit(
            ACTIVITY_LOG_SUBMITTED,
            build_submitted_event(row.log_id, allocation_id, data.week_number, facilitator_id, submitted_at),
        )
        return row
