"""Notification record store.

Creates notification rows from fixed per-type templates and owns the two
lifecycle transitions (``mark_as_sent`` / ``mark_as_failed``). Only the job
processor is expected to call the transitions.
"""

import logging
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import selectinload

from coursewatch.db.base import utcnow
from coursewatch.db.models.course_offering import CourseOfferingRow
from coursewatch.db.models.notification import NotificationRow
from coursewatch.errors.exceptions import InvalidAlertTypeError, ValidationError
from coursewatch.models.enums import (
    AlertSeverity,
    AlertType,
    NotificationStatus,
    NotificationType,
)
from coursewatch.models.notification import FacilitatorInfo, NotificationCreate
from coursewatch.repositories.base import BaseRepository
from coursewatch.services.id_generator import generate_id

logger = logging.getLogger(__name__)

_CONTEXT = (
    selectinload(NotificationRow.recipient),
    selectinload(NotificationRow.course_offering).selectinload(CourseOfferingRow.module),
    selectinload(NotificationRow.course_offering).selectinload(CourseOfferingRow.class_),
)

REMINDER_TITLE = "Weekly Activity Log Reminder"
DEADLINE_WARNING_TITLE = "Activity Log Deadline Approaching"

ALERT_TITLES = {
    AlertType.MISSING_SUBMISSION: "Missing Activity Log Submission",
    AlertType.LATE_SUBMISSION: "Late Activity Log Submission",
    AlertType.COMPLIANCE_WARNING: "Compliance Warning",
}

ALERT_MESSAGES = {
    AlertType.MISSING_SUBMISSION: "{email} has not submitted their activity log for Week {week}.",
    AlertType.LATE_SUBMISSION: "{email} submitted their activity log for Week {week} after the deadline.",
    AlertType.COMPLIANCE_WARNING: "{email} has multiple missing submissions and requires attention.",
}


def _parse_alert_type(alert_type) -> AlertType:
    try:
        return AlertType(alert_type)
    except ValueError:
        raise InvalidAlertTypeError(alert_type) from None


def _error_message(error: BaseException | str) -> str:
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return str(error)


class NotificationRepository(BaseRepository[NotificationRow]):
    model_class = NotificationRow
    id_column = "notification_id"

    async def get_with_context(self, notification_id: str) -> NotificationRow | None:
        """Load a notification with its recipient and course offering (module, class)."""
        return await self.get(notification_id, *_CONTEXT)

    # ── creation ────────────────────────────────────────────────────

    async def create_notification(self, **fields: Any) -> NotificationRow:
        """Validate and persist a new ``pending`` notification.

        Raises:
            ValidationError: a required field is missing or ``type`` is unknown.
                Nothing is added to the session in that case.
        """
        try:
            data = NotificationCreate(**fields)
        except PydanticValidationError as exc:
            raise ValidationError(
                "Invalid notification input",
                details=[
                    {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                    for err in exc.errors()
                ],
            ) from None

        return await self.create(
            notification_id=generate_id("notif_"),
            type=str(data.type),
            recipient_id=data.recipient_id,
            allocation_id=data.allocation_id,
            week_number=data.week_number,
            title=data.title,
            message=data.message,
            status=NotificationStatus.PENDING.value,
            scheduled_for=data.scheduled_for,
            sent_at=None,
            extra_data=dict(data.metadata),
        )

    async def create_facilitator_reminder(
        self,
        facilitator_id: str,
        allocation_id: str,
        week_number: int,
        course_info: dict,
        scheduled_for: datetime | None = None,
    ) -> NotificationRow:
        return await self.create_notification(
            type=NotificationType.FACILITATOR_REMINDER,
            recipient_id=facilitator_id,
            allocation_id=allocation_id,
            week_number=week_number,
            title=REMINDER_TITLE,
            message=(
                f"Please submit your weekly activity log for Week {week_number} of "
                f"{course_info.get('moduleName')} ({course_info.get('className')})."
            ),
            scheduled_for=scheduled_for,
            metadata={"courseInfo": course_info, "reminderType": "weekly_submission"},
        )

    async def create_manager_alert(
        self,
        manager_id: str,
        facilitator_info: FacilitatorInfo | dict,
        allocation_id: str,
        week_number: int,
        alert_type: AlertType | str,
        scheduled_for: datetime | None = None,
    ) -> NotificationRow:
        alert = _parse_alert_type(alert_type)
        if not isinstance(facilitator_info, FacilitatorInfo):
            try:
                facilitator_info = FacilitatorInfo.model_validate(facilitator_info)
            except PydanticValidationError as exc:
                raise ValidationError("Invalid facilitator info", details=str(exc)) from None

        severity = AlertSeverity.HIGH if alert == AlertType.COMPLIANCE_WARNING else AlertSeverity.MEDIUM
        metadata: dict[str, Any] = {
            "facilitatorInfo": facilitator_info.as_metadata(),
            "alertType": alert.value,
            "severity": severity.value,
        }
        if facilitator_info.missed_weeks is not None:
            metadata["missedWeeks"] = list(facilitator_info.missed_weeks)

        return await self.create_notification(
            type=NotificationType.MANAGER_ALERT,
            recipient_id=manager_id,
            allocation_id=allocation_id,
            week_number=week_number,
            title=ALERT_TITLES[alert],
            message=ALERT_MESSAGES[alert].format(email=facilitator_info.email, week=week_number),
            scheduled_for=scheduled_for,
            metadata=metadata,
        )

    async def create_deadline_warning(
        self,
        facilitator_id: str,
        allocation_id: str,
        week_number: int,
        course_info: dict,
        days_remaining: int = 3,
    ) -> NotificationRow:
        return await self.create_notification(
            type=NotificationType.DEADLINE_WARNING,
            recipient_id=facilitator_id,
            allocation_id=allocation_id,
            week_number=week_number,
            title=DEADLINE_WARNING_TITLE,
            message=(
                f"Reminder: Your activity log for Week {week_number} of "
                f"{course_info.get('moduleName')} is due by end of this week."
            ),
            metadata={
                "courseInfo": course_info,
                "deadlineType": "weekly_submission",
                "daysRemaining": days_remaining,
            },
        )

    # ── lifecycle transitions ───────────────────────────────────────

    async def mark_as_sent(self, row: NotificationRow) -> bool:
        """Transition to ``sent``. Returns False if the row was already sent."""
        if row.status == NotificationStatus.SENT:
            logger.warning("Notification %s already sent; ignoring mark_as_sent", row.notification_id)
            return False

        metadata = dict(row.extra_data or {})
        if row.status == NotificationStatus.FAILED:
            # Earlier attempt failed; keep its error for audit but clear the failure marker.
            previous = list(metadata.get("previousErrors", []))
            previous.append({"error": metadata.pop("error", None), "failedAt": metadata.pop("failedAt", None)})
            metadata["previousErrors"] = previous

        row.status = NotificationStatus.SENT.value
        row.sent_at = utcnow()
        row.extra_data = metadata
        await self.session.flush()
        return True

    async def mark_as_failed(self, row: NotificationRow, error: BaseException | str) -> bool:
        """Transition to ``failed`` merging ``error``/``failedAt`` into metadata.

        A row that is already ``sent`` is left untouched and False is returned.
        """
        if row.status == NotificationStatus.SENT:
            logger.warning("Notification %s already sent; ignoring mark_as_failed", row.notification_id)
            return False

        row.status = NotificationStatus.FAILED.value
        row.extra_data = {
            **(row.extra_data or {}),
            "error": _error_message(error),
            "failedAt": utcnow().isoformat(),
        }
        await self.session.flush()
        return True

    # ── queries ─────────────────────────────────────────────────────

    async def list_by_recipient(self, recipient_id: str, limit: int = 50) -> list[NotificationRow]:
        """Newest first."""
        return await self.list_where(
            NotificationRow.recipient_id == recipient_id,
            order_by=NotificationRow.created_at.desc(),
            limit=limit,
        )

    async def list_by_status(self, status: NotificationStatus | str) -> list[NotificationRow]:
        return await self.list_where(NotificationRow.status == str(status))

    async def list_by_type(self, notification_type: NotificationType | str) -> list[NotificationRow]:
        return await self.list_where(NotificationRow.type == str(notification_type))

    async def count_by_status(self) -> dict[str, int]:
        return {
            **{status.value: 0 for status in NotificationStatus},
            **await self.count_by("status"),
        }
