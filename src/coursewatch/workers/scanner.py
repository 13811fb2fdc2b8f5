"""Compliance scans that turn missing / late activity logs into notifications.

Each trigger re-derives its compliance facts from the activity-log store on
every run; nothing is cached between runs and duplicate suppression across
runs is not attempted (at-least-once). Every offering / facilitator is handled
in isolation: a failure is logged and counted, and the scan moves on.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coursewatch.config import Settings, settings as default_settings
from coursewatch.events.submission_events import ActivityLogSubmitted
from coursewatch.models.enums import AlertType, QueueName, UserRole
from coursewatch.models.jobs import WarningJob
from coursewatch.models.notification import FacilitatorInfo
from coursewatch.repositories.activity_log_repo import ActivityLogRepository
from coursewatch.repositories.course_offering_repo import CourseOfferingRepository
from coursewatch.repositories.notification_repo import NotificationRepository
from coursewatch.repositories.user_repo import UserRepository
from coursewatch.services.academic_calendar import AcademicCalendar
from coursewatch.workers.notification_queue import NotificationQueueService

logger = logging.getLogger(__name__)

COMPLIANCE_WINDOW_WEEKS = 4
COMPLIANCE_MISSED_THRESHOLD = 2


@dataclass
class ScanResult:
    trigger: str
    week_number: int | None = None
    queued: int = 0
    failed_units: int = 0
    skipped: bool = False
    details: dict = field(default_factory=dict)


@dataclass(frozen=True)
class _Unit:
    """Offering facts copied out of the read session."""

    allocation_id: str
    facilitator_id: str


class ComplianceScanner:
    def __init__(
        self,
        service: NotificationQueueService,
        session_factory: async_sessionmaker[AsyncSession],
        calendar: AcademicCalendar,
        settings: Settings | None = None,
    ):
        self.service = service
        self.session_factory = session_factory
        self.calendar = calendar
        self.settings = settings or default_settings

    async def _offerings_with_facilitator(self) -> list[_Unit]:
        async with self.session_factory() as session:
            offerings = await CourseOfferingRepository(session).list_with_facilitator()
            return [_Unit(o.allocation_id, o.facilitator_id) for o in offerings]

    async def _managers(self) -> list[str]:
        async with self.session_factory() as session:
            return [u.user_id for u in await UserRepository(session).list_by_role(UserRole.MANAGER)]

    async def _has_log(self, allocation_id: str, week: int) -> bool:
        async with self.session_factory() as session:
            return await ActivityLogRepository(session).exists(allocation_id, week)

    # ── weekly reminders ────────────────────────────────────────────

    async def send_weekly_reminders(self, now: datetime | None = None) -> ScanResult:
        """Remind every facilitator whose offering has no log for the current week."""
        week = self.calendar.week_number_of(now)
        result = ScanResult(trigger="weekly_reminders", week_number=week)

        for unit in await self._offerings_with_facilitator():
            try:
                if await self._has_log(unit.allocation_id, week):
                    continue
                await self.service.queue_facilitator_reminder(unit.facilitator_id, unit.allocation_id, week)
                result.queued += 1
            except Exception:
                result.failed_units += 1
                logger.exception("Reminder scan failed for allocation %s", unit.allocation_id)

        logger.info(
            "Queued %d facilitator reminders for week %d (%d failed)",
            result.queued, week, result.failed_units,
        )
        return result

    # ── compliance ──────────────────────────────────────────────────

    async def check_compliance(self, now: datetime | None = None) -> ScanResult:
        """Alert managers about last week's missing logs and repeated non-compliance.

        (a) no log for the previous week -> ``missing_submission`` (week = previous week)
        (b) two or more of the four weeks before the current one missing ->
            ``compliance_warning`` listing the missed weeks (week = current week)
        """
        current = self.calendar.week_number_of(now)
        last_week = current - 1
        window = [w for w in range(current - COMPLIANCE_WINDOW_WEEKS, current) if w >= 1]
        result = ScanResult(trigger="compliance", week_number=current)

        managers = await self._managers()
        if not managers:
            logger.warning("Compliance check found no managers to alert")
            result.skipped = True
            return result

        async with self.session_factory() as session:
            facilitators = await UserRepository(session).list_by_role(UserRole.FACILITATOR)
            facilitator_ids = [(f.user_id, f.email) for f in facilitators]

        for facilitator_id, email in facilitator_ids:
            try:
                async with self.session_factory() as session:
                    offerings = await CourseOfferingRepository(session).list_by_facilitator(facilitator_id)
                    allocation_ids = [o.allocation_id for o in offerings]
            except Exception:
                result.failed_units += 1
                logger.exception("Compliance scan failed to load offerings of %s", facilitator_id)
                continue

            for allocation_id in allocation_ids:
                try:
                    result.queued += await self._check_offering(
                        managers, facilitator_id, email, allocation_id, current, last_week, window
                    )
                except Exception:
                    result.failed_units += 1
                    logger.exception("Compliance scan failed for allocation %s", allocation_id)

        logger.info(
            "Compliance check for week %d queued %d alerts (%d failed)",
            current, result.queued, result.failed_units,
        )
        return result

    async def _check_offering(
        self,
        managers: list[str],
        facilitator_id: str,
        email: str,
        allocation_id: str,
        current: int,
        last_week: int,
        window: list[int],
    ) -> int:
        queued = 0
        async with self.session_factory() as session:
            logs = ActivityLogRepository(session)
            submitted = await logs.list_weeks(allocation_id, min(window), max(window)) if window else set()
            last_week_missing = last_week >= 1 and not await logs.exists(allocation_id, last_week)

        if last_week_missing:
            info = FacilitatorInfo(id=facilitator_id, email=email)
            for manager_id in managers:
                await self.service.queue_manager_alert(
                    manager_id, info, allocation_id, last_week, AlertType.MISSING_SUBMISSION
                )
                queued += 1

        missed = [w for w in window if w not in submitted]
        if len(missed) >= COMPLIANCE_MISSED_THRESHOLD:
            info = FacilitatorInfo(id=facilitator_id, email=email, missed_weeks=missed)
            for manager_id in managers:
                await self.service.queue_manager_alert(
                    manager_id, info, allocation_id, current, AlertType.COMPLIANCE_WARNING
                )
                queued += 1
        return queued

    # ── deadline warnings ───────────────────────────────────────────

    async def send_deadline_warnings(self, now: datetime | None = None) -> ScanResult:
        """On the pre-deadline weekday, warn facilitators still missing this week's log."""
        local_now = self.calendar.localize(now)
        week = self.calendar.week_number_of(local_now)
        result = ScanResult(trigger="deadline_warnings", week_number=week)

        if local_now.weekday() != self.settings.deadline_warning_weekday:
            result.skipped = True
            logger.debug("Deadline warnings skipped (weekday %d)", local_now.weekday())
            return result

        for unit in await self._offerings_with_facilitator():
            try:
                if await self._has_log(unit.allocation_id, week):
                    continue
                await self._queue_deadline_warning(unit, week)
                result.queued += 1
            except Exception:
                result.failed_units += 1
                logger.exception("Deadline warning failed for allocation %s", unit.allocation_id)

        logger.info(
            "Queued %d deadline warnings for week %d (%d failed)",
            result.queued, week, result.failed_units,
        )
        return result

    async def _queue_deadline_warning(self, unit: _Unit, week: int) -> None:
        async with self.session_factory() as session:
            offering = await CourseOfferingRepository(session).get_with_context(unit.allocation_id)
            notification = await NotificationRepository(session).create_deadline_warning(
                unit.facilitator_id,
                unit.allocation_id,
                week,
                offering.course_info(),
                days_remaining=self.settings.deadline_days_remaining,
            )
            await session.commit()

        job = WarningJob(
            notification_id=notification.notification_id,
            recipient_id=unit.facilitator_id,
            allocation_id=unit.allocation_id,
            week_number=week,
        )
        await self.service.enqueue(
            QueueName.DEADLINE_WARNINGS,
            job,
            job_id=self.service.make_job_id("warning", unit.facilitator_id, unit.allocation_id, week),
        )

    # ── queue hygiene ───────────────────────────────────────────────

    async def clean_queues(self) -> ScanResult:
        """Log queue stats and drop finished jobs older than the retention window."""
        result = ScanResult(trigger="queue_hygiene")
        stats = await self.service.get_queue_stats()
        logger.info("Queue stats: %s", stats)
        removed = await self.service.clean_queues(self.settings.job_retention_ms)
        result.details = {"stats": stats, "removed": removed}
        logger.info("Queue hygiene removed %d finished jobs", sum(removed.values()))
        return result


class LateSubmissionMonitor:
    """Subscriber for ``activity_log.submitted`` that alerts managers about late logs.

    Runs outside the submitter's request; every error is logged and dropped.
    """

    def __init__(
        self,
        service: NotificationQueueService,
        session_factory: async_sessionmaker[AsyncSession],
        calendar: AcademicCalendar,
    ):
        self.service = service
        self.session_factory = session_factory
        self.calendar = calendar

    async def __call__(self, event: ActivityLogSubmitted) -> int:
        try:
            return await self.check(event)
        except Exception:
            logger.exception(
                "Late submission check failed for %s week %d",
                event.allocation_id, event.week_number,
            )
            return 0

    async def check(self, event: ActivityLogSubmitted) -> int:
        if not self.calendar.is_late(event.week_number, event.submitted_at):
            return 0

        async with self.session_factory() as session:
            users = UserRepository(session)
            facilitator = await users.get(event.facilitator_id)
            managers = [u.user_id for u in await users.list_by_role(UserRole.MANAGER)]

        if facilitator is None:
            logger.warning("Late submission by unknown facilitator %s", event.facilitator_id)
            return 0

        info = FacilitatorInfo(id=facilitator.user_id, email=facilitator.email)
        for manager_id in managers:
            await self.service.queue_manager_alert(
                manager_id, info, event.allocation_id, event.week_number, AlertType.LATE_SUBMISSION
            )
        logger.info(
            "Late submission for %s week %d: alerted %d managers",
            event.allocation_id, event.week_number, len(managers),
        )
        return len(managers)
