"""Notification queue service.

Creates notification records and enqueues the matching delivery jobs on the
three delivery queues. The service is constructed explicitly by the worker
runtime (or tests) with its session factory, queue backend and sender; there is
no module-level instance.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coursewatch.config import Settings, settings as default_settings
from coursewatch.db.models.notification import NotificationRow
from coursewatch.errors.exceptions import AllocationNotFoundError, NotInitializedError
from coursewatch.models.enums import AlertType, JobState, QueueName
from coursewatch.models.jobs import AlertJob, ReminderJob, WarningJob, encode_job
from coursewatch.models.notification import FacilitatorInfo
from coursewatch.repositories.course_offering_repo import CourseOfferingRepository
from coursewatch.repositories.notification_repo import NotificationRepository
from coursewatch.services.delivery import NotificationSender
from coursewatch.services.id_generator import generate_id
from coursewatch.workers.backends import Job, QueueBackend
from coursewatch.workers.queue import DEFAULT_POLICIES, QUEUE_JOB_KINDS, DeliveryQueue, QueuePolicy
from coursewatch.workers.registry import get_processor_class

logger = logging.getLogger(__name__)


@dataclass
class QueuedNotification:
    """A persisted notification and the delivery job enqueued for it."""

    notification: NotificationRow
    job: Job


class NotificationQueueService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        backend: QueueBackend,
        sender: NotificationSender,
        *,
        settings: Settings | None = None,
        policies: dict[QueueName, QueuePolicy] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.session_factory = session_factory
        self.backend = backend
        self.sender = sender
        self.settings = settings or default_settings
        self.policies = {**DEFAULT_POLICIES, **(policies or {})}
        self._clock = clock
        self.queues: dict[str, DeliveryQueue] = {}
        self.is_initialized = False

    def _now_ms(self) -> int:
        return round(self._clock() * 1000)

    # ── lifecycle ───────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Build the queues and register their processors. No-op when already done.

        Backend connectivity errors propagate so the worker never reports ready
        against an unreachable queue store.
        """
        if self.is_initialized:
            return

        await self.backend.ping()

        for queue_name in QueueName:
            job_kind = QUEUE_JOB_KINDS[queue_name]
            processor_class = get_processor_class(job_kind)
            if processor_class is None:
                raise RuntimeError(f"No processor registered for job kind '{job_kind}'")

            queue = DeliveryQueue(
                queue_name.value,
                self.policies[queue_name],
                self.backend,
                concurrency=self.settings.worker_concurrency,
                poll_interval=self.settings.queue_poll_interval,
                clock=self._clock,
            )
            queue.process(job_kind.value, processor_class(self.session_factory, self.sender))
            self._wire_events(queue)
            self.queues[queue_name.value] = queue

        self.is_initialized = True
        logger.info("Notification queue service initialized (%s)", ", ".join(self.queues))

    def _wire_events(self, queue: DeliveryQueue) -> None:
        queue.on("waiting", _log_waiting)
        queue.on("active", _log_active)
        queue.on("completed", _log_completed)
        queue.on("failed", _log_failed)
        queue.on("error", _log_error)

    async def start(self) -> None:
        """Start the worker tasks of every queue."""
        self._ensure_initialized()
        for queue in self.queues.values():
            await queue.start()

    async def cleanup(self) -> None:
        """Close every queue, letting in-flight attempts finish. Safe to call twice."""
        for queue in self.queues.values():
            await queue.close()
        if self.queues:
            logger.info("Notification queues closed")

    def _ensure_initialized(self) -> None:
        if not self.is_initialized:
            raise NotInitializedError()

    def _queue(self, queue_name: QueueName | str) -> DeliveryQueue:
        self._ensure_initialized()
        queue = self.queues.get(str(queue_name))
        if queue is None:
            raise ValueError(f"Unknown delivery queue '{queue_name}'")
        return queue

    def _scheduled_for(self, delay_ms: int) -> datetime | None:
        if delay_ms <= 0:
            return None
        return datetime.fromtimestamp((self._now_ms() + delay_ms) / 1000, tz=timezone.utc)

    # ── producers ───────────────────────────────────────────────────

    async def queue_facilitator_reminder(
        self,
        facilitator_id: str,
        allocation_id: str,
        week_number: int,
        delay_ms: int = 0,
    ) -> QueuedNotification:
        """Create a reminder record for the offering and enqueue ``send-reminder``.

        Raises:
            NotInitializedError: ``initialize()`` has not been called.
            AllocationNotFoundError: the offering does not exist.
        """
        self._ensure_initialized()

        async with self.session_factory() as session:
            offering = await CourseOfferingRepository(session).get_with_context(allocation_id)
            if offering is None:
                raise AllocationNotFoundError(allocation_id)
            course_info = offering.course_info()
            notification = await NotificationRepository(session).create_facilitator_reminder(
                facilitator_id,
                allocation_id,
                week_number,
                course_info,
                scheduled_for=self._scheduled_for(delay_ms),
            )
            await session.commit()

        job = ReminderJob(
            notification_id=notification.notification_id,
            facilitator_id=facilitator_id,
            allocation_id=allocation_id,
            week_number=week_number,
            course_info=course_info,
        )
        record = await self.enqueue(
            QueueName.FACILITATOR_REMINDERS,
            job,
            delay_ms=delay_ms,
            job_id=self.make_job_id("reminder", facilitator_id, allocation_id, week_number),
        )
        logger.info(
            "Queued reminder %s for facilitator %s (allocation=%s, week=%s)",
            notification.notification_id, facilitator_id, allocation_id, week_number,
        )
        return QueuedNotification(notification, record)

    async def queue_manager_alert(
        self,
        manager_id: str,
        facilitator_info: FacilitatorInfo | dict,
        allocation_id: str,
        week_number: int,
        alert_type: AlertType | str,
        delay_ms: int = 0,
    ) -> QueuedNotification:
        """Create a manager alert record and enqueue ``send-alert``.

        Raises:
            NotInitializedError: ``initialize()`` has not been called.
            InvalidAlertTypeError: ``alert_type`` is not a known alert subtype.
        """
        self._ensure_initialized()

        async with self.session_factory() as session:
            repo = NotificationRepository(session)
            notification = await repo.create_manager_alert(
                manager_id,
                facilitator_info,
                allocation_id,
                week_number,
                alert_type,
                scheduled_for=self._scheduled_for(delay_ms),
            )
            await session.commit()

        info = FacilitatorInfo.model_validate(notification.extra_data["facilitatorInfo"])
        alert = AlertType(notification.extra_data["alertType"])
        job = AlertJob(
            notification_id=notification.notification_id,
            manager_id=manager_id,
            facilitator_info=info,
            allocation_id=allocation_id,
            week_number=week_number,
            alert_type=alert,
        )
        record = await self.enqueue(
            QueueName.MANAGER_ALERTS,
            job,
            delay_ms=delay_ms,
            job_id=self.make_job_id("alert", manager_id, info.id, alert.value),
        )
        logger.info(
            "Queued %s alert %s for manager %s (facilitator=%s, week=%s)",
            alert.value, notification.notification_id, manager_id, info.id, week_number,
        )
        return QueuedNotification(notification, record)

    async def enqueue(
        self,
        queue_name: QueueName | str,
        job: ReminderJob | AlertJob | WarningJob,
        *,
        delay_ms: int = 0,
        job_id: str | None = None,
    ) -> Job:
        """Enqueue an already-persisted notification's job on ``queue_name``."""
        queue = self._queue(queue_name)
        return await queue.add(job.kind, encode_job(job), delay_ms=delay_ms, job_id=job_id)

    def make_job_id(self, role: str, *parts) -> str:
        stem = "-".join(str(p) for p in (role, *parts, self._now_ms()))
        return generate_id(f"{stem}-", length=8)

    # ── processing / inspection ─────────────────────────────────────

    async def drain(self, max_jobs: int | None = None) -> int:
        """Run every currently eligible job across all queues. Returns the count run."""
        self._ensure_initialized()
        processed = 0
        progressed = True
        while progressed:
            progressed = False
            for queue in self.queues.values():
                if max_jobs is not None and processed >= max_jobs:
                    return processed
                if await queue.process_next():
                    processed += 1
                    progressed = True
        return processed

    async def get_queue_stats(self) -> dict[str, dict[str, int]]:
        self._ensure_initialized()
        return {name: await queue.get_stats() for name, queue in self.queues.items()}

    async def clean_queues(self, grace_ms: int | None = None) -> dict[str, int]:
        """Trim completed and failed jobs finished more than ``grace_ms`` ago."""
        self._ensure_initialized()
        if grace_ms is None:
            grace_ms = self.settings.job_retention_ms
        removed: dict[str, int] = {}
        for name, queue in self.queues.items():
            removed[name] = (
                await queue.clean(grace_ms, JobState.COMPLETED)
                + await queue.clean(grace_ms, JobState.FAILED)
            )
        return removed


# ── lifecycle event listeners ──────────────────────────────────────


def _log_waiting(queue: DeliveryQueue, job_id: str) -> None:
    logger.debug("Job %s waiting in %s", job_id, queue.name)


def _log_active(queue: DeliveryQueue, job: Job) -> None:
    logger.debug(
        "Job %s started in %s (attempt %d/%d)",
        job.job_id, queue.name, job.attempts_made + 1, job.max_attempts,
    )


def _log_completed(queue: DeliveryQueue, job: Job, result) -> None:
    logger.info("Job %s completed in %s", job.job_id, queue.name)


def _log_failed(queue: DeliveryQueue, job: Job, exc: Exception) -> None:
    if job.state == JobState.FAILED:
        logger.error(
            "Job %s failed permanently in %s after %d attempts: %s",
            job.job_id, queue.name, job.attempts_made, exc,
        )
    else:
        logger.warning(
            "Job %s failed in %s (attempt %d/%d): %s",
            job.job_id, queue.name, job.attempts_made, job.max_attempts, exc,
        )


def _log_error(queue: DeliveryQueue, exc: Exception) -> None:
    logger.error("Queue %s error: %s", queue.name, exc)
