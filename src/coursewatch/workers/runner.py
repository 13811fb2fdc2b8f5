"""Notification worker runtime: wiring, startup and graceful shutdown."""

import asyncio
import logging
import signal

from sqlalchemy.ext.asyncio import AsyncEngine

from coursewatch.config import Settings, settings as default_settings
from coursewatch.db.engine import create_db_engine, create_session_factory, create_tables
from coursewatch.events.submission_events import ACTIVITY_LOG_SUBMITTED, SubmissionEventBus
from coursewatch.services.academic_calendar import AcademicCalendar
from coursewatch.services.activity_logs import ActivityLogService
from coursewatch.services.delivery import LoggingNotificationSender, NotificationSender
from coursewatch.workers.backends import QueueBackend, create_queue_backend
from coursewatch.workers.notification_queue import NotificationQueueService
from coursewatch.workers.scanner import ComplianceScanner, LateSubmissionMonitor, ScanResult
from coursewatch.workers.scheduler import NotificationScheduler

logger = logging.getLogger(__name__)


class NotificationWorker:
    """Owns every long-lived component of the notification engine.

    Components passed in (engine, backend, sender) are used as-is and are not
    closed on shutdown except for the queue backend; anything the worker
    creates itself it also disposes.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        engine: AsyncEngine | None = None,
        backend: QueueBackend | None = None,
        sender: NotificationSender | None = None,
        calendar: AcademicCalendar | None = None,
    ):
        self.settings = settings or default_settings
        self.engine = engine
        self._owns_engine = engine is None
        self.backend = backend
        self.sender = sender
        self.calendar = calendar
        self.session_factory = None
        self.events: SubmissionEventBus | None = None
        self.service: NotificationQueueService | None = None
        self.scanner: ComplianceScanner | None = None
        self.scheduler: NotificationScheduler | None = None
        self.activity_logs: ActivityLogService | None = None
        self._stop_task: asyncio.Future | None = None
        self._stopped = asyncio.Event()

    @property
    def is_ready(self) -> bool:
        return self.service is not None and self.service.is_initialized and self._stop_task is None

    async def initialize(self) -> None:
        """Connect to the database and queue store and build the components.

        Infrastructure errors propagate; the worker is not ready afterwards.
        """
        if self.service is not None and self.service.is_initialized:
            return

        s = self.settings
        if self.engine is None:
            db_url = s.effective_database_url
            self.engine = create_db_engine(db_url)
            if "sqlite" in db_url:
                await create_tables(self.engine)
                logger.info("SQLite tables created (local mode)")
        self.session_factory = create_session_factory(self.engine)

        if self.backend is None:
            self.backend = create_queue_backend(s.effective_queue_backend, s.redis_url, s.queue_prefix)
        if self.sender is None:
            self.sender = LoggingNotificationSender(latency_ms=s.send_latency_ms)
        if self.calendar is None:
            self.calendar = AcademicCalendar(s.term_start_date, s.scheduler_timezone)

        self.service = NotificationQueueService(self.session_factory, self.backend, self.sender, settings=s)
        await self.service.initialize()

        self.scanner = ComplianceScanner(self.service, self.session_factory, self.calendar, s)
        self.scheduler = NotificationScheduler(self.scanner, s)

        self.events = SubmissionEventBus()
        self.events.subscribe(
            ACTIVITY_LOG_SUBMITTED,
            LateSubmissionMonitor(self.service, self.session_factory, self.calendar),
        )
        self.activity_logs = ActivityLogService(self.session_factory, self.events)
        logger.info("Notification worker initialized (queue_backend=%s)", s.effective_queue_backend)

    async def start(self) -> None:
        await self.initialize()
        await self.service.start()
        if self.settings.scheduler_enabled:
            self.scheduler.start()
        logger.info("Notification worker started")

    async def stop(self) -> None:
        """Shut down in dependency order. Repeated or concurrent calls wait on the first."""
        if self._stop_task is None:
            self._stop_task = asyncio.ensure_future(self._stop())
        else:
            logger.info("Shutdown already in progress")
        await asyncio.shield(self._stop_task)

    async def _stop(self) -> None:
        logger.info("Stopping notification worker")
        if self.scheduler is not None:
            self.scheduler.stop()
        if self.events is not None:
            await self.events.wait_idle()
        if self.service is not None:
            await self.service.cleanup()
        if self.backend is not None:
            await self.backend.close()
        if self.engine is not None and self._owns_engine:
            await self.engine.dispose()
        self._stopped.set()
        logger.info("Notification worker stopped")

    async def run_forever(self) -> None:
        """Start and block until SIGINT/SIGTERM triggers a graceful stop."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda: asyncio.ensure_future(self.stop()))
        await self.start()
        await self._stopped.wait()

    async def run_once(self, trigger: str) -> ScanResult:
        """Run one trigger, deliver everything it queued, then shut down."""
        try:
            await self.initialize()
            result = await self.scheduler.run_now(trigger)
            delivered = await self.service.drain()
            logger.info("Trigger %s done: queued=%d delivered=%d", trigger, result.queued, delivered)
            return result
        finally:
            await self.stop()
