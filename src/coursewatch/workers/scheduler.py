"""Recurring compliance triggers on APScheduler cron schedules.

Triggers (cron fields configurable, evaluated in ``scheduler_timezone``):
  - weekly_reminders:  Monday 09:00
  - compliance:        Tuesday 10:00
  - deadline_warnings: daily 08:00 (acts only on the pre-deadline weekday)
  - queue_hygiene:     hourly at :00
"""

import logging
from collections.abc import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from coursewatch.config import Settings, settings as default_settings
from coursewatch.logging_config import bind_trigger_context, clear_trigger_context
from coursewatch.workers.scanner import ComplianceScanner, ScanResult

logger = logging.getLogger(__name__)

WEEKLY_REMINDERS = "weekly_reminders"
COMPLIANCE = "compliance"
DEADLINE_WARNINGS = "deadline_warnings"
QUEUE_HYGIENE = "queue_hygiene"

TRIGGER_NAMES = (WEEKLY_REMINDERS, COMPLIANCE, DEADLINE_WARNINGS, QUEUE_HYGIENE)


class NotificationScheduler:
    def __init__(self, scanner: ComplianceScanner, settings: Settings | None = None):
        self.scanner = scanner
        self.settings = settings or default_settings
        self._scheduler: AsyncIOScheduler | None = None
        self._triggers: dict[str, Callable[[], Awaitable[ScanResult]]] = {
            WEEKLY_REMINDERS: scanner.send_weekly_reminders,
            COMPLIANCE: scanner.check_compliance,
            DEADLINE_WARNINGS: scanner.send_deadline_warnings,
            QUEUE_HYGIENE: scanner.clean_queues,
        }

    def cron_triggers(self) -> dict[str, CronTrigger]:
        s = self.settings
        tz = s.scheduler_timezone
        return {
            WEEKLY_REMINDERS: CronTrigger(
                day_of_week=s.reminder_cron_day_of_week, hour=s.reminder_cron_hour, minute=0, timezone=tz
            ),
            COMPLIANCE: CronTrigger(
                day_of_week=s.compliance_cron_day_of_week, hour=s.compliance_cron_hour, minute=0, timezone=tz
            ),
            DEADLINE_WARNINGS: CronTrigger(hour=s.deadline_cron_hour, minute=0, timezone=tz),
            QUEUE_HYGIENE: CronTrigger(minute=s.hygiene_cron_minute, timezone=tz),
        }

    async def _run_trigger(self, name: str) -> ScanResult | None:
        """Scheduled entry point: an error aborts only this run."""
        bind_trigger_context(name)
        try:
            return await self.run_now(name)
        except Exception:
            logger.exception("Scheduled trigger %s failed", name)
            return None
        finally:
            clear_trigger_context()

    async def run_now(self, name: str) -> ScanResult:
        """Run one trigger immediately and return its result. Errors propagate."""
        trigger = self._triggers.get(name)
        if trigger is None:
            raise ValueError(f"Unknown trigger '{name}' (expected one of {', '.join(TRIGGER_NAMES)})")
        logger.info("Running trigger %s", name)
        return await trigger()

    def start(self) -> AsyncIOScheduler:
        if self._scheduler is not None:
            logger.info("Scheduler already running")
            return self._scheduler

        scheduler = AsyncIOScheduler(timezone=self.settings.scheduler_timezone)
        for name, trigger in self.cron_triggers().items():
            scheduler.add_job(
                self._run_trigger,
                trigger=trigger,
                args=[name],
                id=name,
                name=name.replace("_", " "),
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
        scheduler.start()
        self._scheduler = scheduler
        logger.info("Notification scheduler started with %d triggers", len(TRIGGER_NAMES))
        return scheduler

    def stop(self) -> None:
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Notification scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    def get_status(self) -> dict:
        status: dict = {"running": self.is_running, "jobs": []}
        if self._scheduler is None:
            return status
        for job in self._scheduler.get_jobs():
            status["jobs"].append({
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                "max_instances": job.max_instances,
            })
        return status
