"""Job processor shared by all three delivery queues."""

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coursewatch.errors.exceptions import NotificationNotFoundError
from coursewatch.logging_config import bind_job_context, clear_job_context
from coursewatch.models.jobs import decode_job
from coursewatch.repositories.notification_repo import NotificationRepository
from coursewatch.services.delivery import NotificationSender
from coursewatch.workers.backends import Job

logger = logging.getLogger(__name__)


class NotificationJobProcessor:
    """Execute the delivery lifecycle of one job attempt: load -> send -> mark.

    On any failure the notification (if it still exists) is marked failed and
    the exception is re-raised so the queue applies its retry policy.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], sender: NotificationSender):
        self.session_factory = session_factory
        self.sender = sender

    async def __call__(self, job: Job) -> dict:
        bind_job_context(job.queue, job.job_id, attempt=job.attempts_made + 1)
        try:
            return await self.execute(job)
        finally:
            clear_job_context()

    async def execute(self, job: Job) -> dict:
        notification_id = (job.data or {}).get("notification_id")

        async with self.session_factory() as session:
            repo = NotificationRepository(session)
            try:
                payload = decode_job(job.data)
                notification = await repo.get_with_context(payload.notification_id)
                if notification is None:
                    raise NotificationNotFoundError(payload.notification_id)

                await self.sender.send(notification)
                await repo.mark_as_sent(notification)
                await session.commit()
            except Exception as exc:
                logger.warning(
                    "Delivery of %s failed (job=%s, kind=%s): %s",
                    notification_id, job.job_id, job.name, exc,
                )
                await session.rollback()
                if notification_id:
                    row = await repo.get(notification_id)
                    if row is not None:
                        await repo.mark_as_failed(row, exc)
                        await session.commit()
                raise

        sent_at = notification.sent_at or datetime.now(timezone.utc)
        logger.info(
            "Delivered %s %s to %s (week=%s)",
            payload.kind, notification.notification_id, notification.recipient.email, payload.week_number,
        )
        return {
            "success": True,
            "notificationId": notification.notification_id,
            "sentAt": sent_at.isoformat(),
        }
