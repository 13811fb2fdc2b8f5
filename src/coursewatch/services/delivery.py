"""Notification transport. The real email/SMS/push integration is stubbed."""

import asyncio
import logging
from abc import ABC, abstractmethod

from coursewatch.db.models.notification import NotificationRow
from coursewatch.errors.exceptions import DeliverySendError

logger = logging.getLogger(__name__)


class NotificationSender(ABC):
    """Delivers one notification to its recipient or raises ``DeliverySendError``."""

    @abstractmethod
    async def send(self, notification: NotificationRow) -> None: ...


class LoggingNotificationSender(NotificationSender):
    """Logs the rendered notification after a simulated network delay."""

    def __init__(self, latency_ms: int = 100):
        self.latency_ms = latency_ms

    async def send(self, notification: NotificationRow) -> None:
        recipient = notification.recipient
        if recipient is None or not recipient.email:
            raise DeliverySendError(
                f"Notification {notification.notification_id} has no deliverable recipient",
                details={"recipient_id": notification.recipient_id},
            )

        if self.latency_ms:
            await asyncio.sleep(self.latency_ms / 1000)

        logger.info(
            "notification_dispatched to=%s type=%s title=%r message=%r metadata=%s",
            recipient.email,
            notification.type,
            notification.title,
            notification.message,
            notification.extra_data,
        )
