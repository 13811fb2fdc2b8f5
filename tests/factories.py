"""Test data constants and helpers shared across test modules."""

from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import select

from coursewatch.db.models import ActivityLogRow, NotificationRow
from coursewatch.errors.exceptions import DeliverySendError
from coursewatch.services.delivery import NotificationSender

# Monday; week N starts on TERM_START + 7 * (N - 1) days
TERM_START = date(2026, 9, 7)

MANAGERS = ("usr_mgr_a", "usr_mgr_b")
FACILITATOR = "usr_fac_a"
OTHER_FACILITATOR = "usr_fac_b"
ALLOCATION = "alloc_web_a"


def at_week(week: int, weekday: int = 0, hour: int = 9) -> datetime:
    """UTC datetime on ``weekday`` (Monday=0) of academic ``week``."""
    day = TERM_START + timedelta(weeks=week - 1, days=weekday)
    return datetime.combine(day, time(hour), tzinfo=timezone.utc)


class RecordingSender(NotificationSender):
    """Sender that records deliveries; fails the first ``fail_times`` sends (all if negative)."""

    def __init__(self, fail_times: int = 0):
        self.fail_times = fail_times
        self.sent: list[NotificationRow] = []
        self.attempts = 0

    async def send(self, notification: NotificationRow) -> None:
        self.attempts += 1
        if self.fail_times < 0 or self.attempts <= self.fail_times:
            raise DeliverySendError(f"smtp unavailable (attempt {self.attempts})")
        self.sent.append(notification)


async def add_logs(session_factory, allocation_id: str, weeks) -> None:
    async with session_factory() as session:
        for week in weeks:
            session.add(ActivityLogRow(
                log_id=f"log_{allocation_id}_{week}",
                allocation_id=allocation_id,
                week_number=week,
                attendance=[True],
                submitted_at=at_week(week, weekday=4),
            ))
        await session.commit()


async def all_notifications(session_factory, **filters) -> list[NotificationRow]:
    async with session_factory() as session:
        stmt = select(NotificationRow).filter_by(**filters).order_by(NotificationRow.week_number)
        result = await session.execute(stmt)
        return list(result.scalars().all())


class FakeClock:
    """Epoch-seconds clock for DeliveryQueue that only moves when told to."""

    def __init__(self, start: float = 1_800_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: int) -> None:
        self.now += ms / 1000
