"""Activity log repository."""

from sqlalchemy import select

from coursewatch.db.models.activity_log import ActivityLogRow
from coursewatch.repositories.base import BaseRepository


class ActivityLogRepository(BaseRepository[ActivityLogRow]):
    model_class = ActivityLogRow
    id_column = "log_id"

    async def exists(self, allocation_id: str, week_number: int) -> bool:
        return await self.exists_where(
            ActivityLogRow.allocation_id == allocation_id,
            ActivityLogRow.week_number == week_number,
        )

    async def list_weeks(self, allocation_id: str, from_week: int, to_week: int) -> set[int]:
        """Week numbers with a log for the allocation, inclusive range."""
        stmt = select(ActivityLogRow.week_number).where(
            ActivityLogRow.allocation_id == allocation_id,
            ActivityLogRow.week_number >= from_week,
            ActivityLogRow.week_number <= to_week,
        )
        result = await self.session.execute(stmt)
        return set(result.scalars().all())
