"""Course offering (allocation) repository."""

from sqlalchemy.orm import selectinload

from coursewatch.db.models.course_offering import CourseOfferingRow
from coursewatch.repositories.base import BaseRepository

_CONTEXT = (
    selectinload(CourseOfferingRow.module),
    selectinload(CourseOfferingRow.class_),
    selectinload(CourseOfferingRow.facilitator),
)


class CourseOfferingRepository(BaseRepository[CourseOfferingRow]):
    model_class = CourseOfferingRow
    id_column = "allocation_id"

    async def get_with_context(self, allocation_id: str) -> CourseOfferingRow | None:
        """Load an offering with its module, class and facilitator."""
        return await self.get(allocation_id, *_CONTEXT)

    async def list_with_facilitator(self) -> list[CourseOfferingRow]:
        """All offerings that have a facilitator assigned."""
        return await self.list_where(CourseOfferingRow.facilitator_id.is_not(None), options=_CONTEXT)

    async def list_by_facilitator(self, facilitator_id: str) -> list[CourseOfferingRow]:
        return await self.list_where(CourseOfferingRow.facilitator_id == facilitator_id, options=_CONTEXT)
