"""Repository base shared by the course and notification tables."""

from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from coursewatch.db.base import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Async access to one table keyed by a string id column.

    Subclasses set ``model_class`` and ``id_column``. Lookups that need related
    rows pass loader options (``selectinload(...)``) through ``options``.
    """

    model_class: type[T]
    id_column: str

    def __init__(self, session: AsyncSession):
        self.session = session

    def _id(self):
        return getattr(self.model_class, self.id_column)

    async def get(self, row_id: str, *options) -> T | None:
        """Fetch one row by id. With loader options the row is refreshed from the database."""
        stmt = select(self.model_class).where(self._id() == row_id)
        if options:
            stmt = stmt.options(*options).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, **values: Any) -> T:
        """Add a row and flush it so defaults and the id are populated."""
        row = self.model_class(**values)
        self.session.add(row)
        await self.session.flush()
        return row

    async def list_where(self, *criteria, options=(), order_by=None, limit: int | None = None) -> list[T]:
        stmt = select(self.model_class).where(*criteria)
        if options:
            stmt = stmt.options(*options)
        stmt = stmt.order_by(order_by if order_by is not None else self._id())
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def exists_where(self, *criteria) -> bool:
        result = await self.session.execute(select(self._id()).where(*criteria).limit(1))
        return result.first() is not None

    async def count_by(self, column_name: str) -> dict[str, int]:
        """Row counts grouped by ``column_name``."""
        column = getattr(self.model_class, column_name)
        result = await self.session.execute(select(column, func.count()).group_by(column))
        return {value: count for value, count in result.all()}
