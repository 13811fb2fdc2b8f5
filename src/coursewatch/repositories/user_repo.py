"""User repository."""

from coursewatch.db.models.user import UserRow
from coursewatch.models.enums import UserRole
from coursewatch.repositories.base import BaseRepository


class UserRepository(BaseRepository[UserRow]):
    model_class = UserRow
    id_column = "user_id"

    async def list_by_role(self, role: UserRole | str) -> list[UserRow]:
        return await self.list_where(UserRow.role == str(role))
