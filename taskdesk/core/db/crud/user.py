from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession

from taskdesk.core.db.crud.base import BaseDB
from taskdesk.core.db.models import User


class UserDB(BaseDB[User]):
    def __init__(self):
        super().__init__(model=User)

    async def get_by_email(self, session: AsyncSession, email: str) -> User | None:
        """Case-insensitive lookup by email address."""
        return await self.get_one_by_conditions(
            session,
            [func.lower(self.model.email) == email.strip().lower()],
        )
