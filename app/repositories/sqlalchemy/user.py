"""SQLAlchemy implementation of the user lookup boundary."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from app.models import User
from app.repositories.interfaces import UserRef, UserRepository


def user_ref(user: User | None) -> UserRef | None:
    if user is None:
        return None
    return UserRef(
        id=int(user.id),
        display_name=str(user.username),
        contact=user.email,
        role=str(user.role or "user"),
    )


class SqlAlchemyUserRepository(UserRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: int) -> UserRef | None:
        return user_ref(await self._session.get(User, user_id))
