"""
User repository - profile store.
"""

from sqlalchemy import select

from finderguard.db.models.user import User
from finderguard.db.repositories.base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    """Profile-specific queries."""

    def __init__(self, session):
        super().__init__(session, User)

    async def get_by_username(self, username: str) -> User | None:
        result = await self.session.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def get_for_update(self, id: int) -> User | None:
        """
        Load a profile with its row locked until the transaction ends.
        The row is re-read even if this session already holds a copy.
        """
        result = await self.session.execute(
            select(User)
            .where(User.id == id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()
