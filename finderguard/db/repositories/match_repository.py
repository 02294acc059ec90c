"""
Match repository - match store and the single arbitration point for exchange transitions.
"""

from typing import Any

from sqlalchemy import or_, select, update

from finderguard.db.models.match import Match
from finderguard.db.repositories.base_repository import BaseRepository
from finderguard.schemas.enums import ExchangeStatus


class MatchRepository(BaseRepository[Match]):
    """Match-specific queries."""

    def __init__(self, session):
        super().__init__(session, Match)

    async def list_by_user(self, user_id: int) -> list[Match]:
        """Matches where the user reported either side, best first."""
        result = await self.session.execute(
            select(Match)
            .where(or_(Match.lost_user_id == user_id, Match.found_user_id == user_id))
            .order_by(Match.confidence.desc(), Match.id.desc())
        )
        return list(result.scalars().all())

    async def list_in_exchange_status(self, status: ExchangeStatus) -> list[Match]:
        result = await self.session.execute(
            select(Match).where(Match.exchange_status == status).order_by(Match.id)
        )
        return list(result.scalars().all())

    async def compare_and_set_exchange(
        self, match: Match, expected: ExchangeStatus, values: dict[str, Any]
    ) -> bool:
        """
        Apply values only if the stored exchange_status still equals expected.
        Returns True when this call won the transition. Concurrent callers racing
        on the same row see exactly one success.
        """
        result = await self.session.execute(
            update(Match)
            .where(Match.id == match.id, Match.exchange_status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.session.refresh(match)
            return False
        await self.session.refresh(match)
        return True
