"""
Item repository - item data access and candidate pool queries.
"""

from sqlalchemy import select

from finderguard.db.models.item import Item
from finderguard.db.repositories.base_repository import BaseRepository
from finderguard.schemas.enums import ItemKind, ItemStatus


class ItemRepository(BaseRepository[Item]):
    """Item-specific queries."""

    def __init__(self, session):
        super().__init__(session, Item)

    async def list_open_by_kind_and_category(
        self,
        kind: ItemKind,
        category: str | None = None,
        *,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[Item]:
        """Open items of one kind, newest first. No category means every category."""
        query = select(Item).where(Item.kind == kind, Item.status == ItemStatus.OPEN)
        if category is not None:
            query = query.where(Item.category == category)
        query = query.order_by(Item.created_at.desc(), Item.id.desc()).offset(skip)
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_many_by_ids(self, ids: list[int]) -> dict[int, Item]:
        """Resolve a batch of ids; missing (deleted) items are simply absent."""
        if not ids:
            return {}
        result = await self.session.execute(select(Item).where(Item.id.in_(set(ids))))
        return {item.id: item for item in result.scalars().all()}
