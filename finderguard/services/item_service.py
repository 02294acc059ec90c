"""
Item service - business logic for lost/found reports (SOLID: Single Responsibility).
Challenge: Orchestrate repository and cache; keep controllers thin; never let
private details leak into a public view or the cache.
"""

import json

from finderguard.cache.redis_client import cache_delete, cache_get, cache_set
from finderguard.core.clock import Clock
from finderguard.db.models.item import Item
from finderguard.db.repositories.item_repository import ItemRepository
from finderguard.schemas.enums import ItemKind, ItemStatus
from finderguard.schemas.item import (
    ItemCreate,
    ItemOwnerResponse,
    ItemPublic,
    ItemUpdate,
    Location,
    MatchSubject,
    PrivateDetails,
)
from finderguard.services.errors import ForbiddenError, InvalidTransitionError

# Cache key prefix and TTL for the public item view (performance optimization)
CACHE_PREFIX = "item:"
CACHE_TTL = 300


def _location(item: Item) -> Location | None:
    if item.latitude is None or item.longitude is None:
        return None
    return Location(lat=item.latitude, lng=item.longitude, address=item.address)


def item_to_public(item: Item) -> ItemPublic:
    """Map model to the view other users and the matcher may see."""
    return ItemPublic(
        id=item.id,
        owner_id=item.owner_id,
        kind=item.kind,
        category=item.category,
        title=item.title or "",
        description=item.description or "",
        color_tokens=list(item.color_tokens or []),
        brand_token=item.brand_token,
        location=_location(item),
        status=item.status,
        has_image=bool(item.image),
        created_at=item.created_at,
    )


def item_to_subject(item: Item) -> MatchSubject:
    return MatchSubject(**item_to_public(item).model_dump(), image=item.image)


def item_to_owner_view(item: Item) -> ItemOwnerResponse:
    private = PrivateDetails(**item.private_details) if item.private_details else None
    return ItemOwnerResponse(
        **item_to_public(item).model_dump(), image=item.image, private_details=private
    )


def _location_columns(location: Location | None) -> dict:
    if location is None:
        return {"latitude": None, "longitude": None, "address": None}
    return {"latitude": location.lat, "longitude": location.lng, "address": location.address}


class ItemService:
    """Handles item use cases: report, view, feed, edit, remove."""

    def __init__(self, item_repo: ItemRepository, clock: Clock):
        self.item_repo = item_repo
        self.clock = clock

    async def create(self, owner_id: int, data: ItemCreate) -> Item:
        item = Item(
            owner_id=owner_id,
            kind=data.kind,
            category=data.category,
            title=data.title,
            description=data.description,
            color_tokens=[c.strip().lower() for c in data.color_tokens if c.strip()],
            brand_token=(data.brand_token or "").strip().lower() or None,
            image=data.image,
            status=ItemStatus.OPEN,
            private_details=data.private_details.model_dump(exclude_none=True) if data.private_details else None,
            created_at=self.clock.now(),
            **_location_columns(data.location),
        )
        return await self.item_repo.add(item)

    async def get_public(self, id: int, use_cache: bool = True) -> ItemPublic | None:
        """Public view by id. Uses Redis cache to reduce DB load (performance)."""
        if use_cache:
            cached = await cache_get(CACHE_PREFIX + str(id))
            if cached:
                return ItemPublic(**json.loads(cached))
        item = await self.item_repo.get_by_id(id)
        if not item:
            return None
        resp = item_to_public(item)
        if use_cache:
            await cache_set(CACHE_PREFIX + str(id), resp.model_dump(mode="json"), CACHE_TTL)
        return resp

    async def get_for_viewer(self, id: int, viewer_id: int | None) -> ItemPublic | None:
        """Owner gets the full record (with private details); everyone else the public view."""
        if viewer_id is not None:
            item = await self.item_repo.get_by_id(id)
            if item is None:
                return None
            if item.owner_id == viewer_id:
                return item_to_owner_view(item)
            return item_to_public(item)
        return await self.get_public(id)

    async def list_open(
        self, kind: ItemKind, category: str | None = None, skip: int = 0, limit: int = 20
    ) -> list[ItemPublic]:
        """Feed of open reports, newest first."""
        items = await self.item_repo.list_open_by_kind_and_category(
            kind, category, skip=skip, limit=limit
        )
        return [item_to_public(i) for i in items]

    async def update(self, id: int, owner_id: int, data: ItemUpdate) -> ItemOwnerResponse | None:
        """Edit own report and invalidate cache."""
        item = await self.item_repo.get_by_id(id)
        if not item:
            return None
        if item.owner_id != owner_id:
            raise ForbiddenError("only the reporter can edit this item")
        fields = data.model_dump(exclude_unset=True)
        patch: dict = {}
        for name in ("title", "description", "image"):
            if name in fields:
                patch[name] = fields[name]
        if fields.get("category") is not None:
            patch["category"] = fields["category"]
        if "color_tokens" in fields:
            patch["color_tokens"] = [c.strip().lower() for c in (fields["color_tokens"] or []) if c.strip()]
        if "brand_token" in fields:
            patch["brand_token"] = (fields["brand_token"] or "").strip().lower() or None
        if "location" in fields:
            patch.update(_location_columns(data.location))
        if "private_details" in fields:
            patch["private_details"] = (
                data.private_details.model_dump(exclude_none=True) if data.private_details else None
            )
        item = await self.item_repo.update(item, patch)
        await cache_delete(CACHE_PREFIX + str(id))
        return item_to_owner_view(item)

    async def delete(self, id: int, owner_id: int) -> bool:
        """Remove own report. Not allowed while a handover is running on it."""
        item = await self.item_repo.get_by_id(id)
        if not item:
            return False
        if item.owner_id != owner_id:
            raise ForbiddenError("only the reporter can remove this item")
        if item.status == ItemStatus.MATCHED:
            raise InvalidTransitionError("item is part of a handover in progress")
        await self.item_repo.delete(item)
        await cache_delete(CACHE_PREFIX + str(id))
        return True
