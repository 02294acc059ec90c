"""
Item endpoints - report, browse, edit and remove lost/found items.
Challenge: Pagination, auth, privacy of verification details, 404 handling.
Design: Thin controller; services hold business logic.
"""

from fastapi import APIRouter, HTTPException, status, Query

from finderguard.config import get_settings
from finderguard.core.dependencies import (
    CurrentUserId,
    ItemServiceDep,
    MatchServiceDep,
    OptionalUserId,
)
from finderguard.schemas.enums import ItemKind
from finderguard.schemas.item import ItemCreate, ItemOwnerResponse, ItemPublic, ItemUpdate
from finderguard.schemas.match import ItemReportResponse, MatchResponse
from finderguard.services.item_service import item_to_owner_view

router = APIRouter()
settings = get_settings()


@router.get("", response_model=list[ItemPublic])
async def list_items(
    svc: ItemServiceDep,
    kind: ItemKind = Query(ItemKind.LOST),
    category: str | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
):
    """Open reports, newest first. REST: GET /items?kind=lost&skip=0&limit=20."""
    return await svc.list_open(kind, category, skip=skip, limit=limit)


@router.get("/{item_id}", response_model=ItemOwnerResponse | ItemPublic)
async def get_item(svc: ItemServiceDep, item_id: int, viewer_id: OptionalUserId):
    """Public view; the reporter also sees image and private details."""
    item = await svc.get_for_viewer(item_id, viewer_id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    return item


@router.post("", response_model=ItemReportResponse, status_code=status.HTTP_201_CREATED)
async def report_item(
    svc: ItemServiceDep,
    matcher: MatchServiceDep,
    data: ItemCreate,
    user_id: CurrentUserId,
):
    """Report a lost or found item and match it against open reports of the other kind."""
    item = await svc.create(user_id, data)
    matches = await matcher.find_matches(item)
    return ItemReportResponse(
        item=item_to_owner_view(item),
        matches=[MatchResponse.model_validate(m) for m in matches],
    )


@router.put("/{item_id}", response_model=ItemOwnerResponse)
async def update_item(svc: ItemServiceDep, item_id: int, data: ItemUpdate, user_id: CurrentUserId):
    """Edit own report. Invalidates cache."""
    item = await svc.update(item_id, user_id, data)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    return item


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(svc: ItemServiceDep, item_id: int, user_id: CurrentUserId):
    """Remove own report."""
    ok = await svc.delete(item_id, user_id)
    if not ok:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
