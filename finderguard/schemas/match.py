"""Match and exchange schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from finderguard.schemas.enums import ExchangeStatus, MatchStatus
from finderguard.schemas.item import ItemOwnerResponse, ItemPublic


class MatchResponse(BaseModel):
    id: int
    lost_item_id: int
    found_item_id: int
    lost_user_id: int
    found_user_id: int
    confidence: int
    reason: str | None = None
    status: MatchStatus
    exchange_status: ExchangeStatus
    exchange_start_time: datetime | None = None
    exchange_confirmed_by: list[int] = []
    created_at: datetime

    model_config = {"from_attributes": True}


class MatchDetailResponse(MatchResponse):
    # None once the item has been retired by another completed exchange
    lost_item: ItemPublic | None = None
    found_item: ItemPublic | None = None
    role: Literal["founder", "owner"]


class ItemReportResponse(BaseModel):
    item: ItemOwnerResponse
    matches: list[MatchResponse]


class ExchangeStateResponse(BaseModel):
    match_id: int
    match_status: MatchStatus
    exchange_status: ExchangeStatus
    exchange_start_time: datetime | None = None
    deadline: datetime | None = None
    remaining_seconds: int = 0
    exchange_confirmed_by: list[int] = []
