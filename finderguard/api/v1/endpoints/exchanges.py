"""
Exchange endpoints - the time-boxed handover of a matched item.
Finder confirms the item was offered, owner confirms receipt within the window.
"""

from fastapi import APIRouter

from finderguard.core.dependencies import CurrentUserId, ExchangeServiceDep
from finderguard.db.session import DbSession
from finderguard.schemas.match import ExchangeStateResponse
from finderguard.services.errors import ExchangeExpiredError

router = APIRouter()


@router.get("/{match_id}/exchange", response_model=ExchangeStateResponse)
async def exchange_state(svc: ExchangeServiceDep, match_id: int, user_id: CurrentUserId):
    """Status plus seconds left on the handover countdown."""
    return await svc.get_state(match_id, user_id)


@router.post("/{match_id}/exchange/founder-confirm", response_model=ExchangeStateResponse)
async def founder_confirm(svc: ExchangeServiceDep, match_id: int, user_id: CurrentUserId):
    match = await svc.founder_confirm(match_id, user_id)
    return svc.describe(match)


@router.post("/{match_id}/exchange/owner-confirm", response_model=ExchangeStateResponse)
async def owner_confirm(
    svc: ExchangeServiceDep, session: DbSession, match_id: int, user_id: CurrentUserId
):
    try:
        match = await svc.owner_confirm(match_id, user_id)
    except ExchangeExpiredError:
        # A late confirmation still settles the expiry; keep it past the 409
        await session.commit()
        raise
    return svc.describe(match)
