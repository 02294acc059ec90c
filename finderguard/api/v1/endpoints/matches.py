"""
Match endpoints - the caller's matches and the accept/reject step.
"""

from fastapi import APIRouter

from finderguard.core.dependencies import CurrentUserId, MatchServiceDep
from finderguard.schemas.match import MatchDetailResponse, MatchResponse

router = APIRouter()


@router.get("", response_model=list[MatchDetailResponse])
async def list_matches(svc: MatchServiceDep, user_id: CurrentUserId):
    """Matches on either side of the caller's reports. Retired items show as null."""
    return await svc.list_for_user(user_id)


@router.get("/{match_id}", response_model=MatchDetailResponse)
async def get_match(svc: MatchServiceDep, match_id: int, user_id: CurrentUserId):
    return await svc.get_for_user(match_id, user_id)


@router.post("/{match_id}/accept", response_model=MatchResponse)
async def accept_match(svc: MatchServiceDep, match_id: int, user_id: CurrentUserId):
    """Open the chat for this match; required before a handover."""
    return await svc.accept(match_id, user_id)


@router.post("/{match_id}/reject", response_model=MatchResponse)
async def reject_match(svc: MatchServiceDep, match_id: int, user_id: CurrentUserId):
    return await svc.reject(match_id, user_id)
