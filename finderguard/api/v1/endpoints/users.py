"""
Profile endpoints - onboarding and public trust profiles.
Challenge: Trust score is read-only here; only exchange outcomes change it.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from finderguard.core.dependencies import CurrentUserId, get_token_subject
from finderguard.db.models.user import User
from finderguard.db.repositories.user_repository import UserRepository
from finderguard.db.session import DbSession
from finderguard.schemas.user import ProfileResponse, PublicProfileResponse, UserCreate

router = APIRouter()


@router.post("", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
async def create_profile(
    session: DbSession,
    data: UserCreate,
    subject: Annotated[int, Depends(get_token_subject)],
):
    """Create the caller's profile (id taken from the token). Starts at full trust."""
    repo = UserRepository(session)
    if await repo.get_by_id(subject):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Profile already exists")
    if await repo.get_by_username(data.username):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already taken")
    user = User(id=subject, username=data.username, email=data.email)
    user = await repo.add(user)
    return ProfileResponse.model_validate(user)


@router.get("/me", response_model=ProfileResponse)
async def me(session: DbSession, user_id: CurrentUserId):
    user = await UserRepository(session).get_by_id(user_id)
    return ProfileResponse.model_validate(user)


@router.get("/{user_id}", response_model=PublicProfileResponse)
async def public_profile(session: DbSession, user_id: int):
    """Trust profile shown to the other party of a match."""
    user = await UserRepository(session).get_by_id(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return PublicProfileResponse.model_validate(user)
