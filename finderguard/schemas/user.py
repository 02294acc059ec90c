"""Profile request/response schemas."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    username: str = Field(..., min_length=2, max_length=64)
    email: EmailStr | None = None


class PublicProfileResponse(BaseModel):
    id: int
    username: str
    trust_score: int
    reports_count: int
    failed_exchanges: int
    is_verified: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ProfileResponse(PublicProfileResponse):
    email: str | None = None
