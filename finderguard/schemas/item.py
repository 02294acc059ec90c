"""Item request/response schemas - REST API contract and the records fed to matching."""

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from finderguard.schemas.enums import ItemKind, ItemStatus

# Stripped before the length check, so a blank category is rejected
Category = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=64)]


class Location(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    address: str | None = None


class PrivateDetails(BaseModel):
    """Verification secrets. Only ever shown to the reporting user."""

    distinguishing_marks: str | None = None
    contents: str | None = None
    serial_number: str | None = None


class ItemBase(BaseModel):
    kind: ItemKind
    category: Category
    title: str = Field("", max_length=255)
    description: str = ""
    color_tokens: list[str] = Field(default_factory=list)
    brand_token: str | None = Field(None, max_length=64)
    location: Location | None = None


class ItemCreate(ItemBase):
    image: str | None = None  # data URI or URL
    private_details: PrivateDetails | None = None


class ItemUpdate(BaseModel):
    # kind is deliberately absent: a report never changes sides
    model_config = ConfigDict(extra="forbid")

    category: Category | None = None
    title: str | None = Field(None, max_length=255)
    description: str | None = None
    color_tokens: list[str] | None = None
    brand_token: str | None = None
    location: Location | None = None
    image: str | None = None
    private_details: PrivateDetails | None = None


class ItemPublic(ItemBase):
    """What other users (and the matcher) may see of an item."""

    id: int
    owner_id: int
    status: ItemStatus
    has_image: bool = False
    created_at: datetime


class MatchSubject(ItemPublic):
    """The newly reported item being matched; carries its own image for the semantic matcher."""

    image: str | None = None


class ItemOwnerResponse(ItemPublic):
    image: str | None = None
    private_details: PrivateDetails | None = None
