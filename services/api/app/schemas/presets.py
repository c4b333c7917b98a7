"""Schemas for preset endpoints (/v1/presets, /v1/me)."""

from datetime import datetime

from pydantic import BaseModel, Field


class CreatePresetRequest(BaseModel):
    """Request body for POST /v1/presets.

    Bounds are enforced by the service so every violation surfaces as the
    same structured VALIDATION_ERROR.
    """

    title: str
    packages: list[str]


class Preset(BaseModel):
    """A named comparison of packages."""

    id: str
    title: str
    packages: list[str]
    npmtrends_url: str = Field(alias="npmtrendsUrl")
    owner_id: str = Field(alias="ownerId")
    owner_name: str | None = Field(alias="ownerName", default=None)
    owner_avatar: str | None = Field(alias="ownerAvatar", default=None)
    likes_count: int = Field(alias="likesCount", ge=0)
    created_at: datetime = Field(alias="createdAt")
    # Present only for authenticated viewers
    liked: bool | None = None

    model_config = {"populate_by_name": True}


class PresetPage(BaseModel):
    """One page of the preset list."""

    presets: list[Preset]
    page: int = Field(ge=1)
    sort: str
    has_more: bool = Field(alias="hasMore")

    model_config = {"populate_by_name": True}


class PresetList(BaseModel):
    """Unpaginated preset list (e.g. presets comparing one package)."""

    presets: list[Preset]


class LikeToggleResponse(BaseModel):
    """Response for POST /v1/presets/{id}/like."""

    liked: bool
    likes_count: int = Field(alias="likesCount", ge=0)

    model_config = {"populate_by_name": True}


class UserStats(BaseModel):
    presets_count: int = Field(alias="presetsCount", ge=0)
    total_likes: int = Field(alias="totalLikes", ge=0)

    model_config = {"populate_by_name": True}


class MeUser(BaseModel):
    id: str
    name: str | None = None
    avatar_url: str | None = Field(alias="avatarUrl", default=None)
    stats: UserStats

    model_config = {"populate_by_name": True}


class MeResponse(BaseModel):
    """Response payload for GET /v1/me."""

    authenticated: bool
    user: MeUser | None = None
