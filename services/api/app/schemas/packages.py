"""Schemas for package and tag endpoints (/v1/packages, /v1/tags)."""

from datetime import datetime

from pydantic import BaseModel, Field


class Tag(BaseModel):
    """Category label."""

    id: str
    name: str
    color: str
    package_count: int | None = Field(alias="packageCount", default=None)

    model_config = {"populate_by_name": True}


class Package(BaseModel):
    """npm package with its tags.

    `hydrated` is False when registry metadata could not be fetched and the
    record only carries the name.
    """

    name: str
    description: str | None = None
    weekly_downloads: int = Field(alias="weeklyDownloads", ge=0, default=0)
    repository: str | None = None
    homepage: str | None = None
    last_update: datetime | None = Field(alias="lastUpdate", default=None)
    tags: list[Tag] = Field(default_factory=list)
    hydrated: bool = True

    model_config = {"populate_by_name": True}


class PackageList(BaseModel):
    packages: list[Package]


class TagList(BaseModel):
    tags: list[Tag]


class AssignTagsRequest(BaseModel):
    """Request body for PUT /v1/packages/{name}/tags (replaces the whole set)."""

    tag_ids: list[str] = Field(alias="tagIds", max_length=20)

    model_config = {"populate_by_name": True}


class CreateTagRequest(BaseModel):
    """Request body for POST /v1/tags (create or rename)."""

    id: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=100)
    color: str = Field(default="#6B7280", pattern=r"^#[0-9A-Fa-f]{6}$")
