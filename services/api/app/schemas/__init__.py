"""Pydantic schemas for API request/response validation."""

from app.schemas.common import ERROR_RESPONSES, ErrorDetail, ErrorResponse
from app.schemas.packages import (
    AssignTagsRequest,
    CreateTagRequest,
    Package,
    PackageList,
    Tag,
    TagList,
)
from app.schemas.presets import (
    CreatePresetRequest,
    LikeToggleResponse,
    MeResponse,
    MeUser,
    Preset,
    PresetList,
    PresetPage,
    UserStats,
)

__all__ = [
    "ERROR_RESPONSES",
    "ErrorDetail",
    "ErrorResponse",
    "AssignTagsRequest",
    "CreateTagRequest",
    "Package",
    "PackageList",
    "Tag",
    "TagList",
    "CreatePresetRequest",
    "LikeToggleResponse",
    "MeResponse",
    "MeUser",
    "Preset",
    "PresetList",
    "PresetPage",
    "UserStats",
]
