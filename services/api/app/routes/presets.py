"""Preset endpoints.

GET  /v1/presets            - Paginated list (sort=likes|new)
POST /v1/presets            - Create a preset (authenticated)
GET  /v1/presets/{id}       - Preset detail
POST /v1/presets/{id}/like  - Toggle the caller's like (authenticated)

Routers are thin: call services for business logic.
"""

from fastapi import APIRouter, Depends, Query

from app.deps import get_caller, get_preset_service
from app.schemas import CreatePresetRequest, LikeToggleResponse, Preset, PresetPage
from app.services.identity import CallerIdentity
from app.services.presets import PresetService

router = APIRouter()


@router.get("", response_model=PresetPage)
async def list_presets(
    sort: str = Query(default="likes", description="Sort order", examples=["likes", "new"]),
    page: int = Query(default=1, description="1-based page number"),
    caller: CallerIdentity = Depends(get_caller),
    service: PresetService = Depends(get_preset_service),
) -> PresetPage:
    """List presets; authenticated callers also get their `liked` flags."""
    return await service.list_presets(sort=sort, page=page, viewer_id=caller.viewer_id)


@router.post("", response_model=Preset, status_code=201)
async def create_preset(
    request: CreatePresetRequest,
    caller: CallerIdentity = Depends(get_caller),
    service: PresetService = Depends(get_preset_service),
) -> Preset:
    return await service.create_preset(caller, request.title, request.packages)


@router.get("/{preset_id}", response_model=Preset)
async def get_preset(
    preset_id: str,
    caller: CallerIdentity = Depends(get_caller),
    service: PresetService = Depends(get_preset_service),
) -> Preset:
    return await service.get_preset(preset_id, viewer_id=caller.viewer_id)


@router.post("/{preset_id}/like", response_model=LikeToggleResponse)
async def toggle_like(
    preset_id: str,
    caller: CallerIdentity = Depends(get_caller),
    service: PresetService = Depends(get_preset_service),
) -> LikeToggleResponse:
    """Flip the caller's like; returns the committed (liked, likesCount)."""
    return await service.toggle_like(caller, preset_id)
